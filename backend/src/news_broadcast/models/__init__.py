from .bus import BroadcastBus, Tap
from .engine import NewsEngine, seed_default_news
from .errors import BusClosedError, NewsBroadcastError, ServiceClosedError, SlowConsumerError
from .registry import SubscriberRegistry
from .sessions import CountSubscription, NewsSubscription, SessionState
from .store import IdGenerator, ItemStore

__all__ = [
    "BroadcastBus",
    "BusClosedError",
    "CountSubscription",
    "IdGenerator",
    "ItemStore",
    "NewsBroadcastError",
    "NewsEngine",
    "NewsSubscription",
    "ServiceClosedError",
    "SessionState",
    "SlowConsumerError",
    "SubscriberRegistry",
    "Tap",
    "seed_default_news",
]
