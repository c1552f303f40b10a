import logging
import threading
from datetime import datetime, timedelta
from typing import Optional, Tuple

from ..schemas import NewsItem
from ..utilities.constants import TAP_BUFFER_SIZE
from .bus import BroadcastBus
from .errors import ServiceClosedError
from .registry import SubscriberRegistry
from .sessions import CountSubscription, NewsSubscription
from .store import IdGenerator, ItemStore

logger = logging.getLogger(__name__)


class NewsEngine:
    '''
    Owns the item history, the news bus and the subscriber registry.

    All methods are safe to call from any thread. publish() and
    subscribe_to_items() share one lock, so a new subscriber's snapshot
    and live tap meet exactly at one point in the publish order: every item
    is either replayed or delivered live, never both and never neither.
    The subscribe methods must be called with a running event loop, which
    is where the returned session is consumed.
    '''

    def __init__(self, buffer_size: int = TAP_BUFFER_SIZE):
        self.store = ItemStore()
        self.ids = IdGenerator()
        self.news_bus: BroadcastBus[NewsItem] = BroadcastBus("news", buffer_size)
        self.registry = SubscriberRegistry(BroadcastBus("count", buffer_size))
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, title: str, content: str, category: str, author: str) -> NewsItem:
        return self._publish(title, content, category, author)

    def _publish(
        self,
        title: str,
        content: str,
        category: str,
        author: str,
        published_at: Optional[datetime] = None,
    ) -> NewsItem:
        with self._lock:
            if self._closed:
                raise ServiceClosedError()
            item = NewsItem(
                id=self.ids.next_id(),
                title=title,
                content=content,
                published_at=published_at or datetime.now(),
                category=category,
                author=author,
            )
            self.store.append(item)
            delivered = self.news_bus.publish(item)
        logger.info("New news added: %s (id=%d, live to %d taps)", item.title, item.id, delivered)
        return item

    def list_all(self) -> Tuple[NewsItem, ...]:
        return self.store.snapshot()

    def subscribe_to_items(self) -> NewsSubscription:
        with self._lock:
            if self._closed:
                raise ServiceClosedError()
            tap = self.news_bus.tap()
            session = NewsSubscription(self.store.snapshot(), tap, self.news_bus, self.registry)
            session.start()
        return session

    def current_subscriber_count(self) -> int:
        return self.registry.current_value()

    def subscribe_to_count(self) -> CountSubscription:
        if self._closed:
            raise ServiceClosedError()
        initial, tap = self.registry.watch()
        return CountSubscription(initial, tap, self.registry.bus)

    def shutdown(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.news_bus.close()
        self.registry.bus.close()
        logger.info("News engine shut down with %d items and %d subscribers",
                    len(self.store), self.registry.current_value())


def seed_default_news(engine: NewsEngine) -> None:
    """Publish the two welcome items, back-dated by two hours and one hour."""
    now = datetime.now()
    engine._publish(
        "Welcome to News Broadcasting",
        "This is a Server-Sent Events (SSE) based news broadcasting system. "
        "Subscribe to receive real-time news updates!",
        "Technology",
        "System Admin",
        published_at=now - timedelta(hours=2),
    )
    engine._publish(
        "Real-time News Broadcasting with FastAPI",
        "This service broadcasts news in real time over Server-Sent Events and WebSockets. "
        "New subscribers receive all existing news immediately upon connection.",
        "Technology",
        "Development Team",
        published_at=now - timedelta(hours=1),
    )
    logger.info("Initialized with %d default news items", len(engine.store))
