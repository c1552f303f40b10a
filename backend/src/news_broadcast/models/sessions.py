import asyncio
import itertools
import logging
import threading
from collections import deque
from enum import Enum
from typing import Deque, Iterable, Optional

from ..schemas import NewsItem
from .bus import BroadcastBus, Tap
from .errors import BusClosedError, SlowConsumerError, TapDetachedError
from .registry import SubscriberRegistry

logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)


class SessionState(str, Enum):
    INIT = "init"
    REPLAYING = "replaying"
    LIVE = "live"
    TERMINATED = "terminated"


class NewsSubscription:
    '''
    One subscriber's news stream: the backlog snapshot first, then the
    live tail of the news bus, for as long as the subscriber stays.

    The session counts as a subscriber from start() until it terminates.
    Termination happens exactly once, whichever of cancel(), fail(), a
    cancelled consumer task, a slow-consumer overflow or shutdown comes first.
    '''

    def __init__(
        self,
        snapshot: Iterable[NewsItem],
        tap: Tap[NewsItem],
        bus: BroadcastBus[NewsItem],
        registry: SubscriberRegistry,
    ):
        self.session_id = next(_session_ids)
        self.state = SessionState.INIT
        self.termination_reason: Optional[str] = None
        self._replay: Deque[NewsItem] = deque(snapshot)
        self._tap = tap
        self._bus = bus
        self._registry = registry
        self._lock = threading.Lock()
        tap.on_drop = self._tap_dropped

    def start(self) -> int:
        """INIT -> REPLAYING. Returns the subscriber count after joining."""
        if self.state is not SessionState.INIT:
            raise RuntimeError(f"session {self.session_id} already started")
        self.state = SessionState.REPLAYING
        count = self._registry.increment()
        logger.info("New subscriber connected (session %d). Total subscribers: %d", self.session_id, count)
        return count

    @property
    def backlog_remaining(self) -> int:
        return len(self._replay)

    def __aiter__(self) -> "NewsSubscription":
        return self

    async def __anext__(self) -> NewsItem:
        if self.state is SessionState.TERMINATED:
            raise StopAsyncIteration
        if self.state is SessionState.REPLAYING:
            if self._replay:
                return self._replay.popleft()
            self.state = SessionState.LIVE
        try:
            return await self._tap.get()
        except asyncio.CancelledError:
            self._terminate("cancelled")
            raise
        except BusClosedError:
            self._terminate("shutdown")
            raise StopAsyncIteration
        except SlowConsumerError:
            self._terminate("slow_consumer")
            raise StopAsyncIteration
        except TapDetachedError:
            # cancelled from elsewhere while this consumer was waiting
            raise StopAsyncIteration

    async def __aenter__(self) -> "NewsSubscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    def cancel(self) -> None:
        """Subscriber went away."""
        self._terminate("cancelled")

    def fail(self, error: BaseException) -> None:
        """Report a fault while handing an item to this subscriber's transport."""
        if self.state is SessionState.TERMINATED:
            return
        logger.error("Delivery fault in news session %d: %s", self.session_id, error, exc_info=error)
        self._terminate("error")

    def _tap_dropped(self) -> None:
        logger.warning("News session %d lost its event loop; releasing it", self.session_id)
        self._terminate("error")

    def _terminate(self, reason: str) -> None:
        with self._lock:
            if self.state is SessionState.TERMINATED:
                return
            was_started = self.state is not SessionState.INIT
            self.state = SessionState.TERMINATED
            self.termination_reason = reason
        self._replay.clear()
        self._bus.untap(self._tap)
        self._tap.terminate(TapDetachedError(f"news session {self.session_id} {reason}"))
        if not was_started:
            return
        count = self._registry.decrement()
        logger.info(
            "Subscriber stream terminated (session %d, %s). Remaining subscribers: %d",
            self.session_id, reason, count,
        )


class CountSubscription:
    '''
    Stream of subscriber counts: the value at attach time, then every change,
    with consecutive duplicates dropped. Watching does not count as subscribing.
    '''

    def __init__(self, initial: int, tap: Tap[int], bus: BroadcastBus[int]):
        self._initial: Optional[int] = initial
        self._last: Optional[int] = None
        self._tap = tap
        self._bus = bus
        self.closed = False
        self._lock = threading.Lock()
        tap.on_drop = self.cancel
        logger.debug("New subscriber connected to count stream")

    def __aiter__(self) -> "CountSubscription":
        return self

    async def __anext__(self) -> int:
        if self.closed:
            raise StopAsyncIteration
        if self._initial is not None:
            value, self._initial = self._initial, None
            self._last = value
            return value
        while True:
            try:
                value = await self._tap.get()
            except asyncio.CancelledError:
                self.cancel()
                raise
            except (BusClosedError, SlowConsumerError, TapDetachedError):
                self.cancel()
                raise StopAsyncIteration
            if value != self._last:
                self._last = value
                return value

    async def __aenter__(self) -> "CountSubscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    def cancel(self) -> None:
        with self._lock:
            if self.closed:
                return
            self.closed = True
        self._bus.untap(self._tap)
        self._tap.terminate(TapDetachedError("count stream cancelled"))
        logger.debug("Subscriber disconnected from count stream")
