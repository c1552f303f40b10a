import asyncio
import logging
import threading
from typing import Callable, Generic, List, Optional, Set, TypeVar

from ..utilities.constants import TAP_BUFFER_SIZE
from .errors import BusClosedError, NewsBroadcastError, ServiceClosedError, SlowConsumerError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# wakes a consumer blocked in Tap.get() once the tap has been terminated
_WAKE = object()


class Tap(Generic[T]):
    '''
    One subscriber's live attachment to a BroadcastBus.

    Items are buffered in an asyncio.Queue owned by the subscriber's event
    loop. Pushes may come from any thread; they are scheduled onto that loop
    with call_soon_threadsafe, which keeps them in push order.
    '''

    def __init__(self, bus: "BroadcastBus[T]", loop: asyncio.AbstractEventLoop, maxsize: int = 0):
        self._bus = bus
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._error: Optional[NewsBroadcastError] = None
        self.active = True
        # called once the bus gives up on this tap, outside the bus lock
        self.on_drop: Optional[Callable[[], None]] = None

    def push(self, item: T) -> bool:
        """Schedule delivery of ``item``. Returns False if this tap can no longer receive."""
        if not self.active:
            return False
        try:
            self._loop.call_soon_threadsafe(self._deliver, item)
        except RuntimeError:
            # subscriber's event loop is gone
            logger.warning("Failed to push to %s tap: event loop closed", self._bus.name)
            self.active = False
            return False
        return True

    def dropped(self) -> None:
        if self.on_drop is not None:
            self.on_drop()

    def terminate(self, error: NewsBroadcastError) -> None:
        """Schedule the end of this tap; buffered items are still handed out first."""
        self.active = False
        try:
            self._loop.call_soon_threadsafe(self._terminate, error)
        except RuntimeError:
            logger.debug("Event loop already closed for %s tap", self._bus.name)

    def _deliver(self, item: T) -> None:
        if self._error is not None:
            return
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            logger.warning(
                "%s tap buffer full (%d items); disconnecting slow consumer",
                self._bus.name, self._queue.maxsize,
            )
            self._bus.untap(self)
            self._terminate(SlowConsumerError(f"{self._bus.name} tap overflowed"))

    def _terminate(self, error: NewsBroadcastError) -> None:
        if self._error is not None:
            return
        self._error = error
        self.active = False
        try:
            self._queue.put_nowait(_WAKE)
        except asyncio.QueueFull:
            # consumer is not blocked; it hits the error once the buffer drains
            pass

    async def get(self) -> T:
        if self._error is not None and self._queue.empty():
            raise self._error
        item = await self._queue.get()
        if item is _WAKE:
            raise self._error
        return item

    def pending(self) -> int:
        return self._queue.qsize()


class BroadcastBus(Generic[T]):
    '''
    Multicast channel: every published item goes to every attached tap.

    A tap only sees items published after it attached. Replaying history is
    the caller's concern.
    '''

    def __init__(self, name: str, buffer_size: int = TAP_BUFFER_SIZE):
        self.name = name
        self._buffer_size = buffer_size
        self._taps: Set[Tap[T]] = set()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def tap_count(self) -> int:
        with self._lock:
            return len(self._taps)

    def tap(self) -> Tap[T]:
        """Attach a new tap bound to the running event loop."""
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._closed:
                raise ServiceClosedError(f"{self.name} bus is closed")
            tap: Tap[T] = Tap(self, loop, self._buffer_size)
            self._taps.add(tap)
        return tap

    def untap(self, tap: Tap[T]) -> None:
        with self._lock:
            self._taps.discard(tap)
        tap.active = False

    def publish(self, item: T) -> int:
        with self._lock:
            if self._closed:
                raise ServiceClosedError(f"{self.name} bus is closed")
            delivered = 0
            dropped: List[Tap[T]] = []
            # fan-out under the lock keeps every tap in publish order
            for tap in list(self._taps):
                if tap.push(item):
                    delivered += 1
                else:
                    self._taps.discard(tap)
                    dropped.append(tap)
        for tap in dropped:
            tap.dropped()
        return delivered

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            taps = list(self._taps)
            self._taps.clear()
        for tap in taps:
            tap.terminate(BusClosedError(f"{self.name} bus closed"))
        logger.info("%s bus closed (%d taps released)", self.name, len(taps))
