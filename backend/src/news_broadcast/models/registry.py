import logging
import threading
from typing import Tuple

from .bus import BroadcastBus, Tap
from .errors import ServiceClosedError

logger = logging.getLogger(__name__)


class SubscriberRegistry:
    '''
    Live subscriber counter feeding its own broadcast bus.

    Every change is pushed while the lock is held, so watchers receive the
    values in the same order the transitions happened.
    '''

    def __init__(self, bus: BroadcastBus[int]):
        self.bus = bus
        self._count = 0
        self._lock = threading.Lock()

    def current_value(self) -> int:
        with self._lock:
            return self._count

    def increment(self) -> int:
        with self._lock:
            self._count += 1
            self._notify(self._count)
            return self._count

    def decrement(self) -> int:
        with self._lock:
            if self._count == 0:
                logger.error("Subscriber count decrement below zero ignored")
                return 0
            self._count -= 1
            self._notify(self._count)
            return self._count

    def watch(self) -> Tuple[int, Tap[int]]:
        """Current value plus a tap for later changes, taken together."""
        with self._lock:
            return self._count, self.bus.tap()

    def _notify(self, value: int) -> None:
        if self.bus.closed:
            return
        try:
            self.bus.publish(value)
        except ServiceClosedError:
            # closed between the check and the push
            pass
