import threading
from typing import List, Tuple

from ..schemas import NewsItem


class IdGenerator:
    ''' Hands out unique, strictly increasing item ids starting at 1.'''

    def __init__(self, start: int = 1):
        self._next = start
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value


class ItemStore:
    '''
    Append-only history of published items, in publish order.

    Snapshots are tuples, so appends made after a snapshot was taken
    never show up in it.
    '''

    def __init__(self):
        self._items: List[NewsItem] = []
        self._lock = threading.Lock()

    def append(self, item: NewsItem) -> None:
        with self._lock:
            self._items.append(item)

    def snapshot(self) -> Tuple[NewsItem, ...]:
        with self._lock:
            return tuple(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
