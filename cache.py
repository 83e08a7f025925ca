# cache.py
import threading
from collections import OrderedDict
from typing import Any, Hashable, Optional


class LRUCache:
    """
    In-process key -> value store with least-recently-used eviction.

    `put` always overwrites; `get` returns None for a missing key. Nothing
    survives a restart. `max_entries=None` means unbounded.
    """

    def __init__(self, max_entries: Optional[int] = 256):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive or None")
        self.max_entries = max_entries
        self._items: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._lock = threading.Lock()

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._items[key] = value
            self._items.move_to_end(key)
            if self.max_entries is not None:
                while len(self._items) > self.max_entries:
                    self._items.popitem(last=False)

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            if key not in self._items:
                return None
            self._items.move_to_end(key)
            return self._items[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
