"""
In-Memory Key-Value Store

Process-local implementation of the KeyValueStore protocol. It is the default
cache backend for single-user runs and the store used by the test suite.
"""

import copy
import threading
from datetime import datetime, timedelta
from typing import Optional, Any, Callable, Dict, Tuple

from utils.helpers import utc_now


class MemoryStore:
    """Dictionary-backed store with per-key expiry."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            clock: Returns the current aware datetime; defaults to UTC now.
        """
        self._clock = clock or utc_now
        self._items: Dict[str, Tuple[Any, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._items.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._items[key]
                return None
            return copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        with self._lock:
            self._items[key] = (copy.deepcopy(value), expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
