"""Bounded in-memory cache with per-entry expiry."""

import threading
import time
from collections import OrderedDict


class TTLCache:
    """LRU cache whose entries expire `ttl_seconds` after insertion.

    Expired entries are dropped lazily when read. When the cache grows past
    `max_entries` the least recently used entry is evicted.
    """

    def __init__(self, ttl_seconds, max_entries=512, clock=time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError('ttl_seconds must be positive')
        if max_entries <= 0:
            raise ValueError('max_entries must be positive')
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key, default=None):
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return default
            expires_at, value = item
            if self._clock() > expires_at:
                del self._entries[key]
                return default
            self._entries.move_to_end(key)
            return value

    def set(self, key, value):
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def delete(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __contains__(self, key):
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def __len__(self):
        with self._lock:
            return len(self._entries)
