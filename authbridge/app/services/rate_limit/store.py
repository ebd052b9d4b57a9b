"""Bounded in-memory store for rate limit counters."""

import threading
from collections import OrderedDict
from typing import Optional

from authbridge.app.services.rate_limit.models import RateLimitEntry


class RateLimitStore:
    """Insertion-ordered map from key to RateLimitEntry.

    Memory optimization:
    - Capacity is fixed at ``max_entries``
    - At capacity the oldest keys are evicted first (FIFO) to make room

    Every mutation runs under one ``threading.Lock`` so the
    read-check-increment in ``hit`` stays atomic under threaded servers as
    well as on the event loop.
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._entries: OrderedDict[str, RateLimitEntry] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[RateLimitEntry]:
        """Return a copy of the entry for ``key``, if any."""
        with self._lock:
            entry = self._entries.get(key)
            return RateLimitEntry(entry.count, entry.reset_time) if entry else None

    def hit(self, key: str, now: float, window_seconds: float) -> tuple[RateLimitEntry, bool]:
        """Count one request for ``key``.

        Starts a fresh window (count 1) when the key is unknown or its window
        has elapsed (``now >= reset_time``); otherwise increments the count.

        Args:
            key: Store key
            now: Current time in epoch seconds
            window_seconds: Window length for a fresh entry

        Returns:
            Tuple of (snapshot of the entry after the hit, whether a new
            window was started)
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now >= entry.reset_time:
                if entry is None:
                    self._evict_for_insert()
                else:
                    # Replaced windows count as new insertions
                    del self._entries[key]
                entry = RateLimitEntry(count=1, reset_time=now + window_seconds)
                self._entries[key] = entry
                return RateLimitEntry(entry.count, entry.reset_time), True

            entry.count += 1
            return RateLimitEntry(entry.count, entry.reset_time), False

    def purge_expired(self, now: float) -> int:
        """Delete entries whose window ended at or before ``now``.

        Returns:
            Number of entries removed
        """
        with self._lock:
            # Snapshot keys so deletion never mutates what we iterate
            expired = [key for key, entry in list(self._entries.items()) if entry.reset_time <= now]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def delete_prefix(self, prefix: str) -> int:
        """Delete every entry whose key starts with ``prefix``."""
        with self._lock:
            matching = [key for key in list(self._entries) if key.startswith(prefix)]
            for key in matching:
                del self._entries[key]
            return len(matching)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict_for_insert(self) -> None:
        # Caller holds the lock
        while len(self._entries) >= self._max_entries:
            self._entries.popitem(last=False)
