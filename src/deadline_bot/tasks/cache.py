# src/deadline_bot/tasks/cache.py

from __future__ import annotations

"""
Time-to-live cache in front of Store reads.

An entry is served while `now <= expiry`. Expired entries are evicted lazily
by `get` and eagerly by `sweep`. Failed reads are never cached; callers only
`set` values they actually fetched.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(slots=True)
class CacheEntry:
    value: Any
    expiry: float


class Cache:
    def __init__(self, default_ttl: float = 300.0, *, clock: Clock = time.time) -> None:
        self.default_ttl = float(default_ttl)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        # task_api functions are sync; callers may run them via asyncio.to_thread.
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if now > entry.expiry:
                del self._entries[key]
                logger.debug("Cache expired key=%s", key)
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        ttl_s = self.default_ttl if ttl is None else float(ttl)
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expiry=self._clock() + ttl_s)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self, now: float | None = None) -> int:
        """Drop every expired entry. Returns how many were removed."""
        now_ts = self._clock() if now is None else now
        with self._lock:
            expired = [k for k, e in self._entries.items() if now_ts > e.expiry]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info("Cache sweep removed %d expired entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
