"""In-process key/value store with TTL support.

Notes:
- Per-process only: running multiple workers gives each its own counters, so
  limits are not shared. Use the Redis store in any multi-worker deployment.
- Thread-safe: uses a lock around shared state.
- Time source is injectable so expiry can be tested deterministically.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from authgate.adapters.kv.base import AbstractKeyValueStore


@dataclass
class _Entry:
    value: str
    expires_at: float | None


class InMemoryKeyValueStore(AbstractKeyValueStore):
    """Dictionary-backed store honouring per-key expiry."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def _live_entry_locked(self, key: str) -> _Entry | None:
        """Return the entry for key, dropping it first if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live_entry_locked(key)
            return entry.value if entry else None

    def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        with self._lock:
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)

    def increment(self, key: str) -> int:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                self._entries[key] = _Entry(value="1", expires_at=None)
                return 1
            count = int(entry.value) + 1
            entry.value = str(count)
            return count

    def increment_within_limit(
        self, key: str, limit: int, ttl_seconds: int
    ) -> tuple[bool, int]:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                self._entries[key] = _Entry(value="1", expires_at=self._clock() + ttl_seconds)
                return True, 1

            current = int(entry.value)
            if current >= limit:
                return False, current

            entry.value = str(current + 1)
            if entry.expires_at is None:
                entry.expires_at = self._clock() + ttl_seconds
            return True, current + 1

    def expire(self, key: str, ttl_seconds: int) -> bool:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                return False
            entry.expires_at = self._clock() + ttl_seconds
            return True

    def get_ttl(self, key: str) -> int | None:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None or entry.expires_at is None:
                return None
            return max(0, int(math.ceil(entry.expires_at - self._clock())))

    def delete(self, key: str) -> bool:
        with self._lock:
            entry = self._live_entry_locked(key)
            if entry is None:
                return False
            del self._entries[key]
            return True

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()
