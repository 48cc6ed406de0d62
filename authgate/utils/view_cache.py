"""Read-through cache of derived views, stored in the shared key/value store.

Entries are JSON documents under ``cache:{cache_name}:{key}`` with a TTL per
cache name. The cache is an optimization only: a miss, a disabled cache and an
unreachable store all fall back to the loader and return the same data.
"""

from __future__ import annotations

import json
import logging
import threading
from enum import Enum
from typing import Any, Callable, TypeVar

from authgate.adapters.kv.base import AbstractKeyValueStore
from authgate.core.config import CacheSettings
from authgate.core.errors import FailurePolicy, StoreUnavailableError

logger = logging.getLogger(__name__)

VIEW_CACHE_FAILURE_POLICY = FailurePolicy.FAIL_OPEN

T = TypeVar("T")


class CacheName(str, Enum):
    USERS = "users"
    ROLES = "roles"
    PERMISSIONS = "permissions"
    REFRESH_TOKENS = "refresh_tokens"


def build_cache_key(cache_name: CacheName, key: str | int) -> str:
    return f"cache:{cache_name.value}:{key}"


def ttl_for(cache_name: CacheName, cache_settings: CacheSettings) -> int:
    """Configured TTL in seconds for one entity class."""
    return {
        CacheName.USERS: cache_settings.user_ttl_seconds,
        CacheName.ROLES: cache_settings.role_ttl_seconds,
        CacheName.PERMISSIONS: cache_settings.permission_ttl_seconds,
        CacheName.REFRESH_TOKENS: cache_settings.refresh_token_ttl_seconds,
    }[cache_name]


class ViewCache:
    """JSON view cache with per-class TTLs and lightweight counters."""

    def __init__(self, store: AbstractKeyValueStore, cache_settings: CacheSettings) -> None:
        self._store = store
        self._settings = cache_settings
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._errors = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"ViewCache(enabled={self._settings.enabled}, hits={self._hits}, "
            f"misses={self._misses}, errors={self._errors})"
        )

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    def _count(self, field: str) -> None:
        with self._lock:
            setattr(self, field, getattr(self, field) + 1)

    def get_or_load(self, cache_name: CacheName, key: str | int, loader: Callable[[], T]) -> T:
        """Return the cached view for key, computing and storing it on miss.

        Args:
            cache_name: Entity class (selects the TTL).
            key: Entity key within the class.
            loader: Computes the JSON-serializable view from the durable store.
        """

        if not self._settings.enabled:
            return loader()

        cache_key = build_cache_key(cache_name, key)
        try:
            raw = self._store.get(cache_key)
        except StoreUnavailableError:
            self._count("_errors")
            logger.warning("cache.read_failed", extra={"cache_name": cache_name.value})
            raw = None

        if raw is not None:
            try:
                value = json.loads(raw)
            except ValueError:
                logger.warning("cache.corrupt_entry", extra={"cache_name": cache_name.value})
            else:
                self._count("_hits")
                logger.debug("cache.hit", extra={"cache_name": cache_name.value})
                return value

        self._count("_misses")
        value = loader()
        self._put(cache_name, cache_key, value)
        return value

    def _put(self, cache_name: CacheName, cache_key: str, value: Any) -> None:
        if value is None:
            # Absence is never cached; the next read retries the store
            return
        try:
            self._store.set_with_ttl(
                cache_key,
                json.dumps(value, default=str),
                ttl_for(cache_name, self._settings),
            )
        except StoreUnavailableError:
            self._count("_errors")
            logger.warning("cache.write_failed", extra={"cache_name": cache_name.value})
            return
        logger.debug(
            "cache.set",
            extra={"cache_name": cache_name.value, "ttl_s": ttl_for(cache_name, self._settings)},
        )

    def evict(self, cache_name: CacheName, key: str | int) -> None:
        """Drop one entry. Failures are logged; the entry then ages out by TTL."""

        if not self._settings.enabled:
            return
        try:
            self._store.delete(build_cache_key(cache_name, key))
        except StoreUnavailableError:
            self._count("_errors")
            logger.warning("cache.evict_failed", extra={"cache_name": cache_name.value})

    def stats(self) -> dict[str, int | bool]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "enabled": self._settings.enabled,
                "hits": self._hits,
                "misses": self._misses,
                "errors": self._errors,
            }
