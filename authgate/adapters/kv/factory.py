"""Factory for the process-wide key/value store."""

from __future__ import annotations

import logging

from authgate.adapters.kv.base import AbstractKeyValueStore
from authgate.adapters.kv.in_memory import InMemoryKeyValueStore
from authgate.adapters.kv.redis_store import RedisKeyValueStore
from authgate.core.config import settings
from authgate.core.errors import ValidationAppError

logger = logging.getLogger(__name__)

_store: AbstractKeyValueStore | None = None


def create_kv_store() -> AbstractKeyValueStore:
    """Instantiate the store selected by REDIS_URL.

    ``redis://``, ``rediss://`` and ``unix://`` URLs build a Redis client;
    ``memory://`` builds a per-process store for local development.

    Raises:
        ValidationAppError: If the URL scheme is not supported.
    """
    url = settings.redis.url
    scheme = url.split("://", 1)[0].lower()

    if scheme in {"redis", "rediss", "unix"}:
        return RedisKeyValueStore.from_url(
            url,
            socket_timeout=settings.redis.socket_timeout_seconds,
        )

    if scheme == "memory":
        logger.warning(
            "kv.in_memory_store",
            extra={"hint": "limits and cache are not shared across workers"},
        )
        return InMemoryKeyValueStore()

    raise ValidationAppError(
        code="kv_unknown_scheme",
        message=f"Unsupported key/value store URL scheme: '{scheme}'",
    )


def get_kv_store() -> AbstractKeyValueStore:
    """Return the process-wide store, creating it on first use."""

    global _store

    if _store is None:
        _store = create_kv_store()
    return _store


def reset_kv_store() -> None:
    """Drop the cached store so the next call rebuilds it from settings."""

    global _store
    _store = None
