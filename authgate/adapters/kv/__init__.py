"""Key/value store adapters.

The rate limiter and the user view cache talk to an abstract store so the
service can run against Redis in production and an in-process store locally.
"""

from __future__ import annotations

from authgate.adapters.kv.base import AbstractKeyValueStore
from authgate.adapters.kv.in_memory import InMemoryKeyValueStore
from authgate.adapters.kv.redis_store import RedisKeyValueStore

__all__ = ["AbstractKeyValueStore", "InMemoryKeyValueStore", "RedisKeyValueStore"]
