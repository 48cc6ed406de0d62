"""Redis-backed key/value store.

Shared by every process instance: this is what makes rate limiting and the
view cache distributed. Timeouts are configured on the client so no call can
block a worker indefinitely.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, TypeVar

import redis
from redis import Redis

from authgate.adapters.kv.base import AbstractKeyValueStore
from authgate.core.errors import StoreUnavailableError
from authgate.core.logging import hash_identifier

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _store_call(operation: str) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Translate redis-py errors into StoreUnavailableError for one operation."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(self: "RedisKeyValueStore", key: str, *args: Any, **kwargs: Any) -> T:
            try:
                return func(self, key, *args, **kwargs)
            except redis.RedisError as exc:
                logger.error(
                    "kv.operation_failed",
                    extra={
                        "operation": operation,
                        "key_hash": hash_identifier(key),
                        "error_type": type(exc).__name__,
                        "error_msg": str(exc),
                    },
                )
                raise StoreUnavailableError(
                    message=f"Key/value store unavailable during {operation}",
                    details={"store": "redis", "operation": operation},
                ) from exc

        return wrapper

    return decorator


class RedisKeyValueStore(AbstractKeyValueStore):
    """Thin typed wrapper around a synchronous redis-py client."""

    # Check-and-increment in one round trip. A denied call neither increments
    # the counter nor extends its TTL.
    _INCREMENT_WITHIN_LIMIT_SCRIPT = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local ttl = tonumber(ARGV[2])

local current = tonumber(redis.call('GET', key))
if current == nil then
  redis.call('SET', key, 1, 'EX', ttl)
  return {1, 1}
end

if current >= limit then
  return {0, current}
end

current = redis.call('INCR', key)
if redis.call('TTL', key) < 0 then
  redis.call('EXPIRE', key, ttl)
end
return {1, current}
"""

    def __init__(self, client: Redis) -> None:
        self.client = client
        self._increment_within_limit = client.register_script(
            self._INCREMENT_WITHIN_LIMIT_SCRIPT
        )

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float = 2.0) -> "RedisKeyValueStore":
        """Build a store from a connection URL with explicit timeouts."""

        client = Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    @_store_call("get")
    def get(self, key: str) -> str | None:
        return self.client.get(key)

    @_store_call("set_with_ttl")
    def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        self.client.set(key, value, ex=ttl_seconds)

    @_store_call("increment")
    def increment(self, key: str) -> int:
        return int(self.client.incr(key))

    @_store_call("increment_within_limit")
    def increment_within_limit(
        self, key: str, limit: int, ttl_seconds: int
    ) -> tuple[bool, int]:
        allowed, count = self._increment_within_limit(keys=[key], args=[limit, ttl_seconds])
        return bool(int(allowed)), int(count)

    @_store_call("expire")
    def expire(self, key: str, ttl_seconds: int) -> bool:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")
        return bool(self.client.expire(key, ttl_seconds))

    @_store_call("get_ttl")
    def get_ttl(self, key: str) -> int | None:
        # -2: key missing, -1: key without expiry
        ttl = int(self.client.ttl(key))
        if ttl < 0:
            return None
        return ttl

    @_store_call("delete")
    def delete(self, key: str) -> bool:
        return int(self.client.delete(key)) > 0
