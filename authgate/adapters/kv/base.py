"""Key/value store interface.

Rate limiting and the user view cache depend on this abstraction rather than
on a concrete client, so the shared Redis store can be replaced by the
in-process store in development and tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractKeyValueStore(ABC):
    """Typed client over a remote key/value store.

    Every method is a single round trip and may raise
    ``StoreUnavailableError`` when the store cannot be reached. Callers decide
    whether that failure opens or closes the operation they guard.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value stored at key, or None when absent."""
        raise NotImplementedError

    @abstractmethod
    def set_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store value at key, expiring after ttl_seconds."""
        raise NotImplementedError

    @abstractmethod
    def increment(self, key: str) -> int:
        """Atomically increment the integer at key and return the new value.

        A missing key is treated as 0. The key's TTL is left unchanged.
        """
        raise NotImplementedError

    @abstractmethod
    def increment_within_limit(
        self, key: str, limit: int, ttl_seconds: int
    ) -> tuple[bool, int]:
        """Atomically increment key unless it already reached limit.

        A missing key is created with value 1 and the given TTL. An existing
        key at or above limit is left untouched.

        Returns:
            Tuple of (incremented, current_count).
        """
        raise NotImplementedError

    @abstractmethod
    def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set key to expire after ttl_seconds. Returns False if key is absent."""
        raise NotImplementedError

    @abstractmethod
    def get_ttl(self, key: str) -> int | None:
        """Remaining lifetime in whole seconds, or None if absent or persistent."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete key. Returns True when a key was removed."""
        raise NotImplementedError
