"""Unit tests for the distributed fixed-window rate limiter."""

from unittest.mock import MagicMock

import pytest

from authgate.adapters.kv.base import AbstractKeyValueStore
from authgate.adapters.rate_limit import RATE_LIMIT_FAILURE_POLICY, FixedWindowRateLimiter
from authgate.core.errors import FailurePolicy, StoreUnavailableError


@pytest.fixture(params=[True, False], ids=["atomic", "read_then_write"])
def limiter(request, memory_store, clock) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(memory_store, atomic=request.param, clock=clock)


@pytest.fixture
def broken_store() -> MagicMock:
    store = MagicMock(spec=AbstractKeyValueStore)
    error = StoreUnavailableError(details={"store": "redis", "operation": "get"})
    for name in (
        "get", "set_with_ttl", "increment", "increment_within_limit", "expire", "get_ttl", "delete"
    ):
        getattr(store, name).side_effect = error
    return store


def test_failure_policy_is_fail_open() -> None:
    assert RATE_LIMIT_FAILURE_POLICY is FailurePolicy.FAIL_OPEN


def test_allows_capacity_then_denies(limiter: FixedWindowRateLimiter) -> None:
    for _ in range(3):
        assert limiter.is_allowed("k", 3, 60) is True

    assert limiter.is_allowed("k", 3, 60) is False


def test_denied_request_does_not_increment(limiter: FixedWindowRateLimiter, memory_store) -> None:
    limiter.is_allowed("k", 1, 60)
    limiter.is_allowed("k", 1, 60)
    limiter.is_allowed("k", 1, 60)

    assert memory_store.get("rate_limit:k") == "1"


def test_login_scenario(limiter: FixedWindowRateLimiter) -> None:
    key = "login:1.2.3.4"

    for _ in range(5):
        assert limiter.is_allowed(key, 5, 60) is True

    denied = limiter.consume(key, 5, 60)
    assert denied.allowed is False
    assert denied.remaining == 0
    assert 0 < denied.retry_after_seconds <= 60


def test_remaining_counts_down(limiter: FixedWindowRateLimiter) -> None:
    assert limiter.get_remaining_requests("k", 4) == 4

    limiter.is_allowed("k", 4, 60)
    limiter.is_allowed("k", 4, 60)

    assert limiter.get_remaining_requests("k", 4) == 2
    assert limiter.consume("k", 4, 60).remaining == 1


def test_window_resets_after_ttl(limiter: FixedWindowRateLimiter, clock) -> None:
    assert limiter.is_allowed("k", 1, 10) is True
    assert limiter.is_allowed("k", 1, 10) is False
    assert limiter.get_time_until_reset("k") == 10

    clock.advance(10)

    assert limiter.get_time_until_reset("k") == 0
    assert limiter.get_remaining_requests("k", 1) == 1
    assert limiter.is_allowed("k", 1, 10) is True


def test_denial_does_not_extend_window(limiter: FixedWindowRateLimiter, clock) -> None:
    limiter.is_allowed("k", 1, 10)
    clock.advance(6)

    assert limiter.is_allowed("k", 1, 10) is False
    assert limiter.get_time_until_reset("k") == 4


def test_counter_keeps_expiry_when_window_ends_mid_request(memory_store, clock, monkeypatch) -> None:
    limiter = FixedWindowRateLimiter(memory_store, atomic=False, clock=clock)
    assert limiter.is_allowed("k", 2, 10) is True

    read = memory_store.get

    def read_then_expire(key: str) -> str | None:
        value = read(key)
        clock.advance(10)
        return value

    # The window closes after the read, so increment recreates the key
    monkeypatch.setattr(memory_store, "get", read_then_expire)
    assert limiter.is_allowed("k", 2, 10) is True
    monkeypatch.undo()

    assert memory_store.get_ttl("rate_limit:k") == 10
    clock.advance(10)
    assert limiter.get_remaining_requests("k", 2) == 2
    assert limiter.is_allowed("k", 2, 10) is True


def test_reset_restores_capacity(limiter: FixedWindowRateLimiter) -> None:
    limiter.is_allowed("k", 1, 60)
    assert limiter.is_allowed("k", 1, 60) is False

    limiter.reset("k")

    assert limiter.get_remaining_requests("k", 1) == 1
    assert limiter.is_allowed("k", 1, 60) is True


def test_keys_are_isolated(limiter: FixedWindowRateLimiter) -> None:
    assert limiter.is_allowed("login:1.1.1.1", 1, 60) is True
    assert limiter.is_allowed("login:1.1.1.1", 1, 60) is False

    assert limiter.is_allowed("login:2.2.2.2", 1, 60) is True
    assert limiter.is_allowed("logout:1.1.1.1", 1, 60) is True


@pytest.mark.parametrize(
    "key,capacity,window",
    [
        ("", 1, 60),
        ("k", 0, 60),
        ("k", 1, 0),
    ],
)
def test_invalid_arguments(limiter: FixedWindowRateLimiter, key: str, capacity: int, window: int) -> None:
    with pytest.raises(ValueError):
        limiter.is_allowed(key, capacity, window)


@pytest.mark.parametrize("atomic", [True, False])
def test_store_unavailable_fails_open(broken_store: MagicMock, atomic: bool) -> None:
    limiter = FixedWindowRateLimiter(broken_store, atomic=atomic)

    result = limiter.consume("k", 1, 60)

    assert result.allowed is True
    assert limiter.is_allowed("k", 1, 60) is True


def test_store_unavailable_fail_closed_when_configured(broken_store: MagicMock) -> None:
    limiter = FixedWindowRateLimiter(broken_store, failure_policy=FailurePolicy.FAIL_CLOSED)

    result = limiter.consume("k", 1, 60)

    assert result.allowed is False
    assert result.retry_after_seconds == 60


def test_queries_degrade_on_store_error(broken_store: MagicMock) -> None:
    limiter = FixedWindowRateLimiter(broken_store)

    assert limiter.get_remaining_requests("k", 7) == 7
    assert limiter.get_time_until_reset("k") == 0
    # Logged, not raised
    limiter.reset("k")


def test_shared_counter_across_instances(redis_store) -> None:
    """Two limiter instances over the same Redis share one budget."""
    first = FixedWindowRateLimiter(redis_store)
    second = FixedWindowRateLimiter(redis_store, atomic=False)

    assert first.is_allowed("login:9.9.9.9", 2, 60) is True
    assert second.is_allowed("login:9.9.9.9", 2, 60) is True
    assert first.is_allowed("login:9.9.9.9", 2, 60) is False
    assert second.is_allowed("login:9.9.9.9", 2, 60) is False

    ttl = first.get_time_until_reset("login:9.9.9.9")
    assert 0 < ttl <= 60
