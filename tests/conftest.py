"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any import that builds settings, so
tests never read a developer's .env file or reach a real Redis/database.
"""

import base64
import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("JWT_SECRET", base64.b64encode(b"authgate-test-signing-key!" * 3).decode())
os.environ.setdefault("JWT_ISSUER", "authgate-test")
os.environ.setdefault("REDIS_URL", "memory://")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DATABASE_REFRESH_TOKEN_SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timezone

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from authgate.adapters.kv.factory import reset_kv_store
from authgate.adapters.kv.in_memory import InMemoryKeyValueStore
from authgate.adapters.kv.redis_store import RedisKeyValueStore
from authgate.adapters.persistence import RefreshTokenRepository, UserRepository
from authgate.adapters.persistence.database import (
    Base,
    close_db,
    configure_database,
    get_session_factory,
    init_db,
    session_scope,
)
from authgate.adapters.persistence.models import Permission, Role
from authgate.api.dependencies import reset_view_cache
from authgate.core.config import CacheSettings
from authgate.core.rate_limit import set_rate_limiter
from authgate.services.authenticator import hash_password
from authgate.utils.view_cache import ViewCache

TEST_PASSWORD = "correct horse battery staple"


class FakeClock:
    """Manually advanced time source (UNIX seconds)."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def as_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.now, tz=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Drop process-wide store, cache and limiter between tests."""
    reset_kv_store()
    reset_view_cache()
    set_rate_limiter(None)
    yield
    reset_kv_store()
    reset_view_cache()
    set_rate_limiter(None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis():
    client = fakeredis.FakeRedis(decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture
def redis_store(fake_redis) -> RedisKeyValueStore:
    return RedisKeyValueStore(fake_redis)


@pytest.fixture
def memory_store(clock: FakeClock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def view_cache(redis_store: RedisKeyValueStore) -> ViewCache:
    return ViewCache(redis_store, CacheSettings())


@pytest.fixture
def engine():
    """In-memory SQLite shared by every connection of the test."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_database(test_engine)
    init_db()
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    close_db()


@pytest.fixture
def session_factory(engine):
    return get_session_factory()


@pytest.fixture
def user_repo(session_factory) -> UserRepository:
    return UserRepository(session_factory)


@pytest.fixture
def token_repo(session_factory) -> RefreshTokenRepository:
    return RefreshTokenRepository(session_factory)


@pytest.fixture
def alice(user_repo: UserRepository, session_factory):
    """Regular user with one role granting one permission."""
    user = user_repo.create(
        username="alice",
        email="alice@example.com",
        password_hash=hash_password(TEST_PASSWORD),
        roles=["ROLE_USER"],
        first_name="Alice",
        last_name="Liddell",
    )
    with session_scope(session_factory) as session:
        role = session.query(Role).filter_by(name="ROLE_USER").one()
        role.permissions.append(Permission(name="profile:read"))
    return user
