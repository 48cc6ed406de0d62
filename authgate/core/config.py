"""Service configuration, grouped by concern and read from the environment.

Every group is its own ``BaseSettings`` with an env prefix (``JWT_``,
``REDIS_``, ``DATABASE_``, ``CACHE_``, ``RATE_LIMIT_``, ``LOG_``, ``APP_``).
``APP_ENV`` (development, testing, staging, production) selects an optional
``.env.{APP_ENV}`` file at the project root, loaded into ``os.environ`` before
the groups are built. Deployments that inject variables directly need no file.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_ENV = os.getenv("APP_ENV", "development")

PROJECT_ROOT = Path(__file__).resolve().parents[2]

KNOWN_ENVIRONMENTS = ("development", "testing", "staging", "production")


def _load_env_file(app_env: str) -> Path | None:
    """Load ``.env.{app_env}`` into os.environ if present.

    Nested BaseSettings do not share an ``env_file``, so the file is applied
    to the process environment once instead.
    """

    name = app_env if app_env in KNOWN_ENVIRONMENTS else "development"
    env_path = PROJECT_ROOT / f".env.{name}"
    if not env_path.is_file():
        return None
    load_dotenv(env_path, override=True)
    return env_path


ENV_FILE = _load_env_file(APP_ENV)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    title: str = Field(
        "authgate",
        description="Service name shown in OpenAPI docs",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class JWTSettings(BaseSettings):
    """Signing and lifetime configuration for access and refresh tokens."""

    secret: str = Field(
        ...,
        description="Base64-encoded HMAC secret (at least 64 decoded bytes for HS512)",
    )
    issuer: str = Field(
        "authgate",
        description="Value of the iss claim on issued access tokens",
    )
    access_token_ttl_seconds: int = Field(
        900,
        description="Access token lifetime in seconds",
        ge=1,
    )
    refresh_token_ttl_seconds: int = Field(
        604800,
        description="Refresh token lifetime in seconds",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Connection settings for the shared key/value store."""

    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        description="Connect and read timeout for every Redis call",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class DatabaseSettings(BaseSettings):
    """Durable store settings (users, roles, refresh tokens)."""

    url: str = Field(
        "sqlite:///./authgate.db",
        description="SQLAlchemy database URL",
    )
    echo: bool = Field(
        False,
        description="Log every SQL statement",
    )
    refresh_token_sweep_interval_seconds: int = Field(
        3600,
        description="Interval of the expired refresh token sweep (0 disables it)",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """TTL per cached entity class, stored in Redis."""

    enabled: bool = Field(
        True,
        description="Enable the read-through user view cache",
    )
    user_ttl_seconds: int = Field(1800, ge=1)
    role_ttl_seconds: int = Field(3600, ge=1)
    permission_ttl_seconds: int = Field(3600, ge=1)
    refresh_token_ttl_seconds: int = Field(604800, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Per-endpoint fixed-window limits."""

    enabled: bool = Field(
        True,
        description="Enable rate limiting on protected endpoints",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers when throttling",
    )
    atomic: bool = Field(
        True,
        description="Use a single atomic check-and-increment per request",
    )

    register_capacity: int = Field(3, ge=1)
    register_window_seconds: int = Field(300, ge=1)
    register_message: str = "Too many registration attempts. Please try again after 5 minutes."

    login_capacity: int = Field(5, ge=1)
    login_window_seconds: int = Field(60, ge=1)
    login_message: str = "Too many login attempts. Please try again after 1 minute."

    refresh_capacity: int = Field(10, ge=1)
    refresh_window_seconds: int = Field(60, ge=1)
    refresh_message: str = "Too many token refresh attempts. Please try again later."

    logout_capacity: int = Field(10, ge=1)
    logout_window_seconds: int = Field(60, ge=1)
    logout_message: str = "Too many logout attempts. Please try again later."

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10_485_760, description="Rotate file logs after this size (0 disables)")
    backup_count: int = Field(5, description="Rotated log files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


def _build_jwt_settings() -> "JWTSettings":
    """JWT group from the environment; JWT_SECRET has no default."""

    return JWTSettings()  # type: ignore[call-arg]


class Settings(BaseSettings):
    """All configuration groups.

    Built once at import; a missing JWT_SECRET fails here, before any
    request is served.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    jwt: JWTSettings = Field(default_factory=_build_jwt_settings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(case_sensitive=False)


settings = Settings()
