"""Environment-driven configuration objects for cart synchronization."""
from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from cartsync.core.exceptions import ConfigurationException

DEFAULT_SESSION_TIMEOUT = 3.0
DEFAULT_LOCAL_TTL_SECONDS = 30 * 24 * 60 * 60


def _str_to_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"true", "1", "yes", "y"}


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationException(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigurationException(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationException(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(slots=True)
class Settings:
    database_url: str | None
    redis_url: str | None
    guest_cart_enabled: bool = False
    session_timeout: float = DEFAULT_SESSION_TIMEOUT
    local_ttl_seconds: int = DEFAULT_LOCAL_TTL_SECONDS
    db_min_conn: int = 1
    db_max_conn: int = 5
    sentry_dsn: str | None = None
    environment: str = "production"
    log_level: str = "INFO"

    @property
    def remote_configured(self) -> bool:
        """True when a relational store is configured."""
        return bool(self.database_url)


def load_settings() -> Settings:
    """Load environment variables once and expose typed settings."""
    load_dotenv()

    min_conn = _int_env("DB_MIN_CONN", 1)
    max_conn = _int_env("DB_MAX_CONN", 5)
    if max_conn < min_conn:
        raise ConfigurationException(
            f"DB_MAX_CONN ({max_conn}) must not be lower than DB_MIN_CONN ({min_conn})"
        )

    return Settings(
        database_url=os.getenv("DATABASE_URL") or None,
        redis_url=os.getenv("REDIS_URL") or None,
        guest_cart_enabled=_str_to_bool(os.getenv("CARTSYNC_GUEST_CART", "false")),
        session_timeout=_float_env("CARTSYNC_SESSION_TIMEOUT", DEFAULT_SESSION_TIMEOUT),
        local_ttl_seconds=_int_env("CARTSYNC_LOCAL_TTL", DEFAULT_LOCAL_TTL_SECONDS),
        db_min_conn=min_conn,
        db_max_conn=max_conn,
        sentry_dsn=os.getenv("SENTRY_DSN") or None,
        environment=os.getenv("CARTSYNC_ENV", "production"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
