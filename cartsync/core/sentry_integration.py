"""Sentry integration for error tracking and degraded-operation breadcrumbs."""
from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from cartsync.core.config import Settings
from cartsync.core.exceptions import ConstraintConflict, MalformedLocalData, RemoteUnavailable

logger = logging.getLogger(__name__)

_initialized = False

# Recovered locally; reported as breadcrumbs, never as events.
_RECOVERED_ERRORS = (RemoteUnavailable, ConstraintConflict, MalformedLocalData)


def _drop_recovered(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    exc_info = hint.get("exc_info")
    if exc_info and isinstance(exc_info[1], _RECOVERED_ERRORS):
        return None
    return event


def init_sentry(
    settings: Settings,
    enable_logging: bool = True,
    sample_rate: float = 1.0,
    traces_sample_rate: float = 0.0,
) -> bool:
    """Initialize Sentry error tracking.

    Args:
        settings: Loaded settings; nothing happens without ``sentry_dsn``
        enable_logging: Enable automatic logging integration
        sample_rate: Error sampling rate (1.0 = 100%)
        traces_sample_rate: Performance tracing rate

    Returns:
        True if Sentry was initialized successfully
    """
    global _initialized
    if not settings.sentry_dsn:
        logger.info("SENTRY_DSN not set - error tracking disabled")
        return False

    integrations = []
    if enable_logging:
        integrations.append(
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR,
            )
        )

    try:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            integrations=integrations,
            sample_rate=sample_rate,
            traces_sample_rate=traces_sample_rate,
            send_default_pii=False,
            before_send=_drop_recovered,
        )
    except Exception as e:
        logger.error("Failed to initialize Sentry: %s", e)
        return False

    _initialized = True
    logger.info("Sentry initialized for %s environment", settings.environment)
    return True


def capture_degradation(operation: str, error: BaseException | str, **extra: Any) -> None:
    """Record a degraded remote call as a breadcrumb on the current scope."""
    if not _initialized:
        return
    sentry_sdk.add_breadcrumb(
        category="cartsync.degraded",
        message=f"{operation}: {error}",
        level="warning",
        data=extra or None,
    )
