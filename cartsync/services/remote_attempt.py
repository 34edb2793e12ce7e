"""Attempt-remote-then-degrade helper."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from cartsync.core.exceptions import (
    AuthRequired,
    CapabilityMissing,
    ConstraintConflict,
    ValidationException,
)
from cartsync.core.sentry_integration import capture_degradation

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RemoteOutcome:
    """Result of a remote attempt: ``ok`` with a value, or degraded with a reason."""

    ok: bool
    value: Any = None
    reason: str | None = None
    error: BaseException | None = None

    @property
    def degraded(self) -> bool:
        return not self.ok

    @property
    def capability_missing(self) -> bool:
        return isinstance(self.error, CapabilityMissing)

    @property
    def conflict(self) -> bool:
        return isinstance(self.error, ConstraintConflict)


def _reason_for(error: BaseException) -> str:
    if isinstance(error, CapabilityMissing):
        return "capability_missing"
    if isinstance(error, ConstraintConflict):
        return "constraint_conflict"
    return "remote_unavailable"


async def attempt_remote(
    operation: str,
    call: Callable[..., Awaitable[Any]],
    *args: Any,
    **kwargs: Any,
) -> RemoteOutcome:
    """Await ``call`` and turn any failure into a degraded outcome.

    Only caller errors (``AuthRequired``, ``ValidationException``) propagate.
    """
    try:
        value = await call(*args, **kwargs)
    except (AuthRequired, ValidationException):
        raise
    except Exception as exc:
        reason = _reason_for(exc)
        if reason == "constraint_conflict":
            logger.info("Remote %s converged on existing row: %s", operation, exc)
        else:
            logger.warning("Remote %s degraded (%s): %s", operation, reason, exc)
            capture_degradation(operation, exc, reason=reason)
        return RemoteOutcome(ok=False, reason=reason, error=exc)
    return RemoteOutcome(ok=True, value=value)
