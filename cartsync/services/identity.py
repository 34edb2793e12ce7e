"""Identity feed and the bounded initial session check."""
from __future__ import annotations

import logging
from typing import Awaitable, Callable

import anyio

from cartsync.domain.entities import Identity

logger = logging.getLogger(__name__)

IdentityCallback = Callable[[Identity], Awaitable[None]]


class IdentityFeed:
    """In-process fan-out of identity snapshots to subscribers."""

    def __init__(self, initial: Identity | None = None) -> None:
        self.current = initial or Identity(account_id=None, is_resolving=True)
        self._subscribers: list[IdentityCallback] = []

    def subscribe(self, callback: IdentityCallback) -> Callable[[], None]:
        """Register ``callback``; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    async def publish(self, identity: Identity) -> None:
        """Deliver ``identity`` to every subscriber, in subscription order."""
        self.current = identity
        for callback in list(self._subscribers):
            await callback(identity)

    async def resolving(self) -> None:
        await self.publish(Identity(account_id=self.current.account_id, is_resolving=True))

    async def signed_in(self, account_id: str) -> None:
        await self.publish(Identity(account_id=account_id, is_resolving=False))

    async def signed_out(self) -> None:
        await self.publish(Identity(account_id=None, is_resolving=False))


async def resolve_initial_identity(
    session_check: Callable[[], Awaitable[str | None]],
    timeout: float = 3.0,
) -> Identity:
    """Run the session check, giving up as anonymous after ``timeout`` seconds."""
    try:
        with anyio.fail_after(timeout):
            account_id = await session_check()
    except TimeoutError:
        logger.warning("Session check timed out after %.1fs, proceeding with no user", timeout)
        return Identity(account_id=None, is_resolving=False)
    except Exception as e:
        logger.error("Session check error: %s", e)
        return Identity(account_id=None, is_resolving=False)
    return Identity(account_id=account_id or None, is_resolving=False)
