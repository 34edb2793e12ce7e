"""Bootstrap wiring logging, error tracking, stores, and the coordinator."""
from __future__ import annotations

import logging
from typing import Awaitable, Callable

from cartsync.core.async_db import AsyncDBProxy
from cartsync.core.config import Settings, load_settings
from cartsync.core.logging_config import setup_logging
from cartsync.core.sentry_integration import init_sentry
from cartsync.database.core import DatabaseCore
from cartsync.integrations.local_store import LocalStore
from cartsync.repositories.remote_store import RemoteStore
from cartsync.services.cart_sync_service import CartSyncService
from cartsync.services.identity import resolve_initial_identity

logger = logging.getLogger(__name__)


def create_remote_store(settings: Settings) -> RemoteStore | None:
    """Open the account store pool, or return None to run local-only."""
    if not settings.remote_configured:
        logger.warning("DATABASE_URL is not set; every line stays in the local store")
        return None
    db = DatabaseCore(
        settings.database_url,
        min_size=settings.db_min_conn,
        max_size=settings.db_max_conn,
    )
    return RemoteStore(db)


def build_cart_sync(
    visitor_id: str,
    settings: Settings | None = None,
    remote: RemoteStore | None = None,
) -> CartSyncService:
    """Create a coordinator for one visitor from configuration."""
    settings = settings or load_settings()
    setup_logging(settings.log_level)
    init_sentry(settings)

    local = LocalStore(visitor_id, settings.redis_url, ttl_seconds=settings.local_ttl_seconds)
    if remote is None:
        remote = create_remote_store(settings)
    proxy = AsyncDBProxy(remote, max_concurrency=settings.db_max_conn) if remote is not None else None
    return CartSyncService(local, proxy, guest_cart_enabled=settings.guest_cart_enabled)


async def start_cart_sync(
    visitor_id: str,
    session_check: Callable[[], Awaitable[str | None]],
    settings: Settings | None = None,
    remote: RemoteStore | None = None,
) -> CartSyncService:
    """Build the coordinator and start it from a bounded first session check."""
    settings = settings or load_settings()
    service = build_cart_sync(visitor_id, settings, remote)
    identity = await resolve_initial_identity(session_check, timeout=settings.session_timeout)
    await service.start(identity)
    return service
