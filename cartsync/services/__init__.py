"""Services orchestrating reconciliation between the two stores."""

from .cart_sync_service import CartSyncService
from .identity import IdentityFeed, resolve_initial_identity
from .merge import SyncReport, merge_local_into_remote
from .remote_attempt import RemoteOutcome, attempt_remote

__all__ = [
    "CartSyncService",
    "IdentityFeed",
    "resolve_initial_identity",
    "SyncReport",
    "merge_local_into_remote",
    "RemoteOutcome",
    "attempt_remote",
]
