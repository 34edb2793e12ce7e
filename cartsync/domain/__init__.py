"""Domain package."""

from .entities import CartLine, Identity, PendingAction, Product, RemoteRowHandle, WishlistLine
from .routing import LocalTarget, RemoteTarget, StorageTarget, resolve_target
from .sync_fsm import SyncState

__all__ = [
    # Entities
    "Product",
    "CartLine",
    "WishlistLine",
    "Identity",
    "RemoteRowHandle",
    "PendingAction",
    # Routing
    "LocalTarget",
    "RemoteTarget",
    "StorageTarget",
    "resolve_target",
    "SyncState",
]
