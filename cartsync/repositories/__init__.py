"""Repository layer for the account relational store."""

from .base import BaseRepository
from .cart_repository import CartRepository
from .remote_store import RemoteStore
from .wishlist_repository import WishlistFetch, WishlistRepository

__all__ = [
    "BaseRepository",
    "CartRepository",
    "WishlistRepository",
    "WishlistFetch",
    "RemoteStore",
]
