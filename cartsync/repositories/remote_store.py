"""Remote store facade combining cart and wishlist repositories."""
from __future__ import annotations

from typing import Optional

from cartsync.domain.entities import CartLine, RemoteRowHandle

from .base import DatabaseProtocol
from .cart_repository import CartRepository
from .wishlist_repository import WishlistFetch, WishlistRepository


class RemoteStore:
    """Row-level CRUD against one account's cart and wishlist rows.

    Every method is blocking; the coordinator drives it through ``AsyncDBProxy``.
    """

    def __init__(self, db: DatabaseProtocol) -> None:
        self.db = db
        self.carts = CartRepository(db)
        self.wishlists = WishlistRepository(db)

    def fetch_cart(self, account_id: str) -> list[CartLine]:
        return self.carts.fetch_cart(account_id)

    def find_cart_row(
        self, account_id: str, product_id: str, color: str | None = None, size: str | None = None
    ) -> Optional[tuple[RemoteRowHandle, int]]:
        return self.carts.find_cart_row(account_id, product_id, color, size)

    def insert_cart_row(
        self,
        account_id: str,
        product_id: str,
        quantity: int,
        color: str | None = None,
        size: str | None = None,
    ) -> RemoteRowHandle:
        return self.carts.insert_cart_row(account_id, product_id, quantity, color, size)

    def update_cart_row_quantity(self, handle: RemoteRowHandle, quantity: int) -> bool:
        return self.carts.update_cart_row_quantity(handle, quantity)

    def delete_cart_row(self, handle: RemoteRowHandle) -> bool:
        return self.carts.delete_cart_row(handle)

    def delete_all_cart_rows(self, account_id: str) -> int:
        return self.carts.delete_all_cart_rows(account_id)

    def fetch_wishlist(self, account_id: str) -> WishlistFetch:
        return self.wishlists.fetch_wishlist(account_id)

    def insert_wishlist_row(self, account_id: str, product_id: str) -> bool:
        return self.wishlists.insert_wishlist_row(account_id, product_id)

    def delete_wishlist_row(self, account_id: str, product_id: str) -> bool:
        return self.wishlists.delete_wishlist_row(account_id, product_id)

    def delete_all_wishlist_rows(self, account_id: str) -> int:
        return self.wishlists.delete_all_wishlist_rows(account_id)
