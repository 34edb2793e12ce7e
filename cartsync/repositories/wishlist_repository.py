"""Wishlist repository for account wishlist rows."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

import psycopg

from cartsync.domain.entities import WishlistLine

from .base import BaseRepository
from .cart_repository import _timestamp, row_to_product

logger = logging.getLogger(__name__)


@dataclass
class WishlistFetch:
    """Wishlist rows plus whether the relation exists at all."""

    lines: list[WishlistLine] = field(default_factory=list)
    available: bool = True


class WishlistRepository(BaseRepository):
    """Repository for per-account wishlist rows."""

    table = "wishlist_items"

    def fetch_wishlist(self, account_id: str) -> WishlistFetch:
        """Get wishlist lines joined to products.

        A missing ``wishlist_items`` relation is reported through
        ``WishlistFetch.available`` rather than raised.

        Raises:
            RemoteUnavailable: For any other failure
        """
        try:
            rows = self._select(account_id, joined=True)
        except psycopg.errors.UndefinedTable as e:
            if "wishlist_items" in str(e):
                logger.warning("wishlist_items relation is not provisioned; wishlist stays local")
                return WishlistFetch(available=False)
            logger.warning("Product join unavailable for wishlist %s; using catalog lookup", account_id)
            try:
                rows = self._select(account_id, joined=False)
            except Exception as inner:
                self._handle_db_error("fetch_wishlist", inner)
        except Exception as e:
            self._handle_db_error("fetch_wishlist", e)

        lines: list[WishlistLine] = []
        for row in rows:
            product_id = str(row["product_id"])
            product = row_to_product(row, product_id)
            if product is None:
                logger.info("Dropping wishlist row %s: product %s not found", row.get("id"), product_id)
                continue
            line = WishlistLine(product_id=product_id, product=product)
            created = _timestamp(row.get("created_at"))
            if created is not None:
                line.added_at = created
            lines.append(line)
        return WishlistFetch(lines=lines, available=True)

    def _select(self, account_id: str, joined: bool) -> list[dict]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            if joined:
                cursor.execute(
                    """
                    SELECT
                        w.id, w.product_id, w.created_at,
                        p.id AS joined_product_id,
                        p.name, p.price, p.image, p.description, p.seller_id, p.seller_name
                    FROM wishlist_items w
                    LEFT JOIN products p ON p.id = w.product_id
                    WHERE w.user_id = %s
                    ORDER BY w.created_at DESC
                """,
                    (account_id,),
                )
            else:
                cursor.execute(
                    """
                    SELECT id, product_id, created_at
                    FROM wishlist_items
                    WHERE user_id = %s
                    ORDER BY created_at DESC
                """,
                    (account_id,),
                )
            return cursor.fetchall()

    def insert_wishlist_row(self, account_id: str, product_id: str) -> bool:
        """Add product to the account's wishlist.

        Returns:
            True if a row was inserted, False if it was already present

        Raises:
            CapabilityMissing: If the wishlist relation does not exist
            RemoteUnavailable: If the insert fails otherwise
        """
        product_id = self._require_remote_id(product_id)
        try:
            with self.db.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "INSERT INTO wishlist_items (user_id, product_id) VALUES (%s, %s)",
                    (account_id, product_id),
                )
            return True
        except psycopg.errors.UniqueViolation:
            logger.debug("Wishlist row %s already present for %s", product_id, account_id)
            return False
        except Exception as e:
            self._handle_db_error("insert_wishlist_row", e, key=(account_id, product_id))

    def delete_wishlist_row(self, account_id: str, product_id: str) -> bool:
        product_id = self._require_remote_id(product_id)
        try:
            with self.db.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "DELETE FROM wishlist_items WHERE user_id = %s AND product_id = %s",
                    (account_id, product_id),
                )
                return cursor.rowcount > 0
        except Exception as e:
            self._handle_db_error("delete_wishlist_row", e)

    def delete_all_wishlist_rows(self, account_id: str) -> int:
        try:
            with self.db.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM wishlist_items WHERE user_id = %s", (account_id,))
                return cursor.rowcount
        except Exception as e:
            self._handle_db_error("delete_all_wishlist_rows", e)
