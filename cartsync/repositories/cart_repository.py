"""Cart repository for account cart rows."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

import psycopg

from cartsync.core.catalog import product_by_id
from cartsync.domain.entities import CartLine, Product, RemoteRowHandle

from .base import BaseRepository

logger = logging.getLogger(__name__)

_PRODUCT_COLUMNS = ("name", "price", "image", "description", "seller_id", "seller_name")

_MATCH_CLAUSE = """
    user_id = %s
    AND product_id = %s
    AND selected_color IS NOT DISTINCT FROM %s
    AND selected_size IS NOT DISTINCT FROM %s
"""


def row_to_product(row: Any, product_id: str) -> Optional[Product]:
    """Product from joined columns, else the demo catalog, else None."""
    if row.get("joined_product_id") is not None:
        data = {"id": product_id}
        for column in _PRODUCT_COLUMNS:
            value = row.get(column)
            if value is not None:
                data[column] = str(value) if column == "seller_id" else value
        if data.get("price") is not None:
            data["price"] = float(data["price"])
        return Product.model_validate(data)
    return product_by_id(product_id)


def _timestamp(value: Any) -> float | None:
    if isinstance(value, datetime):
        return value.timestamp()
    return None


class CartRepository(BaseRepository):
    """Repository for per-account cart rows."""

    table = "cart_items"

    def fetch_cart(self, account_id: str) -> list[CartLine]:
        """Get the account's cart lines joined to products.

        Rows that resolve neither through the join nor the demo catalog are dropped.

        Raises:
            RemoteUnavailable: If the query fails
        """
        try:
            rows = self._select_joined(account_id)
        except psycopg.errors.UndefinedTable:
            logger.warning("Product join unavailable for cart %s; using catalog lookup", account_id)
            try:
                rows = self._select_plain(account_id)
            except Exception as e:
                self._handle_db_error("fetch_cart", e)
        except Exception as e:
            self._handle_db_error("fetch_cart", e)

        lines: list[CartLine] = []
        for row in rows:
            product_id = str(row["product_id"])
            product = row_to_product(row, product_id)
            if product is None:
                logger.info("Dropping cart row %s: product %s not found", row.get("id"), product_id)
                continue
            line = CartLine(
                product_id=product_id,
                quantity=max(1, int(row.get("quantity") or 1)),
                product=product,
                color=row.get("selected_color"),
                size=row.get("selected_size"),
                row_id=str(row["id"]),
            )
            created = _timestamp(row.get("created_at"))
            if created is not None:
                line.added_at = created
            lines.append(line)
        return lines

    def _select_joined(self, account_id: str) -> list[dict]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT
                    c.id, c.product_id, c.quantity, c.selected_color, c.selected_size,
                    c.created_at,
                    p.id AS joined_product_id,
                    p.name, p.price, p.image, p.description, p.seller_id, p.seller_name
                FROM cart_items c
                LEFT JOIN products p ON p.id = c.product_id
                WHERE c.user_id = %s
                ORDER BY c.created_at DESC
            """,
                (account_id,),
            )
            return cursor.fetchall()

    def _select_plain(self, account_id: str) -> list[dict]:
        with self.db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, product_id, quantity, selected_color, selected_size, created_at
                FROM cart_items
                WHERE user_id = %s
                ORDER BY created_at DESC
            """,
                (account_id,),
            )
            return cursor.fetchall()

    def find_cart_row(
        self,
        account_id: str,
        product_id: str,
        color: str | None = None,
        size: str | None = None,
    ) -> Optional[tuple[RemoteRowHandle, int]]:
        """Find the row matching the line key; unset variants match only unset.

        Returns:
            (handle, quantity) or None when absent
        """
        product_id = self._require_remote_id(product_id)
        try:
            with self.db.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    f"SELECT id, quantity FROM cart_items WHERE {_MATCH_CLAUSE} LIMIT 1",
                    (account_id, product_id, color, size),
                )
                row = cursor.fetchone()
        except Exception as e:
            self._handle_db_error("find_cart_row", e)
        if not row:
            return None
        handle = RemoteRowHandle(
            row_id=str(row["id"]),
            account_id=account_id,
            product_id=product_id,
            color=color,
            size=size,
        )
        return handle, int(row["quantity"])

    def insert_cart_row(
        self,
        account_id: str,
        product_id: str,
        quantity: int,
        color: str | None = None,
        size: str | None = None,
    ) -> RemoteRowHandle:
        """Insert a new cart row.

        Raises:
            ConstraintConflict: If a row with the same key already exists
            RemoteUnavailable: If the insert fails otherwise
        """
        product_id = self._require_remote_id(product_id)
        try:
            with self.db.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO cart_items (user_id, product_id, quantity, selected_color, selected_size)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING id
                """,
                    (account_id, product_id, int(quantity), color, size),
                )
                row = cursor.fetchone()
        except Exception as e:
            self._handle_db_error("insert_cart_row", e, key=(account_id, product_id, color, size))
        return RemoteRowHandle(
            row_id=str(row["id"]) if row else None,
            account_id=account_id,
            product_id=product_id,
            color=color,
            size=size,
        )

    def update_cart_row_quantity(self, handle: RemoteRowHandle, quantity: int) -> bool:
        """Set quantity on the row, re-deriving it by key when the id is unknown."""
        try:
            with self.db.get_connection() as conn:
                cursor = conn.cursor()
                if handle.row_id:
                    cursor.execute(
                        "UPDATE cart_items SET quantity = %s, updated_at = now() WHERE id = %s",
                        (int(quantity), handle.row_id),
                    )
                else:
                    cursor.execute(
                        f"UPDATE cart_items SET quantity = %s, updated_at = now() WHERE {_MATCH_CLAUSE}",
                        (int(quantity), *handle.match_key),
                    )
                return cursor.rowcount > 0
        except Exception as e:
            self._handle_db_error("update_cart_row_quantity", e)

    def delete_cart_row(self, handle: RemoteRowHandle) -> bool:
        try:
            with self.db.get_connection() as conn:
                cursor = conn.cursor()
                if handle.row_id:
                    cursor.execute("DELETE FROM cart_items WHERE id = %s", (handle.row_id,))
                else:
                    cursor.execute(
                        f"DELETE FROM cart_items WHERE {_MATCH_CLAUSE}",
                        handle.match_key,
                    )
                return cursor.rowcount > 0
        except Exception as e:
            self._handle_db_error("delete_cart_row", e)

    def delete_all_cart_rows(self, account_id: str) -> int:
        try:
            with self.db.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM cart_items WHERE user_id = %s", (account_id,))
                return cursor.rowcount
        except Exception as e:
            self._handle_db_error("delete_all_cart_rows", e)
