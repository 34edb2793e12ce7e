"""
Relational schema for account carts and wishlists.

Product and account ids are UUID-typed; demo catalog ids can never be stored.
"""
from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS: tuple[str, ...] = (
    "CREATE EXTENSION IF NOT EXISTS pgcrypto",
    """
    CREATE TABLE IF NOT EXISTS products (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        name TEXT NOT NULL,
        description TEXT,
        price NUMERIC(12, 2) NOT NULL DEFAULT 0 CHECK (price >= 0),
        image TEXT,
        seller_id UUID,
        seller_name TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cart_items (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id UUID NOT NULL,
        product_id UUID NOT NULL,
        quantity INTEGER NOT NULL CHECK (quantity >= 1),
        selected_color TEXT,
        selected_size TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        CONSTRAINT cart_items_line_unique
            UNIQUE NULLS NOT DISTINCT (user_id, product_id, selected_color, selected_size)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_cart_items_user ON cart_items(user_id)",
    """
    CREATE TABLE IF NOT EXISTS wishlist_items (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id UUID NOT NULL,
        product_id UUID NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        CONSTRAINT wishlist_items_unique UNIQUE (user_id, product_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_wishlist_items_user ON wishlist_items(user_id)",
)


def ensure_schema(db: Any, include_wishlist: bool = True) -> None:
    """Apply the DDL idempotently.

    Args:
        db: Object exposing ``get_connection()`` as a context manager
        include_wishlist: Skip the wishlist relation to run cart-only
    """
    statements = [
        stmt for stmt in SCHEMA_STATEMENTS if include_wishlist or "wishlist_items" not in stmt
    ]
    with db.get_connection() as conn:
        cursor = conn.cursor()
        for stmt in statements:
            cursor.execute(stmt)
    logger.info("Remote store schema ensured (%s statements)", len(statements))
