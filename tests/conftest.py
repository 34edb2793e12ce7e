"""Shared pytest fixtures: fake Redis, fake account store, fake DB connections."""
from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import MagicMock

import pytest

from cartsync.core.exceptions import CapabilityMissing, ConstraintConflict, RemoteUnavailable
from cartsync.domain.entities import CartLine, Product, RemoteRowHandle, WishlistLine
from cartsync.integrations.local_store import LocalStore
from cartsync.repositories.wishlist_repository import WishlistFetch

ACCOUNT_A = "0b7e6a4c-1f2d-4c3b-9a8e-7d6c5b4a3f21"
ACCOUNT_B = "5f3d2c1b-0a9e-4d8c-b7a6-e5d4c3b2a190"

SHIRT_ID = "3fa85f64-5717-4562-b3fc-2c963f66afa6"
HOODIE_ID = "9c1e4b2a-6d3f-4e8a-a5b7-1c2d3e4f5a6b"
MUG_ID = "d4e5f6a7-b8c9-4dae-8f01-23456789abcd"


@dataclass
class FakeRedisClient:
    data: dict[str, str] = field(default_factory=dict)
    expiry: dict[str, int] = field(default_factory=dict)
    setex_calls: list[tuple[str, int]] = field(default_factory=list)
    broken: bool = False

    def ping(self) -> bool:
        return True

    def get(self, key: str):
        if self.broken:
            raise ConnectionError("redis down")
        return self.data.get(key)

    def setex(self, key: str, ttl: int, value: str) -> bool:
        if self.broken:
            raise ConnectionError("redis down")
        self.data[key] = value
        self.expiry[key] = ttl
        self.setex_calls.append((key, ttl))
        return True

    def delete(self, key: str) -> int:
        if self.broken:
            raise ConnectionError("redis down")
        existed = 1 if key in self.data else 0
        self.data.pop(key, None)
        self.expiry.pop(key, None)
        return existed


class FakeRemoteStore:
    """In-memory stand-in for ``RemoteStore`` with call counters and failure switches."""

    def __init__(self) -> None:
        self.cart_rows: dict[tuple, dict[str, Any]] = {}
        self.wishlist_rows: dict[tuple[str, str], float] = {}
        self.products: dict[str, Product] = {}
        self.calls: Counter = Counter()
        self.down = False
        self.wishlist_missing = False
        self.fail_on: set[str] = set()
        self.block_inserts: threading.Event | None = None
        self.insert_entered = threading.Event()
        self._next_id = 0

    def _enter(self, name: str) -> None:
        self.calls[name] += 1
        if self.down or name in self.fail_on:
            raise RemoteUnavailable(name, "connection refused")

    def _enter_wishlist(self, name: str) -> None:
        self._enter(name)
        if self.wishlist_missing:
            raise CapabilityMissing("wishlist_items")

    def _product(self, product_id: str) -> Product:
        return self.products.get(product_id) or Product(id=product_id, name=f"Remote {product_id[:4]}", price=10.0)

    @property
    def remote_calls(self) -> int:
        return sum(self.calls.values())

    def wishlist_calls(self) -> int:
        return sum(count for name, count in self.calls.items() if "wishlist" in name)

    def quantity(self, account_id: str, product_id: str, color=None, size=None) -> int | None:
        row = self.cart_rows.get((account_id, product_id, color, size))
        return row["quantity"] if row else None

    def seed_cart(self, account_id: str, product: Product, quantity: int, color=None, size=None) -> None:
        self.products[product.id] = product
        self._next_id += 1
        self.cart_rows[(account_id, product.id, color, size)] = {"id": f"row-{self._next_id}", "quantity": quantity}

    def seed_wishlist(self, account_id: str, product: Product) -> None:
        self.products[product.id] = product
        self.wishlist_rows[(account_id, product.id)] = 0.0

    def fetch_cart(self, account_id: str) -> list[CartLine]:
        self._enter("fetch_cart")
        return [
            CartLine(
                product_id=pid,
                quantity=row["quantity"],
                product=self._product(pid),
                color=color,
                size=size,
                row_id=row["id"],
            )
            for (account, pid, color, size), row in self.cart_rows.items()
            if account == account_id
        ]

    def find_cart_row(self, account_id, product_id, color=None, size=None):
        self._enter("find_cart_row")
        row = self.cart_rows.get((account_id, product_id, color, size))
        if row is None:
            return None
        return RemoteRowHandle(row["id"], account_id, product_id, color, size), row["quantity"]

    def insert_cart_row(self, account_id, product_id, quantity, color=None, size=None):
        self._enter("insert_cart_row")
        if self.block_inserts is not None:
            self.insert_entered.set()
            self.block_inserts.wait(timeout=5)
        key = (account_id, product_id, color, size)
        if key in self.cart_rows:
            raise ConstraintConflict("cart_items", key)
        self._next_id += 1
        self.cart_rows[key] = {"id": f"row-{self._next_id}", "quantity": quantity}
        return RemoteRowHandle(f"row-{self._next_id}", account_id, product_id, color, size)

    def update_cart_row_quantity(self, handle: RemoteRowHandle, quantity: int) -> bool:
        self._enter("update_cart_row_quantity")
        row = self.cart_rows.get(handle.match_key)
        if row is None:
            return False
        row["quantity"] = quantity
        return True

    def delete_cart_row(self, handle: RemoteRowHandle) -> bool:
        self._enter("delete_cart_row")
        return self.cart_rows.pop(handle.match_key, None) is not None

    def delete_all_cart_rows(self, account_id: str) -> int:
        self._enter("delete_all_cart_rows")
        keys = [key for key in self.cart_rows if key[0] == account_id]
        for key in keys:
            del self.cart_rows[key]
        return len(keys)

    def fetch_wishlist(self, account_id: str) -> WishlistFetch:
        self._enter("fetch_wishlist")
        if self.wishlist_missing:
            return WishlistFetch(available=False)
        return WishlistFetch(
            lines=[
                WishlistLine(product_id=pid, product=self._product(pid))
                for (account, pid) in self.wishlist_rows
                if account == account_id
            ]
        )

    def insert_wishlist_row(self, account_id: str, product_id: str) -> bool:
        self._enter_wishlist("insert_wishlist_row")
        if (account_id, product_id) in self.wishlist_rows:
            return False
        self.wishlist_rows[(account_id, product_id)] = 0.0
        return True

    def delete_wishlist_row(self, account_id: str, product_id: str) -> bool:
        self._enter_wishlist("delete_wishlist_row")
        return self.wishlist_rows.pop((account_id, product_id), None) is not None

    def delete_all_wishlist_rows(self, account_id: str) -> int:
        self._enter_wishlist("delete_all_wishlist_rows")
        keys = [key for key in self.wishlist_rows if key[0] == account_id]
        for key in keys:
            del self.wishlist_rows[key]
        return len(keys)


@pytest.fixture
def fake_redis(monkeypatch):
    import cartsync.integrations.local_store as local_store_module

    client = FakeRedisClient()
    monkeypatch.setattr(local_store_module.redis, "from_url", lambda *args, **kwargs: client)
    return client


@pytest.fixture
def local_store(fake_redis) -> LocalStore:
    return LocalStore("visitor-1", redis_url="redis://fake")


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def shirt() -> Product:
    return Product(id=SHIRT_ID, name="Linen Shirt", price=40.0, seller_id="seller-a", seller_name="Atelier A")


@pytest.fixture
def hoodie() -> Product:
    return Product(id=HOODIE_ID, name="Zip Hoodie", price=55.5, seller_id="seller-b", seller_name="Bench B")


@pytest.fixture
def mug() -> Product:
    return Product(id=MUG_ID, name="Stone Mug", price=12.0, seller_id="seller-a", seller_name="Atelier A")


@pytest.fixture
def demo_product() -> Product:
    from cartsync.core.catalog import product_by_id

    return product_by_id(1)


def make_fake_db(*, rows=None, one=None, rowcount: int = 1, error: Exception | None = None):
    """MagicMock database whose ``get_connection()`` yields a scripted cursor."""
    cursor = MagicMock()
    cursor.fetchall.return_value = rows or []
    cursor.fetchone.return_value = one
    cursor.rowcount = rowcount
    if error is not None:
        cursor.execute.side_effect = error
    conn = MagicMock()
    conn.cursor.return_value = cursor
    ctx = MagicMock()
    ctx.__enter__.return_value = conn
    ctx.__exit__.return_value = None
    db = MagicMock()
    db.get_connection.return_value = ctx
    return db, cursor
