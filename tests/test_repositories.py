"""Tests for repository layer."""
from __future__ import annotations

from datetime import datetime, timezone

import psycopg
import pytest

from cartsync.core.exceptions import (
    CapabilityMissing,
    ConstraintConflict,
    RemoteUnavailable,
    ValidationException,
)
from cartsync.domain.entities import RemoteRowHandle
from cartsync.repositories import CartRepository, RemoteStore, WishlistRepository

from conftest import ACCOUNT_A, SHIRT_ID, make_fake_db


def _joined_row(**overrides):
    row = {
        "id": "row-1",
        "product_id": SHIRT_ID,
        "quantity": 2,
        "selected_color": "red",
        "selected_size": None,
        "created_at": datetime(2024, 5, 1, tzinfo=timezone.utc),
        "joined_product_id": SHIRT_ID,
        "name": "Linen Shirt",
        "price": 40,
        "image": None,
        "description": None,
        "seller_id": "seller-a",
        "seller_name": "Atelier A",
    }
    row.update(overrides)
    return row


def test_fetch_cart_maps_joined_rows() -> None:
    db, _ = make_fake_db(rows=[_joined_row()])

    lines = CartRepository(db).fetch_cart(ACCOUNT_A)

    assert len(lines) == 1
    line = lines[0]
    assert line.product.name == "Linen Shirt"
    assert line.product.price == 40.0
    assert line.color == "red"
    assert line.row_id == "row-1"
    assert line.added_at == datetime(2024, 5, 1, tzinfo=timezone.utc).timestamp()


def test_fetch_cart_drops_unresolvable_rows() -> None:
    missing = _joined_row(id="row-2", product_id="11111111-2222-4333-8444-555555555555", joined_product_id=None)
    db, _ = make_fake_db(rows=[_joined_row(), missing])

    lines = CartRepository(db).fetch_cart(ACCOUNT_A)

    assert [line.row_id for line in lines] == ["row-1"]


def test_fetch_cart_falls_back_without_products_relation() -> None:
    db, cursor = make_fake_db(rows=[{"id": "r", "product_id": 1, "quantity": 1, "created_at": None}])
    cursor.execute.side_effect = [psycopg.errors.UndefinedTable("relation \"products\" does not exist"), None]

    lines = CartRepository(db).fetch_cart(ACCOUNT_A)

    assert lines[0].product.name == "Classic T-Shirt"
    assert cursor.execute.call_count == 2


def test_fetch_cart_failure_is_remote_unavailable() -> None:
    db, _ = make_fake_db(error=psycopg.OperationalError("connection refused"))

    with pytest.raises(RemoteUnavailable):
        CartRepository(db).fetch_cart(ACCOUNT_A)


def test_find_cart_row_uses_null_safe_match() -> None:
    db, cursor = make_fake_db(one={"id": "row-7", "quantity": 3})

    handle, quantity = CartRepository(db).find_cart_row(ACCOUNT_A, SHIRT_ID, None, "M")

    assert quantity == 3
    assert handle == RemoteRowHandle("row-7", ACCOUNT_A, SHIRT_ID, None, "M")
    sql, params = cursor.execute.call_args.args
    assert "IS NOT DISTINCT FROM" in sql
    assert params == (ACCOUNT_A, SHIRT_ID, None, "M")


def test_find_cart_row_absent_returns_none() -> None:
    db, _ = make_fake_db(one=None)

    assert CartRepository(db).find_cart_row(ACCOUNT_A, SHIRT_ID) is None


def test_demo_ids_are_rejected_before_io() -> None:
    db, cursor = make_fake_db()

    with pytest.raises(ValidationException):
        CartRepository(db).insert_cart_row(ACCOUNT_A, "2", 1)
    cursor.execute.assert_not_called()


def test_duplicate_insert_is_constraint_conflict() -> None:
    db, _ = make_fake_db(error=psycopg.errors.UniqueViolation("duplicate key"))

    with pytest.raises(ConstraintConflict) as exc_info:
        CartRepository(db).insert_cart_row(ACCOUNT_A, SHIRT_ID, 1, "red")
    assert exc_info.value.key == (ACCOUNT_A, SHIRT_ID, "red", None)


def test_insert_returns_handle_with_row_id() -> None:
    db, _ = make_fake_db(one={"id": "new-row"})

    handle = CartRepository(db).insert_cart_row(ACCOUNT_A, SHIRT_ID, 2)

    assert handle.row_id == "new-row"


def test_update_without_row_id_uses_match_key() -> None:
    db, cursor = make_fake_db(rowcount=1)
    handle = RemoteRowHandle(None, ACCOUNT_A, SHIRT_ID, "red", None)

    assert CartRepository(db).update_cart_row_quantity(handle, 4)
    sql, params = cursor.execute.call_args.args
    assert "IS NOT DISTINCT FROM" in sql
    assert params == (4, ACCOUNT_A, SHIRT_ID, "red", None)


def test_delete_all_returns_rowcount() -> None:
    db, _ = make_fake_db(rowcount=3)

    assert CartRepository(db).delete_all_cart_rows(ACCOUNT_A) == 3


def test_missing_wishlist_relation_reports_unavailable() -> None:
    db, _ = make_fake_db(error=psycopg.errors.UndefinedTable('relation "wishlist_items" does not exist'))

    fetched = WishlistRepository(db).fetch_wishlist(ACCOUNT_A)

    assert not fetched.available
    assert fetched.lines == []


def test_missing_wishlist_relation_on_insert_is_capability_missing() -> None:
    db, _ = make_fake_db(error=psycopg.errors.UndefinedTable('relation "wishlist_items" does not exist'))

    with pytest.raises(CapabilityMissing):
        WishlistRepository(db).insert_wishlist_row(ACCOUNT_A, SHIRT_ID)


def test_duplicate_wishlist_insert_is_converged() -> None:
    db, _ = make_fake_db(error=psycopg.errors.UniqueViolation("duplicate key"))

    assert WishlistRepository(db).insert_wishlist_row(ACCOUNT_A, SHIRT_ID) is False


def test_remote_store_delegates_to_repositories() -> None:
    db, _ = make_fake_db(rows=[_joined_row(selected_color=None)])

    store = RemoteStore(db)

    assert store.fetch_cart(ACCOUNT_A)[0].product_id == SHIRT_ID
    assert store.fetch_wishlist(ACCOUNT_A).lines[0].product_id == SHIRT_ID


def test_cart_only_schema_skips_wishlist_relation() -> None:
    from cartsync.database.schema import SCHEMA_STATEMENTS, ensure_schema

    db, cursor = make_fake_db()

    ensure_schema(db, include_wishlist=False)

    executed = [call.args[0] for call in cursor.execute.call_args_list]
    assert executed
    assert not any("wishlist_items" in stmt for stmt in executed)
    assert len(executed) < len(SCHEMA_STATEMENTS)
