"""Wishlist behaviour when the account store has no wishlist relation."""
from __future__ import annotations

import pytest

from cartsync.domain.entities import Identity
from cartsync.services.cart_sync_service import CartSyncService

from conftest import ACCOUNT_A


@pytest.mark.asyncio
async def test_missing_relation_disables_remote_wishlist(local_store, remote) -> None:
    remote.wishlist_missing = True
    service = CartSyncService(local_store, remote)

    await service.start(Identity(account_id=ACCOUNT_A))

    assert not service.wishlist_remote_enabled
    assert service.wishlist == []


@pytest.mark.asyncio
async def test_wishlist_ops_make_no_remote_calls_after_downgrade(local_store, remote, shirt) -> None:
    remote.wishlist_missing = True
    service = CartSyncService(local_store, remote)
    await service.start(Identity(account_id=ACCOUNT_A))
    calls_before = remote.wishlist_calls()

    await service.add_to_wishlist(shirt)
    assert service.is_in_wishlist(shirt.id)
    assert local_store.load_wishlist()[0].product_id == shirt.id

    await service.remove_from_wishlist(shirt.id)
    await service.add_to_wishlist(shirt)
    await service.clear_wishlist()
    await service.refresh()

    assert remote.wishlist_calls() == calls_before
    assert service.wishlist == []


@pytest.mark.asyncio
async def test_cart_keeps_working_after_downgrade(local_store, remote, shirt) -> None:
    remote.wishlist_missing = True
    service = CartSyncService(local_store, remote)
    await service.start(Identity(account_id=ACCOUNT_A))

    await service.add_to_cart(shirt)

    assert remote.quantity(ACCOUNT_A, shirt.id) == 1


@pytest.mark.asyncio
async def test_capability_missing_on_write_downgrades(local_store, remote, shirt, hoodie) -> None:
    service = CartSyncService(local_store, remote)
    await service.start(Identity(account_id=ACCOUNT_A))
    assert service.wishlist_remote_enabled
    remote.wishlist_missing = True

    await service.add_to_wishlist(shirt)
    inserts = remote.calls["insert_wishlist_row"]
    await service.add_to_wishlist(hoodie)

    assert not service.wishlist_remote_enabled
    assert remote.calls["insert_wishlist_row"] == inserts
    assert [line.product_id for line in local_store.load_wishlist()] == [shirt.id, hoodie.id]


@pytest.mark.asyncio
async def test_downgrade_outlives_sign_out(local_store, remote, shirt) -> None:
    remote.wishlist_missing = True
    service = CartSyncService(local_store, remote)
    await service.start(Identity(account_id=ACCOUNT_A))

    await service.handle_identity(Identity(account_id=None))
    await service.handle_identity(Identity(account_id=ACCOUNT_A))

    assert not service.wishlist_remote_enabled
    assert remote.calls["fetch_wishlist"] == 1
