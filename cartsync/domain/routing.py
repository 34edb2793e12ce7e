"""Storage target resolution for a single mutation."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from cartsync.core.identifiers import is_remote_compatible
from cartsync.domain.sync_fsm import ACCOUNT_STATES, SyncState


@dataclass(frozen=True, slots=True)
class LocalTarget:
    """Write goes to the per-visitor key-value store."""

    reason: str = "anonymous"


@dataclass(frozen=True, slots=True)
class RemoteTarget:
    """Write goes to the account's rows in the relational store."""

    account_id: str


StorageTarget = Union[LocalTarget, RemoteTarget]


def resolve_target(
    state: SyncState,
    account_id: str | None,
    product_id: str,
    *,
    remote_enabled: bool = True,
) -> StorageTarget:
    """Decide once per mutation where it is dispatched."""
    if state not in ACCOUNT_STATES or not account_id:
        return LocalTarget("anonymous")
    if not is_remote_compatible(product_id):
        return LocalTarget("static_catalog")
    if not remote_enabled:
        return LocalTarget("capability_missing")
    return RemoteTarget(account_id)
