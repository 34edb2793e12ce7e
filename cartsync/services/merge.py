"""One-shot transfer of anonymous local lines into the account store on sign-in."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from cartsync.core.identifiers import partition_remote_compatible
from cartsync.domain.entities import CartLine, WishlistLine

from .remote_attempt import attempt_remote

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """What a merge did with each local line."""

    account_id: str
    aborted: bool = False
    cancelled: bool = False
    synced_cart: list[CartLine] = field(default_factory=list)
    stranded_cart: list[CartLine] = field(default_factory=list)
    synced_wishlist: list[WishlistLine] = field(default_factory=list)
    stranded_wishlist: list[WishlistLine] = field(default_factory=list)
    wishlist_available: bool = True

    @property
    def complete(self) -> bool:
        """True when every submitted line was confirmed."""
        return not (self.aborted or self.cancelled or self.stranded_cart or self.stranded_wishlist)


@dataclass
class MergePlan:
    """Local collections split by remote compatibility."""

    remote_cart: list[CartLine]
    local_only_cart: list[CartLine]
    remote_wishlist: list[WishlistLine]
    local_only_wishlist: list[WishlistLine]

    @property
    def must_abort(self) -> bool:
        """Demo catalog lines present: the whole merge is skipped."""
        return bool(self.local_only_cart or self.local_only_wishlist)

    @property
    def is_empty(self) -> bool:
        return not (self.remote_cart or self.remote_wishlist)


def plan_merge(cart: list[CartLine], wishlist: list[WishlistLine]) -> MergePlan:
    remote_cart, local_only_cart = partition_remote_compatible(cart)
    remote_wishlist, local_only_wishlist = partition_remote_compatible(wishlist)
    return MergePlan(remote_cart, local_only_cart, remote_wishlist, local_only_wishlist)


async def submit_lines(
    account_id: str,
    cart: list[CartLine],
    wishlist: list[WishlistLine],
    remote: Any,
    *,
    wishlist_enabled: bool = True,
    is_current: Callable[[], bool] = lambda: True,
) -> SyncReport:
    """Insert every line remotely.

    Duplicate keys count as converged; any other failure strands the line
    locally. Stops early, marking the report cancelled, once ``is_current``
    turns false.
    """
    report = SyncReport(account_id=account_id, wishlist_available=wishlist_enabled)

    for line in cart:
        if not is_current():
            report.cancelled = True
            return report
        outcome = await attempt_remote(
            "sync_cart_line",
            remote.insert_cart_row,
            account_id,
            line.product_id,
            line.quantity,
            line.color,
            line.size,
        )
        if outcome.ok or outcome.conflict:
            report.synced_cart.append(line)
        else:
            report.stranded_cart.append(line)

    for line in wishlist:
        if not is_current():
            report.cancelled = True
            return report
        if not report.wishlist_available:
            report.stranded_wishlist.append(line)
            continue
        outcome = await attempt_remote("sync_wishlist_line", remote.insert_wishlist_row, account_id, line.product_id)
        if outcome.ok or outcome.conflict:
            report.synced_wishlist.append(line)
            continue
        if outcome.capability_missing:
            report.wishlist_available = False
        report.stranded_wishlist.append(line)

    if not is_current():
        report.cancelled = True
    return report


async def merge_local_into_remote(
    account_id: str,
    cart: list[CartLine],
    wishlist: list[WishlistLine],
    remote: Any,
    *,
    wishlist_enabled: bool = True,
    is_current: Callable[[], bool] = lambda: True,
) -> SyncReport:
    """Plan and run the sign-in merge; aborts untouched if demo lines exist."""
    plan = plan_merge(cart, wishlist)
    if plan.must_abort:
        logger.info(
            "Merge for %s aborted: %s cart and %s wishlist demo lines stay local",
            account_id,
            len(plan.local_only_cart),
            len(plan.local_only_wishlist),
        )
        return SyncReport(account_id=account_id, aborted=True, wishlist_available=wishlist_enabled)

    report = await submit_lines(
        account_id,
        plan.remote_cart,
        plan.remote_wishlist,
        remote,
        wishlist_enabled=wishlist_enabled,
        is_current=is_current,
    )
    logger.info(
        "Merge for %s: cart %s synced / %s stranded, wishlist %s synced / %s stranded",
        account_id,
        len(report.synced_cart),
        len(report.stranded_cart),
        len(report.synced_wishlist),
        len(report.stranded_wishlist),
    )
    return report
