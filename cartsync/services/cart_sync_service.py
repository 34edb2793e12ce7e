"""Cart and wishlist reconciliation between the visitor store and the account store.

``CartSyncService`` owns the in-memory projection exposed to the presentation
layer. It reacts to identity snapshots, runs the sign-in merge once per
sign-in, and routes every mutation to the local or the remote store.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, TypeVar

from cartsync.core.async_db import AsyncDBProxy
from cartsync.core.exceptions import AuthRequired, ConstraintConflict, ValidationException
from cartsync.core.identifiers import partition_remote_compatible
from cartsync.domain import cart_math
from cartsync.domain.entities import CartLine, Identity, PendingAction, Product, WishlistLine
from cartsync.domain.routing import RemoteTarget, StorageTarget, resolve_target
from cartsync.domain.sync_fsm import ACCOUNT_STATES, QUEUEING_STATES, SyncState, validate_transition
from cartsync.integrations.local_store import LocalStore

from .identity import IdentityFeed
from .merge import SyncReport, merge_local_into_remote
from .remote_attempt import attempt_remote

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _validate_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool):
        raise ValidationException(f"Quantity must be an integer, got {quantity!r}")
    try:
        value = int(quantity)
    except (TypeError, ValueError) as e:
        raise ValidationException(f"Quantity must be an integer, got {quantity!r}") from e
    if value != quantity and not isinstance(quantity, str):
        raise ValidationException(f"Quantity must be a whole number, got {quantity!r}")
    return value


def _require_product_id(product_id: Any) -> str:
    if product_id is None or not str(product_id).strip():
        raise ValidationException("Product id is required")
    return str(product_id).strip()


class CartSyncService:
    """Reconciliation coordinator for one visitor.

    Construct once at startup, feed it identity snapshots through
    ``handle_identity`` (or ``attach`` an ``IdentityFeed``), and call the
    mutation coroutines from the presentation layer.
    """

    def __init__(
        self,
        local: LocalStore,
        remote: Any | None = None,
        *,
        guest_cart_enabled: bool = False,
    ) -> None:
        self.local = local
        if remote is not None and not isinstance(remote, AsyncDBProxy):
            remote = AsyncDBProxy(remote)
        self.remote: AsyncDBProxy | None = remote
        self.guest_cart_enabled = guest_cart_enabled

        self._state = SyncState.ANONYMOUS
        self._identity = Identity(account_id=None, is_resolving=False)
        self._epoch = 0
        self._session_account: str | None = None
        self._merged_for: str | None = None
        self._merge_aborted = False
        # keys this session confirmed in the account store
        self._confirmed_cart: set[tuple] = set()
        self._confirmed_wishlist: set[str] = set()
        self._wishlist_remote_enabled = True
        self._loading = False
        self._cart: list[CartLine] = []
        self._wishlist: list[WishlistLine] = []
        self._queued: list[tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = []
        self._unsubscribe: Callable[[], None] | None = None
        self.last_sync: SyncReport | None = None

    # ------------------------------------------------------------------
    # Exposed state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def account_id(self) -> str | None:
        return self._session_account if self._state in ACCOUNT_STATES else None

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def cart_items(self) -> list[CartLine]:
        return list(self._cart)

    @property
    def wishlist(self) -> list[WishlistLine]:
        return list(self._wishlist)

    @property
    def wishlist_remote_enabled(self) -> bool:
        return self._wishlist_remote_enabled

    @property
    def cart_total(self) -> float:
        return cart_math.calc_cart_total(self._cart)

    @property
    def cart_item_count(self) -> int:
        return cart_math.calc_item_count(self._cart)

    def group_by_seller(self) -> dict[str, list[CartLine]]:
        return cart_math.group_by_seller(self._cart)

    def is_in_wishlist(self, product_id: Any) -> bool:
        return any(line.key == str(product_id) for line in self._wishlist)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, identity: Identity | None = None) -> None:
        """Load the visitor projection, then apply the first identity snapshot."""
        self._cart = self.local.load_cart()
        self._wishlist = self.local.load_wishlist()
        if identity is not None:
            await self.handle_identity(identity)

    def attach(self, feed: IdentityFeed) -> None:
        self.detach()
        self._unsubscribe = feed.subscribe(self.handle_identity)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def handle_identity(self, identity: Identity) -> None:
        """React to one identity snapshot."""
        self._identity = identity

        if identity.is_resolving:
            if self._state != SyncState.RESOLVING:
                self._transition(SyncState.RESOLVING)
            self._loading = True
            return

        account_id = identity.account_id or None
        if account_id is None:
            if self._state == SyncState.ANONYMOUS:
                return
            await self._enter_anonymous()
            return

        if self._session_account == account_id and self._state in ACCOUNT_STATES:
            logger.debug("Ignoring repeated identity for %s in %s", account_id, self._state.value)
            return

        if self._state in ACCOUNT_STATES and self._session_account != account_id:
            # switching accounts without an explicit sign-out
            self._transition(SyncState.RESOLVING)
        if self._session_account is not None and self._session_account != account_id:
            self._purge_session_leftovers()
            self._merged_for = None
        if self._state == SyncState.ANONYMOUS:
            self._transition(SyncState.RESOLVING)
        await self._sign_in(account_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, target: SyncState) -> None:
        previous = self._state
        self._state = validate_transition(previous, target)
        if previous != target:
            logger.info("Cart sync state %s -> %s", previous.value, target.value)

    def _is_current(self, account_id: str, epoch: int) -> bool:
        return (
            self._epoch == epoch
            and self._session_account == account_id
            and self._identity.account_id == account_id
            and self._state in ACCOUNT_STATES
        )

    async def _enter_anonymous(self) -> None:
        self._epoch += 1
        if self._session_account is not None:
            logger.info("Account %s signed out", self._session_account)
            self._purge_session_leftovers()
        self._session_account = None
        self._merged_for = None
        self._merge_aborted = False
        self._transition(SyncState.ANONYMOUS)
        self._cart = self.local.load_cart()
        self._wishlist = self.local.load_wishlist()
        self._loading = False
        await self._drain_queue()

    def _purge_session_leftovers(self) -> None:
        """Drop local lines the ending session confirmed in the account store.

        Demo catalog lines and lines never confirmed remotely (stranded by the
        merge, kept by an aborted merge, or written during an outage) stay
        local and go into the next sign-in's merge.
        """
        cart = [line for line in self.local.load_cart() if line.key not in self._confirmed_cart]
        wishlist = [line for line in self.local.load_wishlist() if line.key not in self._confirmed_wishlist]
        self.local.save_cart(cart)
        self.local.save_wishlist(wishlist)
        self._confirmed_cart.clear()
        self._confirmed_wishlist.clear()

    def _confirm_cart_key(self, key: tuple) -> None:
        """Record a remote write for ``key`` and drop the superseded local line."""
        self._confirmed_cart.add(key)
        self.local.save_cart(cart_math.drop_cart_line(self.local.load_cart(), *key))

    def _confirm_wishlist_key(self, key: str) -> None:
        self._confirmed_wishlist.add(key)
        self.local.save_wishlist(cart_math.drop_wishlist_line(self.local.load_wishlist(), key))

    async def _sign_in(self, account_id: str) -> None:
        self._epoch += 1
        epoch = self._epoch
        self._session_account = account_id
        self._transition(SyncState.SYNCING)
        self._loading = True

        if self._merged_for == account_id:
            # same sign-in seen again after a resolving blip
            self._transition(SyncState.AUTHENTICATED)
            if not self._merge_aborted and self.remote is not None:
                await self._reload(account_id, epoch)
            await self._finish_sign_in(account_id, epoch)
            return
        self._merge_aborted = False

        local_cart = self.local.load_cart()
        local_wishlist = self.local.load_wishlist()

        if self.remote is None:
            report = SyncReport(account_id=account_id, aborted=True)
        else:
            report = await merge_local_into_remote(
                account_id,
                local_cart,
                local_wishlist,
                self.remote,
                wishlist_enabled=self._wishlist_remote_enabled,
                is_current=lambda: self._is_current(account_id, epoch),
            )

        if report.cancelled or not self._is_current(account_id, epoch):
            logger.info("Discarding stale merge result for %s", account_id)
            return

        self.last_sync = report
        self._merged_for = account_id
        if not report.wishlist_available:
            self._downgrade_wishlist()

        if report.aborted:
            self._merge_aborted = True
            self._cart = local_cart
            self._wishlist = local_wishlist
            self._transition(SyncState.AUTHENTICATED)
        else:
            self.local.save_cart(report.stranded_cart)
            self.local.save_wishlist(report.stranded_wishlist)
            self._confirmed_cart.update(line.key for line in report.synced_cart)
            self._confirmed_wishlist.update(line.key for line in report.synced_wishlist)
            self._transition(SyncState.AUTHENTICATED)
            await self._reload(account_id, epoch)
        await self._finish_sign_in(account_id, epoch)

    async def _finish_sign_in(self, account_id: str, epoch: int) -> None:
        if not self._is_current(account_id, epoch):
            return
        self._loading = False
        await self._drain_queue()
        await self._replay_pending_action()

    def _downgrade_wishlist(self) -> None:
        if self._wishlist_remote_enabled:
            logger.warning("Wishlist relation missing; wishlist is local-only for this session")
        self._wishlist_remote_enabled = False

    async def _reload(self, account_id: str, epoch: int) -> None:
        """Projection = remote lines, plus local lines the remote does not hold."""
        cart_outcome = await attempt_remote("fetch_cart", self.remote.fetch_cart, account_id)
        wishlist_outcome = None
        if self._wishlist_remote_enabled:
            wishlist_outcome = await attempt_remote("fetch_wishlist", self.remote.fetch_wishlist, account_id)
        if not self._is_current(account_id, epoch):
            return

        local_cart = self.local.load_cart()
        if cart_outcome.ok:
            self._cart = cart_math.merge_cart_views(cart_outcome.value, local_cart)
        else:
            self._cart = local_cart

        local_wishlist = self.local.load_wishlist()
        if wishlist_outcome is not None and wishlist_outcome.ok and wishlist_outcome.value.available:
            self._wishlist = cart_math.merge_wishlist_views(wishlist_outcome.value.lines, local_wishlist)
        else:
            if wishlist_outcome is not None and (
                wishlist_outcome.capability_missing
                or (wishlist_outcome.ok and not wishlist_outcome.value.available)
            ):
                self._downgrade_wishlist()
            self._wishlist = local_wishlist

    async def refresh(self) -> None:
        """Reload the projection from the authoritative store.

        While authenticated, remote-compatible lines still held locally
        (stranded by the merge or written during an outage) are resubmitted first.
        """
        if self._state not in ACCOUNT_STATES or self.remote is None:
            self._cart = self.local.load_cart()
            self._wishlist = self.local.load_wishlist()
            return
        account_id, epoch = self._session_account, self._epoch
        self._loading = True
        try:
            if not self._merge_aborted:
                await self._flush_local(account_id, epoch)
            await self._reload(account_id, epoch)
        finally:
            if self._epoch == epoch:
                self._loading = False

    async def _flush_local(self, account_id: str, epoch: int) -> None:
        """Resubmit locally held lines one by one.

        A held cart line is a delta the account store never saw, so it is
        added onto any existing row rather than inserted.
        """
        remote_cart, _ = partition_remote_compatible(self.local.load_cart())
        remote_wishlist, _ = partition_remote_compatible(self.local.load_wishlist())

        for line in remote_cart:
            outcome = await attempt_remote("flush_cart_line", self._remote_add, account_id, line)
            if not self._is_current(account_id, epoch):
                return
            if outcome.ok:
                self._confirm_cart_key(line.key)

        for line in remote_wishlist:
            if not self._wishlist_remote_enabled:
                break
            outcome = await attempt_remote(
                "flush_wishlist_line", self.remote.insert_wishlist_row, account_id, line.product_id
            )
            if not self._is_current(account_id, epoch):
                return
            if outcome.ok or outcome.conflict:
                self._confirm_wishlist_key(line.key)
            elif outcome.capability_missing:
                self._downgrade_wishlist()

    # ------------------------------------------------------------------
    # Queueing while the authority decision is pending
    # ------------------------------------------------------------------

    async def _dispatch(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self._state not in QUEUEING_STATES:
            return await operation()
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._queued.append((operation, future))
        logger.debug("Queued mutation while identity resolves (%s pending)", len(self._queued))
        return await future

    async def _drain_queue(self) -> None:
        while self._queued and self._state not in QUEUEING_STATES:
            operation, future = self._queued.pop(0)
            if future.cancelled():
                continue
            try:
                result = await operation()
            except Exception as exc:
                if not future.cancelled():
                    future.set_exception(exc)
            else:
                if not future.cancelled():
                    future.set_result(result)

    async def _replay_pending_action(self) -> None:
        action = self.local.load_pending_action()
        if action is None:
            return
        self.local.clear_pending_action()
        logger.info("Replaying pending %s for %s", action.action, action.product.id)
        try:
            if action.action == PendingAction.ADD_TO_CART:
                await self.add_to_cart(action.product, action.quantity, action.color, action.size)
            else:
                await self.add_to_wishlist(action.product)
        except (AuthRequired, ValidationException) as exc:
            logger.warning("Pending %s dropped: %s", action.action, exc)

    # ------------------------------------------------------------------
    # Routing helpers
    # ------------------------------------------------------------------

    def _has_identity(self) -> bool:
        return self._state in ACCOUNT_STATES and self._session_account is not None

    def _target(self, product_id: str, *, wishlist: bool = False) -> StorageTarget:
        remote_enabled = self.remote is not None
        if wishlist:
            remote_enabled = remote_enabled and self._wishlist_remote_enabled
        return resolve_target(
            self._state,
            self._session_account,
            product_id,
            remote_enabled=remote_enabled,
        )

    def _require_identity(self, action: PendingAction) -> None:
        if self._has_identity():
            return
        if self.guest_cart_enabled:
            return
        self.local.save_pending_action(action)
        raise AuthRequired(action.action)

    def _local_cart_write(self, mutate: Callable[[list[CartLine]], list[CartLine]]) -> None:
        self.local.save_cart(mutate(self.local.load_cart()))
        self._cart = mutate(self._cart)

    def _local_wishlist_write(self, mutate: Callable[[list[WishlistLine]], list[WishlistLine]]) -> None:
        self.local.save_wishlist(mutate(self.local.load_wishlist()))
        self._wishlist = mutate(self._wishlist)

    def _still_current(self, target: RemoteTarget, epoch: int) -> bool:
        if self._is_current(target.account_id, epoch):
            return True
        logger.info("Skipping stale remote result for %s", target.account_id)
        return False

    # ------------------------------------------------------------------
    # Cart mutations
    # ------------------------------------------------------------------

    async def add_to_cart(
        self,
        product: Any,
        quantity: int = 1,
        color: str | None = None,
        size: str | None = None,
    ) -> CartLine:
        """Add ``quantity`` of a product variant, merging into an existing line.

        Raises:
            AuthRequired: No identity and guest carts are disabled
            ValidationException: Missing product/id or non-positive quantity
        """
        product = Product.coerce(product)
        quantity = _validate_quantity(quantity)
        if quantity < 1:
            raise ValidationException(f"Quantity must be at least 1, got {quantity}")
        candidate = CartLine(product_id=product.id, quantity=quantity, product=product, color=color, size=size)

        async def _operation() -> CartLine:
            self._require_identity(
                PendingAction(PendingAction.ADD_TO_CART, product, quantity, candidate.color, candidate.size)
            )
            target = self._target(candidate.product_id)
            if isinstance(target, RemoteTarget):
                epoch = self._epoch
                submitted = candidate
                held = cart_math.find_cart_line(self.local.load_cart(), *candidate.key)
                if held is not None:
                    # units held locally travel with this write
                    submitted = replace(candidate, quantity=candidate.quantity + held.quantity)
                outcome = await attempt_remote("add_to_cart", self._remote_add, target.account_id, submitted)
                if outcome.ok:
                    line = outcome.value
                    if self._still_current(target, epoch):
                        self._confirm_cart_key(line.key)
                        self._cart = cart_math.upsert_cart_line(self._cart, line, increment=False)
                    return line
            self._confirmed_cart.discard(candidate.key)
            self._local_cart_write(lambda lines: cart_math.upsert_cart_line(lines, candidate))
            return cart_math.find_cart_line(self._cart, *candidate.key) or candidate

        return await self._dispatch(_operation)

    async def _remote_add(self, account_id: str, candidate: CartLine) -> CartLine:
        found = await self.remote.find_cart_row(account_id, *candidate.key)
        if found is None:
            try:
                return await self._remote_insert(account_id, candidate)
            except ConstraintConflict:
                # inserted concurrently; fall through to increment
                found = await self.remote.find_cart_row(account_id, *candidate.key)
                if found is None:
                    raise
        handle, current = found
        quantity = current + candidate.quantity
        if not await self.remote.update_cart_row_quantity(handle, quantity):
            # row deleted between lookup and update
            return await self._remote_insert(account_id, candidate)
        return replace(candidate, quantity=quantity, row_id=handle.row_id)

    async def _remote_insert(self, account_id: str, candidate: CartLine) -> CartLine:
        handle = await self.remote.insert_cart_row(
            account_id, candidate.product_id, candidate.quantity, candidate.color, candidate.size
        )
        return replace(candidate, row_id=handle.row_id)

    async def update_quantity(
        self,
        product_id: Any,
        color: str | None,
        size: str | None,
        quantity: int,
    ) -> CartLine | None:
        """Set a line's quantity; zero or less removes the line."""
        product_id = _require_product_id(product_id)
        quantity = _validate_quantity(quantity)
        if quantity <= 0:
            await self.remove_from_cart(product_id, color, size)
            return None

        async def _operation() -> CartLine | None:
            existing = cart_math.find_cart_line(self._cart, product_id, color, size)
            if existing is None:
                logger.debug("update_quantity on absent line %s/%s/%s", product_id, color, size)
                return None
            candidate = replace(existing, quantity=quantity)
            target = self._target(product_id)
            if isinstance(target, RemoteTarget):
                epoch = self._epoch
                outcome = await attempt_remote("update_quantity", self._remote_set, target.account_id, candidate)
                if outcome.ok:
                    line = outcome.value
                    if self._still_current(target, epoch):
                        self._confirm_cart_key(line.key)
                        self._cart = cart_math.upsert_cart_line(self._cart, line, increment=False)
                    return line
            self._confirmed_cart.discard(candidate.key)
            self._local_cart_write(lambda lines: cart_math.upsert_cart_line(lines, candidate, increment=False))
            return candidate

        return await self._dispatch(_operation)

    async def _remote_set(self, account_id: str, candidate: CartLine) -> CartLine:
        found = await self.remote.find_cart_row(account_id, *candidate.key)
        if found is None:
            return await self._remote_insert(account_id, candidate)
        handle, _ = found
        if not await self.remote.update_cart_row_quantity(handle, candidate.quantity):
            return await self._remote_insert(account_id, candidate)
        return replace(candidate, row_id=handle.row_id)

    async def remove_from_cart(
        self,
        product_id: Any,
        color: str | None = None,
        size: str | None = None,
    ) -> bool:
        """Remove a line; absent lines are a successful no-op.

        Returns:
            True if a line was present in the projection
        """
        product_id = _require_product_id(product_id)

        async def _operation() -> bool:
            present = cart_math.find_cart_line(self._cart, product_id, color, size) is not None
            target = self._target(product_id)
            if isinstance(target, RemoteTarget):
                await attempt_remote("remove_from_cart", self._remote_remove, target.account_id, product_id, color, size)
            self._local_cart_write(lambda lines: cart_math.drop_cart_line(lines, product_id, color, size))
            return present

        return await self._dispatch(_operation)

    async def _remote_remove(self, account_id: str, product_id: str, color: str | None, size: str | None) -> bool:
        found = await self.remote.find_cart_row(account_id, product_id, color, size)
        if found is None:
            return False
        handle, _ = found
        return await self.remote.delete_cart_row(handle)

    async def clear_cart(self) -> None:
        async def _operation() -> None:
            if self._has_identity() and self.remote is not None:
                await attempt_remote("clear_cart", self.remote.delete_all_cart_rows, self._session_account)
            self.local.clear_cart()
            self._cart = []

        await self._dispatch(_operation)

    # ------------------------------------------------------------------
    # Wishlist mutations
    # ------------------------------------------------------------------

    async def add_to_wishlist(self, product: Any) -> WishlistLine:
        """Save a product; adding it twice converges to one entry.

        Raises:
            AuthRequired: No identity and guest carts are disabled
            ValidationException: Missing product or id
        """
        product = Product.coerce(product)
        candidate = WishlistLine(product_id=product.id, product=product)

        async def _operation() -> WishlistLine:
            self._require_identity(PendingAction(PendingAction.ADD_TO_WISHLIST, product))
            target = self._target(candidate.product_id, wishlist=True)
            if isinstance(target, RemoteTarget):
                epoch = self._epoch
                outcome = await attempt_remote(
                    "add_to_wishlist", self.remote.insert_wishlist_row, target.account_id, candidate.product_id
                )
                if outcome.ok:
                    if self._still_current(target, epoch):
                        self._confirm_wishlist_key(candidate.key)
                        self._wishlist = cart_math.upsert_wishlist_line(self._wishlist, candidate)
                    return candidate
                if outcome.capability_missing:
                    self._downgrade_wishlist()
            self._confirmed_wishlist.discard(candidate.key)
            self._local_wishlist_write(lambda lines: cart_math.upsert_wishlist_line(lines, candidate))
            return candidate

        return await self._dispatch(_operation)

    async def remove_from_wishlist(self, product_id: Any) -> bool:
        product_id = _require_product_id(product_id)

        async def _operation() -> bool:
            present = self.is_in_wishlist(product_id)
            target = self._target(product_id, wishlist=True)
            if isinstance(target, RemoteTarget):
                outcome = await attempt_remote(
                    "remove_from_wishlist", self.remote.delete_wishlist_row, target.account_id, product_id
                )
                if outcome.capability_missing:
                    self._downgrade_wishlist()
            self._local_wishlist_write(lambda lines: cart_math.drop_wishlist_line(lines, product_id))
            return present

        return await self._dispatch(_operation)

    async def clear_wishlist(self) -> None:
        async def _operation() -> None:
            if self._has_identity() and self.remote is not None and self._wishlist_remote_enabled:
                outcome = await attempt_remote(
                    "clear_wishlist", self.remote.delete_all_wishlist_rows, self._session_account
                )
                if outcome.capability_missing:
                    self._downgrade_wishlist()
            self.local.clear_wishlist()
            self._wishlist = []

        await self._dispatch(_operation)

    async def move_to_cart(self, product: Any, quantity: int = 1) -> CartLine:
        """Add one unit to the cart, then drop the product from the wishlist."""
        product = Product.coerce(product)
        line = await self.add_to_cart(product, quantity)
        await self.remove_from_wishlist(product.id)
        return line

    def __repr__(self) -> str:
        return (
            f"CartSyncService(state={self._state.value}, account={self._session_account!r}, "
            f"cart={len(self._cart)}, wishlist={len(self._wishlist)})"
        )
