"""Synchronization state transition rules (single source of truth)."""
from __future__ import annotations

from enum import Enum
from typing import Mapping

from cartsync.core.exceptions import StateTransitionError


class SyncState(str, Enum):
    """Which store is authoritative for the current visitor."""

    ANONYMOUS = "anonymous"
    RESOLVING = "resolving"
    SYNCING = "syncing"
    AUTHENTICATED = "authenticated"


ALLOWED_TRANSITIONS: Mapping[SyncState, frozenset[SyncState]] = {
    SyncState.ANONYMOUS: frozenset({SyncState.RESOLVING}),
    SyncState.RESOLVING: frozenset(
        {
            SyncState.SYNCING,
            SyncState.ANONYMOUS,
        }
    ),
    SyncState.SYNCING: frozenset(
        {
            SyncState.AUTHENTICATED,
            SyncState.RESOLVING,
            SyncState.ANONYMOUS,
        }
    ),
    SyncState.AUTHENTICATED: frozenset(
        {
            SyncState.ANONYMOUS,
            SyncState.RESOLVING,
        }
    ),
}

# Mutations issued in these states wait for the authority decision.
QUEUEING_STATES = frozenset({SyncState.RESOLVING})

# States in which an account id is known and remote writes are allowed.
ACCOUNT_STATES = frozenset({SyncState.SYNCING, SyncState.AUTHENTICATED})


def can_transition(current: SyncState, target: SyncState) -> bool:
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_transition(current: SyncState, target: SyncState) -> SyncState:
    """Return ``target`` if the move is legal.

    Raises:
        StateTransitionError: If the transition matrix forbids the move
    """
    if not can_transition(current, target):
        raise StateTransitionError(current.value, target.value)
    return target
