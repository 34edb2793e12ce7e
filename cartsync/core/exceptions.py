"""Custom exceptions for cart and wishlist synchronization."""
from __future__ import annotations


class CartSyncException(Exception):
    """Base exception for all cartsync errors."""

    def __init__(self, message: str, *args: object) -> None:
        super().__init__(message, *args)
        self.message = message


class AuthRequired(CartSyncException):
    """Operation needs an identified account; caller should redirect to sign-in."""

    def __init__(self, action: str) -> None:
        super().__init__(f"Sign-in required to {action.replace('_', ' ')}")
        self.action = action


class ValidationException(CartSyncException):
    """Structurally invalid input (missing product, missing id, bad quantity)."""

    pass


class RemoteUnavailable(CartSyncException):
    """Relational store call failed; recovered through the local store."""

    def __init__(self, operation: str, error: Exception | str | None = None) -> None:
        detail = f": {error}" if error else ""
        super().__init__(f"Remote operation '{operation}' failed{detail}")
        self.operation = operation


class CapabilityMissing(RemoteUnavailable):
    """Relation backing a feature is not provisioned in the remote store."""

    def __init__(self, relation: str) -> None:
        super().__init__(f"{relation} relation", "not provisioned")
        self.relation = relation


class ConstraintConflict(CartSyncException):
    """Duplicate key in the remote store; the row is already present."""

    def __init__(self, table: str, key: tuple) -> None:
        super().__init__(f"Row already present in {table} for key {key!r}")
        self.table = table
        self.key = key


class MalformedLocalData(CartSyncException):
    """Persisted local payload could not be decoded."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Malformed local data under '{key}': {reason}")
        self.key = key


class StateTransitionError(CartSyncException):
    """Illegal move in the synchronization state machine."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Transition '{current} -> {target}' is not allowed")
        self.current = current
        self.target = target


class ConfigurationException(CartSyncException):
    """Configuration errors."""

    pass
