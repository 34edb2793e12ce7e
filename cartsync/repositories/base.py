"""Base repository with common database operations."""
from __future__ import annotations

from typing import Any, NoReturn, Protocol

from psycopg import errors as pg_errors

from cartsync.core.exceptions import (
    CapabilityMissing,
    ConstraintConflict,
    RemoteUnavailable,
    ValidationException,
)
from cartsync.core.identifiers import is_remote_compatible


class DatabaseProtocol(Protocol):
    """Protocol for database operations."""

    def get_connection(self) -> Any:
        """Get database connection context manager."""
        ...


class BaseRepository:
    """Base repository class with common row-filtered operations."""

    table: str = ""

    def __init__(self, db: DatabaseProtocol) -> None:
        """Initialize repository with database instance.

        Args:
            db: Database instance implementing DatabaseProtocol
        """
        self.db = db

    def _handle_db_error(self, operation: str, error: Exception, key: tuple = ()) -> NoReturn:
        """Translate driver errors into the cartsync taxonomy.

        Args:
            operation: Name of the operation that failed
            error: Original exception
            key: Row key involved, for conflict reporting

        Raises:
            ConstraintConflict: On a uniqueness violation
            CapabilityMissing: When the relation does not exist
            RemoteUnavailable: For every other failure
        """
        if isinstance(error, pg_errors.UniqueViolation):
            raise ConstraintConflict(self.table, key) from error
        if isinstance(error, pg_errors.UndefinedTable):
            raise CapabilityMissing(self.table) from error
        raise RemoteUnavailable(operation, error) from error

    def _require_remote_id(self, product_id: Any) -> str:
        """Reject ids the UUID-typed schema cannot hold before any I/O.

        Raises:
            ValidationException: If the id is not a canonical UUID
        """
        if not is_remote_compatible(product_id):
            raise ValidationException(f"Product id {product_id!r} cannot be stored remotely")
        return str(product_id)

    def _get_field(self, obj: Any, field_name: str, default: Any = None) -> Any:
        """Safely extract field from a row (dict or dict-like)."""
        if not obj:
            return default
        if isinstance(obj, dict):
            return obj.get(field_name, default)
        getter = getattr(obj, "get", None)
        if callable(getter):
            return getter(field_name, default)
        return default
