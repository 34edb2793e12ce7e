"""
Core database utilities - connection pool and transaction scope.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

logger = logging.getLogger(__name__)

POOL_WAIT_TIMEOUT = 10.0


class DatabaseCore:
    """Connection pool over the account relational store."""

    def __init__(
        self,
        database_url: str,
        min_size: int = 1,
        max_size: int = 5,
        timeout: float = POOL_WAIT_TIMEOUT,
    ):
        if not database_url:
            raise ValueError("DATABASE_URL is required for the remote store")
        self.database_url = database_url

        safe_url = database_url.split("@")[1] if "@" in database_url else database_url
        logger.info("Connecting remote store pool to ...@%s", safe_url)

        self.pool = ConnectionPool(
            conninfo=database_url,
            min_size=min_size,
            max_size=max_size,
            timeout=timeout,
            kwargs={"row_factory": dict_row},
            open=False,
        )
        self.pool.open(wait=False)
        logger.info("Remote store pool created (min=%s, max=%s)", min_size, max_size)

    @contextmanager
    def get_connection(self) -> Iterator[psycopg.Connection]:
        """Context manager for a pooled connection; commits on success."""
        with self.pool.connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                logger.debug("Remote store transaction rolled back: %s", e)
                raise

    def close(self) -> None:
        """Close all connections in the pool."""
        if getattr(self, "pool", None):
            self.pool.close()
            logger.info("Remote store pool closed")
