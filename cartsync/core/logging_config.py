"""Root logging setup shared by the library and its scripts."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def setup_logging(level: str | int = "INFO") -> None:
    """Configure the root logger once; later calls only adjust the level."""
    global _configured
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    if _configured:
        logging.getLogger().setLevel(level)
        return

    logging.basicConfig(level=level, format=LOG_FORMAT)
    # psycopg_pool logs every reconnect attempt at INFO
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)
    _configured = True
