"""Product id classification: remote-store compatible (UUID) or static catalog."""
from __future__ import annotations

import re
from typing import Any, Iterable, TypeVar

T = TypeVar("T")

UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}",
    re.IGNORECASE,
)


def is_remote_compatible(value: Any) -> bool:
    """True only for strings in canonical 8-4-4-4-12 hex UUID form."""
    if not isinstance(value, str):
        return False
    return UUID_PATTERN.fullmatch(value) is not None


def partition_remote_compatible(lines: Iterable[T]) -> tuple[list[T], list[T]]:
    """Split lines by their ``product_id`` into (remote, local-only), keeping order."""
    remote: list[T] = []
    local_only: list[T] = []
    for line in lines:
        if is_remote_compatible(getattr(line, "product_id", None)):
            remote.append(line)
        else:
            local_only.append(line)
    return remote, local_only
