"""Shared helpers for cart totals, counts and seller grouping."""
from __future__ import annotations

from typing import Iterable

from cartsync.domain.entities import CartLine, WishlistLine, cart_key

UNKNOWN_SELLER = "unknown"


def calc_cart_total(lines: Iterable[CartLine]) -> float:
    total = 0.0
    for line in lines:
        total += float(line.product.price) * int(line.quantity)
    return round(total, 2)


def calc_item_count(lines: Iterable[CartLine]) -> int:
    return sum(int(line.quantity) for line in lines)


def group_by_seller(lines: Iterable[CartLine]) -> dict[str, list[CartLine]]:
    """Group lines by seller id, keeping first-seen seller order."""
    groups: dict[str, list[CartLine]] = {}
    for line in lines:
        seller = line.product.seller_id or UNKNOWN_SELLER
        groups.setdefault(seller, []).append(line)
    return groups


def upsert_cart_line(
    lines: list[CartLine],
    candidate: CartLine,
    *,
    increment: bool = True,
) -> list[CartLine]:
    """Return a copy with ``candidate`` merged by its (product, color, size) key."""
    result = list(lines)
    for idx, line in enumerate(result):
        if line.key != candidate.key:
            continue
        quantity = line.quantity + candidate.quantity if increment else candidate.quantity
        result[idx] = CartLine(
            product_id=line.product_id,
            quantity=quantity,
            product=candidate.product,
            color=line.color,
            size=line.size,
            added_at=line.added_at,
            row_id=candidate.row_id or line.row_id,
        )
        return result
    result.append(candidate)
    return result


def drop_cart_line(
    lines: list[CartLine],
    product_id: str,
    color: str | None,
    size: str | None,
) -> list[CartLine]:
    key = cart_key(product_id, color, size)
    return [line for line in lines if line.key != key]


def find_cart_line(
    lines: Iterable[CartLine],
    product_id: str,
    color: str | None,
    size: str | None,
) -> CartLine | None:
    key = cart_key(product_id, color, size)
    for line in lines:
        if line.key == key:
            return line
    return None


def upsert_wishlist_line(lines: list[WishlistLine], candidate: WishlistLine) -> list[WishlistLine]:
    if any(line.key == candidate.key for line in lines):
        return list(lines)
    return [*lines, candidate]


def drop_wishlist_line(lines: list[WishlistLine], product_id: str) -> list[WishlistLine]:
    return [line for line in lines if line.key != str(product_id)]


def merge_cart_views(primary: list[CartLine], secondary: list[CartLine]) -> list[CartLine]:
    """Union of two line lists; ``primary`` wins when both hold the same key."""
    seen = {line.key for line in primary}
    return [*primary, *(line for line in secondary if line.key not in seen)]


def merge_wishlist_views(primary: list[WishlistLine], secondary: list[WishlistLine]) -> list[WishlistLine]:
    seen = {line.key for line in primary}
    return [*primary, *(line for line in secondary if line.key not in seen)]
