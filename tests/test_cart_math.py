from __future__ import annotations

from cartsync.domain import cart_math
from cartsync.domain.entities import CartLine, Product, WishlistLine


def _line(product: Product, quantity: int = 1, color=None, size=None, row_id=None) -> CartLine:
    return CartLine(product_id=product.id, quantity=quantity, product=product, color=color, size=size, row_id=row_id)


def test_total_and_count(shirt, hoodie) -> None:
    lines = [_line(shirt, 2), _line(hoodie, 1)]

    assert cart_math.calc_cart_total(lines) == 135.5
    assert cart_math.calc_item_count(lines) == 3


def test_empty_cart_totals_are_zero() -> None:
    assert cart_math.calc_cart_total([]) == 0.0
    assert cart_math.calc_item_count([]) == 0


def test_group_by_seller_uses_unknown_bucket(shirt, hoodie, mug) -> None:
    nameless = Product(id="x", name="No seller")
    groups = cart_math.group_by_seller([_line(shirt), _line(hoodie), _line(mug), _line(nameless)])

    assert list(groups) == ["seller-a", "seller-b", cart_math.UNKNOWN_SELLER]
    assert [line.product_id for line in groups["seller-a"]] == [shirt.id, mug.id]


def test_upsert_increments_same_variant(shirt) -> None:
    lines = cart_math.upsert_cart_line([_line(shirt, 1, "red", "M")], _line(shirt, 2, "red", "M"))

    assert len(lines) == 1
    assert lines[0].quantity == 3


def test_upsert_replaces_quantity_without_increment(shirt) -> None:
    lines = cart_math.upsert_cart_line([_line(shirt, 4, row_id="r1")], _line(shirt, 2), increment=False)

    assert lines[0].quantity == 2
    assert lines[0].row_id == "r1"


def test_variants_are_distinct_lines(shirt) -> None:
    lines = [_line(shirt, 1, "red", "M")]
    lines = cart_math.upsert_cart_line(lines, _line(shirt, 1, "red", "L"))
    lines = cart_math.upsert_cart_line(lines, _line(shirt, 1))

    assert len(lines) == 3


def test_unset_variant_matches_blank_variant(shirt) -> None:
    lines = [_line(shirt, 1, color="  ")]

    assert cart_math.find_cart_line(lines, shirt.id, None, None) is not None
    assert cart_math.find_cart_line(lines, shirt.id, "red", None) is None


def test_drop_removes_only_matching_variant(shirt) -> None:
    lines = [_line(shirt, 1, "red"), _line(shirt, 1, "blue")]

    remaining = cart_math.drop_cart_line(lines, shirt.id, "red", None)

    assert [line.color for line in remaining] == ["blue"]


def test_wishlist_upsert_is_idempotent(shirt) -> None:
    entry = WishlistLine(product_id=shirt.id, product=shirt)
    lines = cart_math.upsert_wishlist_line([], entry)
    lines = cart_math.upsert_wishlist_line(lines, WishlistLine(product_id=shirt.id, product=shirt))

    assert len(lines) == 1
    assert cart_math.drop_wishlist_line(lines, shirt.id) == []


def test_merge_views_prefers_primary(shirt, hoodie) -> None:
    primary = [_line(shirt, 5, row_id="remote")]
    secondary = [_line(shirt, 1), _line(hoodie, 1)]

    merged = cart_math.merge_cart_views(primary, secondary)

    assert [(line.product_id, line.quantity) for line in merged] == [(shirt.id, 5), (hoodie.id, 1)]
