"""Bundled demo catalog. Its small integer ids never reach the relational store."""
from __future__ import annotations

from typing import Any

from cartsync.domain.entities import Product

DEMO_SELLER_ID = "demo"
DEMO_SELLER_NAME = "Demo Store"

_DEMO_PRODUCTS: tuple[dict[str, Any], ...] = (
    {
        "id": 1,
        "name": "Classic T-Shirt",
        "description": "Premium cotton T-shirt with modern fit.",
        "price": 29.99,
        "image": "/images/shirt1.jpg",
    },
    {
        "id": 2,
        "name": "Comfort Hoodie",
        "description": "Soft fleece hoodie for everyday comfort.",
        "price": 49.99,
        "image": "/images/hoodie1.jpg",
    },
    {
        "id": 3,
        "name": "Running Sneakers",
        "description": "Lightweight sneakers built for performance.",
        "price": 89.99,
        "image": "/images/sneaker1.jpg",
    },
)

DEMO_PRODUCTS: dict[str, Product] = {
    str(raw["id"]): Product(**raw, seller_id=DEMO_SELLER_ID, seller_name=DEMO_SELLER_NAME)
    for raw in _DEMO_PRODUCTS
}


def product_by_id(product_id: Any) -> Product | None:
    """Synchronous lookup used when a remote row cannot be joined to a product."""
    if product_id is None:
        return None
    return DEMO_PRODUCTS.get(str(product_id).strip())


def all_products() -> list[Product]:
    return list(DEMO_PRODUCTS.values())
