"""Cart and wishlist entities."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cartsync.core.exceptions import ValidationException


class Product(BaseModel):
    """Product snapshot carried by cart and wishlist lines."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: str = Field(..., min_length=1, description="UUID for stored products, small int for demo items")
    name: str = Field("", description="Display name")
    price: float = Field(0.0, ge=0, description="Unit price")
    image: Optional[str] = Field(None, description="Primary image URL")
    description: Optional[str] = Field(None, description="Short description")
    seller_id: Optional[str] = Field(None, description="Owning seller")
    seller_name: Optional[str] = Field(None, description="Seller display name")

    @field_validator("id", "seller_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        """Demo catalog ids are ints; everything is compared as text."""
        if isinstance(v, bool):
            return v
        if isinstance(v, int):
            return str(v)
        if isinstance(v, str):
            return v.strip()
        return v

    @classmethod
    def coerce(cls, product: Any) -> Product:
        """Build a Product from a model, mapping or attribute object.

        Raises:
            ValidationException: If the product is missing or has no id
        """
        if product is None:
            raise ValidationException("Product is required")
        if isinstance(product, Product):
            return product
        try:
            if isinstance(product, dict):
                return cls.model_validate(product)
            return cls.model_validate(product, from_attributes=True)
        except ValidationError as e:
            raise ValidationException(f"Invalid product: {e.errors()[0]['msg']}") from e


def _normalize_variant(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def cart_key(product_id: Any, color: Any = None, size: Any = None) -> tuple[str, str | None, str | None]:
    """Uniqueness key of a cart line; an unset variant never equals a concrete one."""
    return (str(product_id), _normalize_variant(color), _normalize_variant(size))


@dataclass
class CartLine:
    """Single line in a cart, unique per (product_id, color, size)."""

    product_id: str
    quantity: int
    product: Product
    color: str | None = None
    size: str | None = None
    added_at: float = field(default_factory=time.time)
    row_id: str | None = None

    def __post_init__(self) -> None:
        self.product_id = str(self.product_id)
        self.color = _normalize_variant(self.color)
        self.size = _normalize_variant(self.size)

    @property
    def key(self) -> tuple[str, str | None, str | None]:
        return cart_key(self.product_id, self.color, self.size)

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "quantity": int(self.quantity),
            "color": self.color,
            "size": self.size,
            "added_at": float(self.added_at),
            "product": self.product.model_dump(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CartLine:
        product = Product.coerce(data.get("product") or {"id": data.get("product_id")})
        quantity = int(data.get("quantity", 1))
        if quantity < 1:
            raise ValueError(f"quantity must be >= 1, got {quantity}")
        return cls(
            product_id=str(data.get("product_id") or product.id),
            quantity=quantity,
            product=product,
            color=data.get("color"),
            size=data.get("size"),
            added_at=float(data.get("added_at", time.time())),
            row_id=data.get("row_id"),
        )


@dataclass
class WishlistLine:
    """Single wishlist entry, unique per product_id."""

    product_id: str
    product: Product
    added_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        self.product_id = str(self.product_id)

    @property
    def key(self) -> str:
        return self.product_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "added_at": float(self.added_at),
            "product": self.product.model_dump(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WishlistLine:
        product = Product.coerce(data.get("product") or {"id": data.get("product_id")})
        return cls(
            product_id=str(data.get("product_id") or product.id),
            product=product,
            added_at=float(data.get("added_at", time.time())),
        )


@dataclass(frozen=True, slots=True)
class Identity:
    """Snapshot emitted by the identity subsystem."""

    account_id: str | None = None
    is_resolving: bool = False

    @property
    def is_signed_in(self) -> bool:
        return bool(self.account_id) and not self.is_resolving


@dataclass(frozen=True, slots=True)
class RemoteRowHandle:
    """Opaque cart row id, re-derivable from its match key when missing."""

    row_id: str | None
    account_id: str
    product_id: str
    color: str | None = None
    size: str | None = None

    @property
    def match_key(self) -> tuple[str, str, str | None, str | None]:
        return (self.account_id, self.product_id, self.color, self.size)


@dataclass
class PendingAction:
    """Request rejected for lack of identity, replayed once after sign-in."""

    action: str
    product: Product
    quantity: int = 1
    color: str | None = None
    size: str | None = None

    ADD_TO_CART = "add_to_cart"
    ADD_TO_WISHLIST = "add_to_wishlist"

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "product": self.product.model_dump(),
            "quantity": int(self.quantity),
            "color": self.color,
            "size": self.size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingAction:
        action = str(data.get("action", ""))
        if action not in (cls.ADD_TO_CART, cls.ADD_TO_WISHLIST):
            raise ValueError(f"unknown pending action {action!r}")
        return cls(
            action=action,
            product=Product.coerce(data.get("product")),
            quantity=int(data.get("quantity", 1)),
            color=data.get("color"),
            size=data.get("size"),
        )
