"""Order entity and OrderItem value object."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from edelivery.core.types import OrderStatus

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class OrderItem:
    """One purchased product line (not persisted standalone)."""

    product_id: str
    title: str = ""
    unit_price: int = 0
    quantity: int = 1
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "title": self.title,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "category": self.category,
        }


@dataclass(frozen=True)
class Order:
    id: str
    owner_id: str | None
    status: OrderStatus
    items: tuple[OrderItem, ...]
    total_amount: int
    shipping_address: dict | None = None
    payment_id: str | None = None
    payment_method: str | None = None
    payment_status: str | None = None
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH
