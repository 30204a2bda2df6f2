"""Response serialization for edelivery resources.

Each function takes a model entity and produces a dictionary suitable
for ``flask.jsonify``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from edelivery.integrations.base import PaymentRecord
    from edelivery.models.order import Order
    from edelivery.services.download import IssuedDownload


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_order(order: Order) -> dict[str, Any]:
    """Serialize an order for its owner or an administrator."""
    return {
        "id": order.id,
        "user_id": order.owner_id,
        "status": order.status.value,
        "items": [item.to_dict() for item in order.items],
        "total_amount": order.total_amount,
        "shipping_address": order.shipping_address,
        "payment_id": order.payment_id,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }


def serialize_payment(record: PaymentRecord, *, full: bool = False) -> dict[str, Any]:
    """Serialize a gateway payment record.

    The verification response carries the short form; the read-only
    lookup (*full*) adds the failure reason and customer block.
    """
    result: dict[str, Any] = {
        "id": record.id,
        "status": record.status,
        "amount": record.amount,
        "method": record.method,
        "paid_at": record.paid_at,
    }
    if full:
        result["fail_reason"] = record.fail_reason
        result["customer"] = dict(record.customer)
    return result


def serialize_download(issued: IssuedDownload, legal_notice: str) -> dict[str, Any]:
    return {
        "download_url": issued.download_url,
        "filename": issued.filename,
        "size": issued.size,
        "expires_in_seconds": issued.expires_in_seconds,
        "remaining_entitlement_days": issued.remaining_entitlement_days,
        "legal_notice": legal_notice,
    }


def serialize_admin_download(issued: IssuedDownload) -> dict[str, Any]:
    return {
        "download_url": issued.download_url,
        "filename": issued.filename,
        "size": issued.size,
        "product_title": issued.product_title,
        "expires_in_seconds": issued.expires_in_seconds,
    }
