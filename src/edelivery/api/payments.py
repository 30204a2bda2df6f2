"""Payment endpoints.

- ``POST /payments/verify`` reconcile a gateway payment into an order
- ``GET /payments/{id}`` read-only gateway lookup
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from edelivery.api.auth import optional_principal, require_principal
from edelivery.api.request_body import json_object, optional_string
from edelivery.api.serializers import serialize_payment
from edelivery.app.context import get_container
from edelivery.services.order import parse_amount, parse_items

payments_bp = Blueprint("payments", __name__)


@payments_bp.route("/payments/verify", methods=["POST"], endpoint="verify_payment")
@optional_principal
def verify_payment():
    """POST /payments/verify: confirm with the gateway, mark the order paid."""
    container = get_container()
    payload = json_object()

    record, order = container.reconciler.verify(
        optional_string(payload, "payment_reference", "paymentId", "payment_id"),
        optional_string(payload, "order_id", "orderId"),
        items=parse_items(payload.get("items")),
        total_amount=parse_amount(payload.get("total_amount", payload.get("totalAmount"))),
        principal=g.principal,
    )
    return jsonify(
        {
            "payment": serialize_payment(record),
            "order": {"id": order.id, "status": order.status.value},
        },
    ), 200


@payments_bp.route("/payments/<payment_id>", methods=["GET"], endpoint="get_payment")
@require_principal
def get_payment(payment_id: str):
    """GET /payments/{id}: the gateway's record, no ledger changes."""
    container = get_container()
    record = container.reconciler.lookup(payment_id)
    return jsonify({"payment": serialize_payment(record, full=True)}), 200
