"""Customer order endpoints.

- ``POST /orders`` create an order for the caller
- ``GET /orders`` list the caller's orders
- ``GET /orders/{id}`` fetch one of the caller's orders
- ``PATCH /orders/{id}`` change the status of one of the caller's orders
"""

from __future__ import annotations

from uuid import uuid4

from flask import Blueprint, g, jsonify

from edelivery.api.auth import require_principal
from edelivery.api.request_body import json_object, optional_string
from edelivery.api.serializers import serialize_order
from edelivery.app.context import get_container
from edelivery.app.errors import AuthorizationError, ValidationError
from edelivery.core.types import Action, OrderStatus
from edelivery.logging import security_events
from edelivery.services.order import parse_amount, parse_items, parse_status

orders_bp = Blueprint("orders", __name__)


@orders_bp.route("/orders", methods=["POST"], endpoint="create_order")
@require_principal
def create_order():
    """POST /orders: checkout for the authenticated principal."""
    container = get_container()
    principal = g.principal
    payload = json_object()

    requested_owner = optional_string(payload, "user_id", "userId")
    if not container.policy.can(principal, Action.CREATE_ORDER, requested_owner):
        security_events.access_denied(principal.id, Action.CREATE_ORDER.value, requested_owner)
        msg = "orders can only be created for the authenticated user"
        raise AuthorizationError(msg)

    status = payload.get("status")
    if status is not None and parse_status(status) is not OrderStatus.PENDING:
        msg = "new orders must be created with status 'pending'"
        raise ValidationError(msg)

    shipping = payload.get("shipping_address", payload.get("shippingAddress"))
    if shipping is not None and not isinstance(shipping, dict):
        msg = "shipping_address must be an object"
        raise ValidationError(msg)

    order = container.ledger.create(
        optional_string(payload, "id", "order_id", "orderId") or uuid4().hex,
        principal.id,
        parse_items(payload.get("items")),
        parse_amount(payload.get("total_amount", payload.get("totalAmount"))),
        shipping,
    )
    return jsonify({"order": serialize_order(order)}), 200


@orders_bp.route("/orders", methods=["GET"], endpoint="list_orders")
@require_principal
def list_orders():
    """GET /orders: the caller's orders, newest first."""
    container = get_container()
    orders = container.ledger.list(g.principal.id)
    return jsonify({"orders": [serialize_order(o) for o in orders]}), 200


@orders_bp.route("/orders/<order_id>", methods=["GET"], endpoint="get_order")
@require_principal
def get_order(order_id: str):
    """GET /orders/{id}: owner-scoped lookup."""
    container = get_container()
    order = container.ledger.get(order_id, g.principal.id)
    return jsonify({"order": serialize_order(order)}), 200


@orders_bp.route("/orders/<order_id>", methods=["PATCH"], endpoint="patch_order")
@require_principal
def patch_order(order_id: str):
    """PATCH /orders/{id}: owner-scoped status change."""
    container = get_container()
    payload = json_object()
    if "status" not in payload:
        msg = "status is required"
        raise ValidationError(msg)
    order = container.ledger.patch_status(order_id, g.principal.id, payload["status"])
    return jsonify({"order": serialize_order(order)}), 200
