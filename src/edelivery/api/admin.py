"""Administrator endpoints.

- ``GET /admin/downloads/{fileId}`` signed URL for any catalog file
- ``GET /admin/orders`` every order, newest first
- ``PATCH /admin/orders/{id}`` status change on any order
- ``GET /admin/sales-statistics`` per-product revenue
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from edelivery.api.auth import require_action, require_principal
from edelivery.api.request_body import json_object
from edelivery.api.serializers import serialize_admin_download, serialize_order
from edelivery.app.context import get_container
from edelivery.app.errors import ValidationError
from edelivery.core.types import Action

admin_bp = Blueprint("admin", __name__)


@admin_bp.route("/downloads/<file_id>", methods=["GET"], endpoint="admin_download")
@require_principal
def admin_download(file_id: str):
    """GET /admin/downloads/{fileId}: bypasses ownership and expiry."""
    container = get_container()
    principal = g.principal

    product, descriptor = container.entitlements.resolve_admin_file(principal, file_id)
    issued = container.downloads.issue_admin(product, descriptor, principal)

    response = jsonify(serialize_admin_download(issued))
    response.headers["Cache-Control"] = "no-store"
    return response, 200


@admin_bp.route("/orders", methods=["GET"], endpoint="admin_list_orders")
@require_principal
@require_action(Action.ADMIN_LIST_ORDERS)
def admin_list_orders():
    """GET /admin/orders?status=&limit="""
    container = get_container()
    orders = container.ledger.admin_list(
        status=request.args.get("status"),
        limit=request.args.get("limit"),
    )
    return jsonify({"orders": [serialize_order(o) for o in orders]}), 200


@admin_bp.route("/orders/<order_id>", methods=["PATCH"], endpoint="admin_patch_order")
@require_principal
@require_action(Action.ADMIN_UPDATE_ORDER)
def admin_patch_order(order_id: str):
    """PATCH /admin/orders/{id}: any transition of the state table."""
    container = get_container()
    payload = json_object()
    if "status" not in payload:
        msg = "status is required"
        raise ValidationError(msg)
    order = container.ledger.admin_patch_status(order_id, payload["status"], g.principal.id)
    return jsonify({"order": serialize_order(order)}), 200


@admin_bp.route("/sales-statistics", methods=["GET"], endpoint="sales_statistics")
@require_principal
@require_action(Action.VIEW_SALES)
def sales_statistics():
    """GET /admin/sales-statistics?timeRange=&period=&sortBy=&sortOrder="""
    container = get_container()
    result = container.sales.compute(
        time_range=request.args.get("timeRange"),
        period=request.args.get("period"),
        sort_by=request.args.get("sortBy"),
        sort_order=request.args.get("sortOrder"),
    )
    return jsonify(result), 200
