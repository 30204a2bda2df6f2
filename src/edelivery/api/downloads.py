"""Entitlement-gated download endpoint.

- ``GET /downloads/{orderId}/{fileId}`` signed URL for a purchased file
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from edelivery.api.auth import require_principal
from edelivery.api.serializers import serialize_download
from edelivery.app.context import get_container

downloads_bp = Blueprint("downloads", __name__)


@downloads_bp.route(
    "/downloads/<order_id>/<file_id>",
    methods=["GET"],
    endpoint="download_file",
)
@require_principal
def download_file(order_id: str, file_id: str):
    """GET /downloads/{orderId}/{fileId}: owner-scoped signed URL."""
    container = get_container()
    principal = g.principal

    entitlement = container.entitlements.authorize(principal, order_id, file_id)
    issued = container.downloads.issue(entitlement, principal)

    response = jsonify(serialize_download(issued, container.downloads.legal_notice))
    response.headers["Cache-Control"] = "no-store"
    return response, 200
