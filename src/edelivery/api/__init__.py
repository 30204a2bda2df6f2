"""HTTP API layer: Flask blueprint registration.

Call :func:`register_blueprints` during application startup to wire
all route blueprints into the Flask app.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask

log = logging.getLogger(__name__)


def register_blueprints(app: Flask, base_path: str = "") -> None:
    """Register all API blueprints on the Flask application.

    Parameters
    ----------
    app:
        The Flask application.
    base_path:
        URL prefix for every route (``api.base_path``), e.g. ``/api``.

    """
    base = base_path.rstrip("/")

    from edelivery.api.admin import admin_bp  # noqa: PLC0415
    from edelivery.api.downloads import downloads_bp  # noqa: PLC0415
    from edelivery.api.orders import orders_bp  # noqa: PLC0415
    from edelivery.api.payments import payments_bp  # noqa: PLC0415

    app.register_blueprint(orders_bp, url_prefix=base or None)
    app.register_blueprint(payments_bp, url_prefix=base or None)
    app.register_blueprint(downloads_bp, url_prefix=base or None)
    app.register_blueprint(admin_bp, url_prefix=base + "/admin")

    log.info("API blueprints registered under '%s'", base or "/")
