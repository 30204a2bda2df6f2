"""Flask application factory for edelivery.

Usage::

    from edelivery.app import create_app
    from edelivery.config import get_config
    from edelivery.db import init_database

    db  = init_database(get_config().settings.database)
    app = create_app(config=get_config(), database=db)
"""

from __future__ import annotations

import atexit
import logging
from typing import TYPE_CHECKING

from flask import Flask, jsonify

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue
    from pypgkit import Database

    from edelivery.app.context import Container
    from edelivery.config.edelivery_config import EdeliveryConfig

log = logging.getLogger(__name__)


def create_app(
    config: EdeliveryConfig | None = None,
    database: Database | None = None,
    *,
    container: Container | None = None,
) -> Flask:
    """Create and configure the edelivery Flask application.

    Parameters
    ----------
    config:
        Loaded :class:`EdeliveryConfig`.  Falls back to :func:`get_config`
        when ``None``.
    database:
        Initialised :class:`Database` singleton.  When provided, the
        dependency container is wired up and the API routes are
        registered.  When ``None`` the app still starts (only the
        health probes answer), which is useful for ``--validate-only``.
    container:
        Pre-built container (tests).  Takes precedence over *database*.

    Returns
    -------
    Flask
        Fully configured WSGI application.

    """
    if config is None:
        from edelivery.config import get_config  # noqa: PLC0415

        config = get_config()

    settings = config.settings

    app = Flask("edelivery")
    app.config["EDELIVERY_SETTINGS"] = settings
    app.config["EDELIVERY_CONFIG"] = config
    app.config["MAX_CONTENT_LENGTH"] = settings.security.max_request_body_bytes

    # -- Lifecycle coordinator ----------------------------------------------
    from edelivery.app.shutdown import ShutdownCoordinator  # noqa: PLC0415

    shutdown_coordinator = ShutdownCoordinator()
    app.extensions["shutdown_coordinator"] = shutdown_coordinator
    atexit.register(shutdown_coordinator.initiate)

    # -- WSGI middleware (outermost layer) -----------------------------------
    if settings.proxy.enabled:
        from edelivery.app.middleware import TrustedProxyMiddleware  # noqa: PLC0415

        app.wsgi_app = TrustedProxyMiddleware(  # type: ignore[method-assign]
            app.wsgi_app,
            trusted_proxies=settings.proxy.trusted_proxies,
            for_header=settings.proxy.forwarded_for_header,
            proto_header=settings.proxy.forwarded_proto_header,
        )
        log.info(
            "Proxy middleware enabled (trusted: %s)",
            list(settings.proxy.trusted_proxies) or "all",
        )

    # -- Error handlers (problem+json) --------------------------------------
    from edelivery.app.errors import register_error_handlers  # noqa: PLC0415

    register_error_handlers(app)

    # -- Request lifecycle hooks --------------------------------------------
    from edelivery.app.middleware import register_request_hooks  # noqa: PLC0415

    register_request_hooks(app)

    # -- Infrastructure endpoints -------------------------------------------
    _register_health(app)

    # -- Dependency container -----------------------------------------------
    if container is None and database is not None:
        from edelivery.app.context import Container  # noqa: PLC0415

        container = Container(database, settings)
        container.startup_checks()

    if container is not None:
        app.extensions["container"] = container
        shutdown_coordinator.on_shutdown(container.history_recorder.shutdown)

        from edelivery.api import register_blueprints  # noqa: PLC0415

        register_blueprints(app, base_path=settings.api.base_path)

    # -- Config hot-reload (SIGHUP) -----------------------------------------
    shutdown_coordinator.register_reload_signal()

    @app.before_request
    def _check_config_reload() -> None:
        """Apply the new log level when SIGHUP was received."""
        sc = app.extensions.get("shutdown_coordinator")
        if sc is None or not sc.reload_requested:
            return

        try:
            cfg = app.config.get("EDELIVERY_CONFIG")
            if cfg is None:
                return
            new_settings = cfg.reload_settings()
            current = app.config["EDELIVERY_SETTINGS"]
            if new_settings.logging.level != current.logging.level:
                logging.getLogger("edelivery").setLevel(new_settings.logging.level)
                log.info("Config hot-reloaded: logging.level=%s", new_settings.logging.level)
            else:
                log.info("Config reload requested but no safe-to-reload changes detected")
        except Exception:
            log.exception("Config hot-reload failed")
        finally:
            sc.consume_reload()

    log.info("Flask application created")
    return app


# ---------------------------------------------------------------------------
# Infrastructure endpoints
# ---------------------------------------------------------------------------


def _register_health(app: Flask) -> None:
    """Register ``/livez``, ``/healthz``, and ``/readyz`` probes."""
    from edelivery import __version__  # noqa: PLC0415

    @app.route("/livez")
    def livez() -> ResponseReturnValue:
        """Return minimal liveness probe."""
        return jsonify({"alive": True, "version": __version__}), 200

    @app.route("/healthz")
    def healthz() -> ResponseReturnValue:
        """Return health status including database and pool state."""
        result: dict = {"status": "ok", "version": __version__}
        checks: dict = {}

        container = app.extensions.get("container")
        if container is not None:
            try:
                container.db.fetch_value("SELECT 1")
                checks["database"] = "connected"
            except Exception:  # noqa: BLE001
                checks["database"] = "disconnected"
                result["status"] = "degraded"

            try:
                stats = container.db.get_stats()
                if stats:
                    pool_info = {
                        "size": stats.get("pool_size", 0),
                        "available": stats.get("pool_available", 0),
                        "waiting": stats.get("requests_waiting", 0),
                    }
                    result["pool"] = pool_info
                    if pool_info["available"] == 0 and pool_info["waiting"] > 0:
                        result["status"] = "degraded"
            except Exception:  # noqa: BLE001
                log.debug("Failed to retrieve connection pool stats")

            result["history_recorder"] = (
                "stopped" if container.history_recorder.is_shutdown else "running"
            )

        shutdown_coord = app.extensions.get("shutdown_coordinator")
        if shutdown_coord is not None:
            result["shutting_down"] = shutdown_coord.is_shutting_down

        if checks:
            result["checks"] = checks

        code = 200 if result["status"] == "ok" else 503
        return jsonify(result), code

    @app.route("/readyz")
    def readyz() -> ResponseReturnValue:
        """Return readiness probe."""
        container = app.extensions.get("container")
        if container is None:
            return jsonify({"ready": False, "reason": "Container not initialized"}), 503

        try:
            container.db.fetch_value("SELECT 1")
        except Exception:  # noqa: BLE001
            return jsonify({"ready": False, "reason": "Database not connected"}), 503

        shutdown_coord = app.extensions.get("shutdown_coordinator")
        if shutdown_coord is not None and shutdown_coord.is_shutting_down:
            return jsonify({"ready": False, "reason": "Shutting down"}), 503

        return jsonify({"ready": True}), 200
