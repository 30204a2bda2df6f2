"""Tests for create_app wiring, request hooks and the proxy middleware."""

from __future__ import annotations

import logging
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from edelivery.app.factory import create_app
from edelivery.app.middleware import TrustedProxyMiddleware
from edelivery.config.settings import build_settings


def _config(data: dict, **sections) -> SimpleNamespace:
    merged = {**data, **sections}
    return SimpleNamespace(settings=build_settings(merged), reload_settings=MagicMock())


@pytest.fixture()
def container():
    c = MagicMock()
    c.history_recorder.is_shutdown = False
    return c


@pytest.fixture(autouse=True)
def _no_atexit():
    with patch("edelivery.app.factory.atexit"):
        yield


# ---------------------------------------------------------------------------
# create_app
# ---------------------------------------------------------------------------


class TestCreateApp:
    def test_without_container_only_probes(self, minimal_config_data):
        app = create_app(config=_config(minimal_config_data))
        client = app.test_client()
        assert client.get("/livez").status_code == 200
        assert client.get("/orders").status_code == 404
        assert "container" not in app.extensions

    def test_registers_routes_under_base_path(self, minimal_config_data, container):
        cfg = _config(minimal_config_data, api={"base_path": "/api"})
        app = create_app(config=cfg, container=container)
        rules = {rule.rule for rule in app.url_map.iter_rules()}
        assert "/api/orders" in rules
        assert "/api/payments/verify" in rules
        assert "/api/downloads/<order_id>/<file_id>" in rules
        assert "/api/admin/sales-statistics" in rules
        assert app.extensions["container"] is container

    def test_shutdown_drains_history_recorder(self, minimal_config_data, container):
        app = create_app(config=_config(minimal_config_data), container=container)
        app.extensions["shutdown_coordinator"].initiate()
        container.history_recorder.shutdown.assert_called_once()

    def test_body_limit_from_settings(self, minimal_config_data):
        cfg = _config(minimal_config_data, security={"max_request_body_bytes": 1024})
        app = create_app(config=cfg)
        assert app.config["MAX_CONTENT_LENGTH"] == 1024

    def test_database_builds_container(self, minimal_config_data):
        with patch("edelivery.app.context.Container") as container_cls:
            container_cls.return_value.history_recorder.is_shutdown = False
            db = MagicMock()
            app = create_app(config=_config(minimal_config_data), database=db)
        assert app.extensions["container"] is container_cls.return_value
        assert container_cls.call_args[0][0] is db
        container_cls.return_value.startup_checks.assert_called_once_with()

    def test_proxy_middleware_wrapped_when_enabled(self, minimal_config_data):
        cfg = _config(minimal_config_data, proxy={"enabled": True, "trusted_proxies": ["10.0.0.0/8"]})
        app = create_app(config=cfg)
        assert isinstance(app.wsgi_app, TrustedProxyMiddleware)


class TestRequestHooks:
    def test_security_headers_and_hsts(self, minimal_config_data):
        client = create_app(config=_config(minimal_config_data)).test_client()
        resp = client.get("/livez")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["Strict-Transport-Security"].startswith("max-age=")
        assert len(resp.headers["X-Request-ID"]) == 32

    def test_no_hsts_for_plain_http(self, minimal_config_data):
        cfg = _config(minimal_config_data, server={"external_url": "http://localhost:8443"})
        resp = create_app(config=cfg).test_client().get("/livez")
        assert "Strict-Transport-Security" not in resp.headers

    def test_valid_request_id_echoed(self, minimal_config_data):
        client = create_app(config=_config(minimal_config_data)).test_client()
        resp = client.get("/livez", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"

    def test_malformed_request_id_replaced(self, minimal_config_data):
        client = create_app(config=_config(minimal_config_data)).test_client()
        resp = client.get("/livez", headers={"X-Request-ID": "../../etc/passwd"})
        assert resp.headers["X-Request-ID"] != "../../etc/passwd"

    def test_reload_applies_new_log_level(self, minimal_config_data):
        cfg = _config(minimal_config_data)
        cfg.reload_settings.return_value = build_settings(
            {**minimal_config_data, "logging": {"level": "DEBUG"}},
        )
        app = create_app(config=cfg)
        coordinator = app.extensions["shutdown_coordinator"]
        coordinator._reload_flag.set()

        root = logging.getLogger("edelivery")
        previous = root.level
        try:
            app.test_client().get("/livez")
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(previous)
        assert coordinator.reload_requested is False

    def test_failed_reload_is_consumed(self, minimal_config_data):
        cfg = _config(minimal_config_data)
        cfg.reload_settings.side_effect = ValueError("bad yaml")
        app = create_app(config=cfg)
        coordinator = app.extensions["shutdown_coordinator"]
        coordinator._reload_flag.set()

        resp = app.test_client().get("/livez")
        assert resp.status_code == 200
        assert coordinator.reload_requested is False


# ---------------------------------------------------------------------------
# TrustedProxyMiddleware
# ---------------------------------------------------------------------------


def _call(middleware: TrustedProxyMiddleware, environ: dict) -> dict:
    captured: dict = {}

    def start_response(status, headers):
        return None

    middleware.app = lambda env, sr: captured.update(env) or []
    middleware(environ, start_response)
    return captured


class TestTrustedProxy:
    def test_trusted_proxy_rewrites_addr_and_scheme(self):
        mw = TrustedProxyMiddleware(None, trusted_proxies=["10.0.0.0/8"])
        env = _call(
            mw,
            {
                "REMOTE_ADDR": "10.0.0.5",
                "HTTP_X_FORWARDED_FOR": "203.0.113.7, 10.0.0.9",
                "HTTP_X_FORWARDED_PROTO": "HTTPS",
                "HTTP_X_FORWARDED_PREFIX": "/shop/",
            },
        )
        assert env["REMOTE_ADDR"] == "203.0.113.7"
        assert env["wsgi.url_scheme"] == "https"
        assert env["SCRIPT_NAME"] == "/shop"

    def test_untrusted_peer_unchanged(self):
        mw = TrustedProxyMiddleware(None, trusted_proxies=["10.0.0.0/8"])
        env = _call(
            mw,
            {"REMOTE_ADDR": "198.51.100.1", "HTTP_X_FORWARDED_FOR": "203.0.113.7"},
        )
        assert env["REMOTE_ADDR"] == "198.51.100.1"

    def test_unparseable_proxy_ignored(self):
        mw = TrustedProxyMiddleware(None, trusted_proxies=["not-a-network", "10.0.0.1"])
        assert len(mw._networks) == 1

    def test_custom_header(self):
        mw = TrustedProxyMiddleware(
            None,
            trusted_proxies=["10.0.0.1"],
            for_header="X-Real-IP",
        )
        env = _call(mw, {"REMOTE_ADDR": "10.0.0.1", "HTTP_X_REAL_IP": "203.0.113.9"})
        assert env["REMOTE_ADDR"] == "203.0.113.9"
