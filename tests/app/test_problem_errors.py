"""Unit tests for edelivery.app.errors: problem responses and taxonomy."""

from __future__ import annotations

from flask import Flask, abort, g

from edelivery.app.errors import (
    PROBLEM_CONTENT_TYPE,
    AuthError,
    AuthorizationError,
    ExpiredEntitlementError,
    NotFoundError,
    ServiceError,
    UpstreamError,
    ValidationError,
    register_error_handlers,
)


def _make_app(exc: Exception | None = None, *, request_id: str | None = None) -> Flask:
    app = Flask("test_problem_errors")
    register_error_handlers(app)

    @app.route("/boom")
    def boom():
        if request_id is not None:
            g.request_id = request_id
        raise exc

    @app.route("/missing")
    def missing():
        abort(404)

    return app


class TestTaxonomy:
    def test_status_and_codes(self):
        cases = [
            (AuthError(), 401, "unauthorized"),
            (AuthorizationError("no"), 403, "forbidden"),
            (ValidationError("bad"), 400, "invalid_request"),
            (NotFoundError("gone"), 404, "not_found"),
            (ExpiredEntitlementError(400, 365), 403, "entitlement_expired"),
            (UpstreamError("payment gateway"), 500, "upstream_unavailable"),
        ]
        for exc, status, code in cases:
            assert exc.status == status
            assert exc.error == code

    def test_auth_error_carries_challenge_header(self):
        assert AuthError().extra_headers == {"WWW-Authenticate": "Bearer"}

    def test_status_override(self):
        exc = ServiceError("teapot", 418, error="teapot")
        assert exc.status == 418
        assert exc.to_dict()["type"] == "urn:edelivery:error:teapot"

    def test_expired_entitlement_body(self):
        body = ExpiredEntitlementError(400, 365).to_dict()
        assert body["elapsed_days"] == 400
        assert body["window_days"] == 365
        assert "400 days ago" in body["detail"]

    def test_upstream_hides_internal_detail(self):
        exc = UpstreamError("object store", "secret_access_key rejected")
        body = exc.to_dict()
        assert body["service"] == "object store"
        assert "secret" not in body["detail"]
        assert exc.internal_detail == "secret_access_key rejected"


class TestHandlers:
    def test_service_error_response(self):
        resp = _make_app(NotFoundError("order not found")).test_client().get("/boom")
        assert resp.status_code == 404
        assert resp.headers["Content-Type"] == PROBLEM_CONTENT_TYPE
        assert resp.headers["Cache-Control"] == "no-store"
        assert resp.get_json()["detail"] == "order not found"

    def test_upstream_includes_request_id(self):
        app = _make_app(UpstreamError("payment gateway", "HTTP 502"), request_id="req-42")
        resp = app.test_client().get("/boom")
        body = resp.get_json()
        assert resp.status_code == 500
        assert body["request_id"] == "req-42"
        assert "502" not in resp.get_data(as_text=True)

    def test_werkzeug_exception_becomes_problem(self):
        resp = _make_app().test_client().get("/missing")
        assert resp.status_code == 404
        assert resp.headers["Content-Type"] == PROBLEM_CONTENT_TYPE
        assert resp.get_json()["error"] == "not_found"

    def test_method_not_allowed(self):
        resp = _make_app().test_client().post("/missing")
        assert resp.status_code == 405
        assert resp.get_json()["error"] == "method_not_allowed"

    def test_unhandled_exception_is_generic(self):
        resp = _make_app(KeyError("api_secret")).test_client().get("/boom")
        assert resp.status_code == 500
        body = resp.get_json()
        assert body["error"] == "internal_error"
        assert "api_secret" not in resp.get_data(as_text=True)
