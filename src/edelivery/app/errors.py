"""Problem-details errors for the edelivery HTTP surface.

Provides :class:`ServiceError`, an exception that renders itself as an
``application/problem+json`` response carrying a stable ``error`` code,
the taxonomy subclasses raised by services, and the Flask error-handler
registration function.

Usage::

    raise NotFoundError("order not found")
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar

from flask import Flask, g, has_request_context, jsonify
from werkzeug.exceptions import HTTPException

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Error-type URNs
# ---------------------------------------------------------------------------
_P = "urn:edelivery:error:"

UNAUTHORIZED = "unauthorized"
FORBIDDEN = "forbidden"
INVALID_REQUEST = "invalid_request"
NOT_FOUND = "not_found"
ENTITLEMENT_EXPIRED = "entitlement_expired"
UPSTREAM_UNAVAILABLE = "upstream_unavailable"
INTERNAL_ERROR = "internal_error"

# Content type for problem responses
PROBLEM_CONTENT_TYPE = "application/problem+json"


# ---------------------------------------------------------------------------
# Problem exception
# ---------------------------------------------------------------------------


class ServiceError(Exception):
    """A *problem details* object that doubles as an exception.

    Raise anywhere in request handling to produce a structured JSON
    error response.  The registered Flask error handler catches it and
    calls :meth:`to_response`.

    Parameters
    ----------
    detail:
        Human-readable explanation of the problem.  Must never contain
        secrets; it is returned to the caller verbatim.
    status:
        HTTP status code.  Defaults to the subclass's ``status``.
    error:
        Stable machine-readable code.  Defaults to the subclass's
        ``error``.
    headers:
        Extra HTTP headers to include on the response.
    extra:
        Additional body members (e.g. ``elapsed_days``).

    """

    status: ClassVar[int] = 500
    error: ClassVar[str] = INTERNAL_ERROR

    def __init__(
        self,
        detail: str,
        status: int | None = None,
        *,
        error: str | None = None,
        headers: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.detail = detail
        if status is not None:
            self.status = status  # type: ignore[misc]
        if error is not None:
            self.error = error  # type: ignore[misc]
        self.extra_headers = headers or {}
        self.extra = extra or {}
        super().__init__(detail)

    @property
    def error_type(self) -> str:
        return _P + self.error

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the problem JSON structure."""
        body: dict[str, Any] = {
            "type": self.error_type,
            "error": self.error,
            "detail": self.detail,
            "status": self.status,
        }
        body.update(self.extra)
        return body

    def to_response(self):
        """Build a Flask :class:`~flask.Response`."""
        resp = jsonify(self.to_dict())
        resp.status_code = self.status
        resp.headers["Content-Type"] = PROBLEM_CONTENT_TYPE
        resp.headers["Cache-Control"] = "no-store"
        for key, value in self.extra_headers.items():
            resp.headers[key] = value
        return resp


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------


class AuthError(ServiceError):
    """Missing or invalid credential."""

    status = 401
    error = UNAUTHORIZED

    def __init__(self, detail: str = "authentication required", **kwargs: Any) -> None:
        headers = kwargs.pop("headers", None) or {}
        headers.setdefault("WWW-Authenticate", "Bearer")
        super().__init__(detail, headers=headers, **kwargs)


class AuthorizationError(ServiceError):
    """Valid credential, insufficient rights."""

    status = 403
    error = FORBIDDEN


class ValidationError(ServiceError):
    """Malformed input."""

    status = 400
    error = INVALID_REQUEST


class NotFoundError(ServiceError):
    """No matching resource owned by the caller.

    Also used to mask the existence of resources owned by someone else.
    """

    status = 404
    error = NOT_FOUND


class ExpiredEntitlementError(ServiceError):
    """Paid order whose download window has elapsed."""

    status = 403
    error = ENTITLEMENT_EXPIRED

    def __init__(self, elapsed_days: int, window_days: int) -> None:
        self.elapsed_days = elapsed_days
        self.window_days = window_days
        super().__init__(
            f"entitlement expired: purchased {elapsed_days} days ago, "
            f"downloads are available for {window_days} days",
            extra={"elapsed_days": elapsed_days, "window_days": window_days},
        )


class UpstreamError(ServiceError):
    """An external dependency (gateway, store, identity provider) failed.

    The response only says which dependency failed; *internal_detail*
    is written to the log for operators and never returned.
    """

    status = 500
    error = UPSTREAM_UNAVAILABLE

    def __init__(self, service: str, internal_detail: str = "") -> None:
        self.service = service
        self.internal_detail = internal_detail
        super().__init__(
            f"{service} is unavailable, please retry later",
            extra={"service": service},
        )

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if has_request_context():
            request_id = getattr(g, "request_id", None)
            if request_id:
                body["request_id"] = request_id
        return body


# ---------------------------------------------------------------------------
# Flask error handler registration
# ---------------------------------------------------------------------------


def register_error_handlers(app: Flask) -> None:
    """Attach handlers that produce problem responses for all errors."""

    @app.errorhandler(ServiceError)
    def _handle_service_error(exc: ServiceError):
        if isinstance(exc, UpstreamError):
            log.error(
                "Upstream failure (%s): %s",
                exc.service,
                exc.internal_detail or "no detail",
                extra={"upstream": exc.service},
            )
        return exc.to_response()

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        problem = ServiceError(
            exc.description or "An error occurred",
            exc.code or 500,
            error=(exc.name or "error").lower().replace(" ", "_"),
        )
        return problem.to_response()

    @app.errorhandler(Exception)
    def _handle_unhandled(exc: Exception):
        # HTTPException subclasses are already caught above; this
        # handler covers everything else (genuine 500s).
        log.exception("Unhandled exception during request")
        problem = ServiceError(
            "An unexpected internal error occurred",
            500,
            error=INTERNAL_ERROR,
        )
        return problem.to_response()
