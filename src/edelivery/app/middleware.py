"""Request plumbing shared by every edelivery endpoint.

:class:`TrustedProxyMiddleware` sits at the WSGI layer and rewrites the
peer address, scheme and mount prefix when the connection comes from a
known reverse proxy.  :func:`register_request_hooks` installs the Flask
hooks: request ids, response headers and the ``edelivery.access`` line.
"""

from __future__ import annotations

import ipaddress
import logging
import re
import time
from typing import TYPE_CHECKING
from uuid import uuid4

from flask import Flask, g, request

if TYPE_CHECKING:
    from collections.abc import Iterable

    from flask import Response

    from edelivery.config.settings import EdeliverySettings

log = logging.getLogger(__name__)
access_log = logging.getLogger("edelivery.access")

# Client-supplied request ids are echoed into logs and headers
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

_STATIC_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Referrer-Policy": "no-referrer",
}

_Network = ipaddress.IPv4Network | ipaddress.IPv6Network


# ---------------------------------------------------------------------------
# WSGI
# ---------------------------------------------------------------------------


def _environ_key(header: str) -> str:
    return "HTTP_" + header.upper().replace("-", "_")


class TrustedProxyMiddleware:
    """Honour forwarded headers, but only from allow-listed peers.

    With an empty allow-list every peer is trusted; the config loader
    warns when the proxy section is enabled that way.
    """

    def __init__(
        self,
        app,
        *,
        trusted_proxies: Iterable[str] = (),
        for_header: str = "X-Forwarded-For",
        proto_header: str = "X-Forwarded-Proto",
    ) -> None:
        self.app = app
        self._networks: tuple[_Network, ...] = tuple(self._networks_from(trusted_proxies))
        self._for_key = _environ_key(for_header)
        self._proto_key = _environ_key(proto_header)

    @staticmethod
    def _networks_from(entries: Iterable[str]) -> Iterable[_Network]:
        for entry in entries:
            try:
                yield ipaddress.ip_network(entry, strict=False)
            except ValueError:
                log.warning("Ignoring unparseable trusted proxy: %s", entry)

    def _trusts(self, address: str) -> bool:
        if not self._networks:
            return True
        try:
            ip = ipaddress.ip_address(address)
        except ValueError:
            return False
        return any(ip in network for network in self._networks)

    def _client_address(self, chain: str) -> str:
        # right-most hop that is not one of our proxies
        hops = [hop.strip() for hop in chain.split(",")]
        untrusted = [hop for hop in hops if not self._trusts(hop)]
        return untrusted[-1] if untrusted else hops[0]

    def __call__(self, environ, start_response):
        if self._trusts(environ.get("REMOTE_ADDR", "")):
            chain = environ.get(self._for_key)
            if chain:
                environ["REMOTE_ADDR"] = self._client_address(chain)
            scheme = environ.get(self._proto_key)
            if scheme:
                environ["wsgi.url_scheme"] = scheme.strip().lower()
            prefix = environ.get("HTTP_X_FORWARDED_PREFIX")
            if prefix:
                environ["SCRIPT_NAME"] = prefix.rstrip("/")
        return self.app(environ, start_response)


# ---------------------------------------------------------------------------
# Flask hooks
# ---------------------------------------------------------------------------


def _apply_headers(response: Response, settings: EdeliverySettings | None) -> None:
    response.headers.update(_STATIC_HEADERS)
    if settings is not None:
        max_age = settings.security.hsts_max_age_seconds
        if max_age > 0 and settings.server.external_url.startswith("https://"):
            response.headers["Strict-Transport-Security"] = (
                f"max-age={max_age}; includeSubDomains"
            )
    request_id = getattr(g, "request_id", None)
    if request_id:
        response.headers["X-Request-ID"] = request_id


def _log_access(response: Response) -> None:
    status = response.status_code
    if status >= 500:
        level = logging.ERROR
    elif status >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO
    elapsed = _elapsed_ms()
    access_log.log(
        level,
        "%s %s %s %.1fms",
        request.method,
        request.path,
        status,
        elapsed,
        extra={
            "status": status,
            "duration_ms": round(elapsed, 1),
            "content_length": response.content_length,
        },
    )


def register_request_hooks(app: Flask) -> None:
    """Install request-id, response-header and access-log hooks on *app*."""

    @app.before_request
    def _assign_request_id() -> None:
        supplied = request.headers.get("X-Request-ID", "")
        g.request_id = supplied if _REQUEST_ID_RE.match(supplied) else uuid4().hex
        g.start_time = time.monotonic()

    @app.after_request
    def _finish(response):
        _apply_headers(response, app.config.get("EDELIVERY_SETTINGS"))
        _log_access(response)
        return response


def _elapsed_ms() -> float:
    started = getattr(g, "start_time", None)
    return 0.0 if started is None else (time.monotonic() - started) * 1000
