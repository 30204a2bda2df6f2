"""Bearer-token authentication and policy decorators for API routes.

``@require_principal`` demands a valid ``Authorization: Bearer`` header
and stores the verified :class:`Principal` on ``g.principal``.
``@optional_principal`` does the same when a header is present and
leaves ``g.principal = None`` otherwise (a present but invalid token is
still rejected).  ``@require_action`` checks a resource-free action
against the authorization policy.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any

from flask import g, request

from edelivery.app.errors import AuthError, AuthorizationError, UpstreamError
from edelivery.integrations.base import IntegrationError, InvalidCredential
from edelivery.logging import security_events

if TYPE_CHECKING:
    from collections.abc import Callable

    from edelivery.core.types import Action
    from edelivery.models.principal import Principal

log = logging.getLogger(__name__)

IDENTITY_SERVICE = "identity provider"
_BEARER_PREFIX = "bearer "


def extract_bearer(header: str | None) -> str | None:
    """Return the token of an ``Authorization: Bearer`` header.

    Returns ``None`` when the header is absent.

    Raises
    ------
    AuthError
        The header is present but not a well-formed bearer credential.

    """
    if not header:
        return None
    if not header.lower().startswith(_BEARER_PREFIX):
        security_events.auth_failed("malformed authorization header")
        msg = "Authorization header must use the Bearer scheme"
        raise AuthError(msg)
    token = header[len(_BEARER_PREFIX) :].strip()
    if not token:
        security_events.auth_failed("empty bearer token")
        msg = "bearer token is empty"
        raise AuthError(msg)
    return token


def authenticate(token: str) -> Principal:
    """Verify *token* with the configured identity provider."""
    from edelivery.app.context import get_container  # noqa: PLC0415

    try:
        return get_container().identity.verify_token(token)
    except InvalidCredential as exc:
        security_events.auth_failed(str(exc) or "token rejected")
        msg = "invalid or expired token"
        raise AuthError(msg) from exc
    except IntegrationError as exc:
        raise UpstreamError(IDENTITY_SERVICE, exc.detail) from exc


def require_principal(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Reject the request with 401 unless a valid bearer token is sent."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
        token = extract_bearer(request.headers.get("Authorization"))
        if token is None:
            security_events.auth_failed("missing authorization header")
            raise AuthError
        g.principal = authenticate(token)
        return fn(*args, **kwargs)

    return wrapper


def optional_principal(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Verify a bearer token if one is sent; anonymous calls pass through."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
        token = extract_bearer(request.headers.get("Authorization"))
        g.principal = authenticate(token) if token is not None else None
        return fn(*args, **kwargs)

    return wrapper


def require_action(action: Action) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Enforce a resource-free *action* (admin actions).

    Must be applied **after** ``@require_principal``.
    """

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
            from edelivery.app.context import get_container  # noqa: PLC0415

            principal = g.principal
            if not get_container().policy.can(principal, action):
                security_events.access_denied(principal.id, action.value, None)
                msg = "administrator access required"
                raise AuthorizationError(msg)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
