"""Identity providers that turn a bearer token into a :class:`Principal`.

Two built-in backends:

``supabase``
    Calls the Supabase Auth user endpoint (``GET {url}/auth/v1/user``)
    with the project API key and the caller's access token.  The role
    claim is read from ``app_metadata.role`` and then
    ``user_metadata.role``.

``signed``
    Verifies tokens signed with :class:`itsdangerous.URLSafeTimedSerializer`
    and a shared secret.  :func:`create_token` issues such tokens (used
    by the ``token issue`` CLI command and by tests).
"""

from __future__ import annotations

import contextlib
import json
import logging
import urllib.error
import urllib.request
from typing import TYPE_CHECKING, Any

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from edelivery.core.types import Role
from edelivery.integrations.base import IdentityProvider, IntegrationError, InvalidCredential
from edelivery.models.principal import Principal

if TYPE_CHECKING:
    from edelivery.config.settings import IdentitySettings

log = logging.getLogger(__name__)

_TOKEN_SALT = "edelivery.identity"


# ---------------------------------------------------------------------------
# Supabase Auth
# ---------------------------------------------------------------------------


class SupabaseIdentityProvider(IdentityProvider):
    """Verify access tokens against a Supabase Auth server."""

    def __init__(self, settings: IdentitySettings) -> None:
        super().__init__(settings)
        if not settings.url:
            msg = "identity.url is required for the supabase backend"
            raise IntegrationError(msg)
        self._user_url = settings.url.rstrip("/") + "/auth/v1/user"

    def verify_token(self, token: str) -> Principal:
        req = urllib.request.Request(
            self._user_url,
            method="GET",
            headers={
                "Accept": "application/json",
                "apikey": self.settings.api_key,
                "Authorization": f"Bearer {token}",
            },
        )
        try:
            with urllib.request.urlopen(  # noqa: S310
                req,
                timeout=self.settings.timeout_seconds,
            ) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            if exc.code in (401, 403):
                msg = f"identity provider rejected token (HTTP {exc.code})"
                raise InvalidCredential(msg) from exc
            body = ""
            with contextlib.suppress(Exception):
                body = exc.read().decode("utf-8", errors="replace")[:300]
            msg = f"identity provider returned HTTP {exc.code}: {body}"
            raise IntegrationError(msg, retryable=exc.code >= 500) from exc
        except (urllib.error.URLError, OSError) as exc:
            msg = f"failed to reach identity provider at {self._user_url}: {exc}"
            raise IntegrationError(msg, retryable=True) from exc
        except ValueError as exc:
            msg = f"identity provider returned malformed JSON: {exc}"
            raise IntegrationError(msg) from exc

        return _principal_from_user(payload)


def _principal_from_user(payload: Any) -> Principal:  # noqa: ANN401
    """Map a Supabase user object to a :class:`Principal`."""
    if not isinstance(payload, dict) or not payload.get("id"):
        msg = "identity provider returned no user"
        raise InvalidCredential(msg)
    app_meta = payload.get("app_metadata") or {}
    user_meta = payload.get("user_metadata") or {}
    role = app_meta.get("role") or user_meta.get("role") or Role.USER
    return Principal(
        id=str(payload["id"]),
        email=payload.get("email"),
        role=str(role),
    )


# ---------------------------------------------------------------------------
# Signed tokens
# ---------------------------------------------------------------------------


def create_token(
    user_id: str,
    secret: str,
    *,
    email: str | None = None,
    role: str = Role.USER.value,
) -> str:
    """Create a signed bearer token for *user_id*."""
    serializer = URLSafeTimedSerializer(secret, salt=_TOKEN_SALT)
    return serializer.dumps({"sub": user_id, "email": email, "role": role})


def decode_token(
    token: str,
    secret: str,
    max_age: int,
) -> dict[str, Any] | None:
    """Decode and validate a signed bearer token.

    Returns the payload dict or ``None`` if invalid/expired.
    """
    serializer = URLSafeTimedSerializer(secret, salt=_TOKEN_SALT)
    try:
        return serializer.loads(token, max_age=max_age)  # type: ignore[return-value]
    except (BadSignature, SignatureExpired):
        return None


class SignedTokenIdentityProvider(IdentityProvider):
    """Verify itsdangerous-signed tokens with a shared secret."""

    def verify_token(self, token: str) -> Principal:
        payload = decode_token(
            token,
            self.settings.token_secret,
            self.settings.token_max_age_seconds,
        )
        if not isinstance(payload, dict) or not payload.get("sub"):
            msg = "invalid or expired token"
            raise InvalidCredential(msg)
        return Principal(
            id=str(payload["sub"]),
            email=payload.get("email"),
            role=str(payload.get("role") or Role.USER),
        )
