"""Authenticated principal returned by an identity provider."""

from __future__ import annotations

from dataclasses import dataclass

from edelivery.core.types import Role


@dataclass(frozen=True)
class Principal:
    """Caller identity as asserted by a verified bearer token.

    ``role`` is the role *claim* made by the identity provider; whether
    it grants anything is decided by the authorization policy.
    """

    id: str
    email: str | None = None
    role: str = Role.USER.value
