"""Authorization policy: who may do what to which resource.

Every access decision in the service funnels through
:meth:`AuthorizationPolicy.can`, so ownership and administrator rules
live in one place and can be tested without Flask.

Usage::

    policy = AuthorizationPolicy(admin_roles=("admin",),
                                 admin_identities=("ops@example.com",))
    if not policy.can(principal, Action.READ_ORDER, order):
        raise NotFoundError("order not found")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from edelivery.core.types import Action, Role

if TYPE_CHECKING:
    from collections.abc import Iterable

    from edelivery.models.principal import Principal

log = logging.getLogger(__name__)

# Actions that only require an authenticated owner of the resource.
_OWNER_ACTIONS = frozenset(
    {
        Action.READ_ORDER,
        Action.UPDATE_ORDER_STATUS,
        Action.DOWNLOAD_FILE,
    }
)

# Actions reserved for administrators.
_ADMIN_ACTIONS = frozenset(
    {
        Action.ADMIN_DOWNLOAD,
        Action.ADMIN_LIST_ORDERS,
        Action.ADMIN_UPDATE_ORDER,
        Action.VIEW_SALES,
    }
)


class AuthorizationPolicy:
    """Pure decision functions over a verified :class:`Principal`.

    Parameters
    ----------
    admin_roles:
        Role claims that make a principal an administrator.
    admin_identities:
        Allow-listed principal ids or e-mail addresses that are
        administrators regardless of their role claim.  E-mail matching
        is case-insensitive.

    """

    def __init__(
        self,
        admin_roles: Iterable[str] = (Role.ADMIN,),
        admin_identities: Iterable[str] = (),
    ) -> None:
        self._admin_roles = frozenset(r.lower() for r in admin_roles)
        self._admin_identities = frozenset(i.strip().lower() for i in admin_identities if i)

    def is_admin(self, principal: Principal | None) -> bool:
        """Return True if *principal* is an administrator."""
        if principal is None:
            return False
        if (principal.role or "").lower() in self._admin_roles:
            return True
        if principal.id.lower() in self._admin_identities:
            return True
        return bool(principal.email) and principal.email.lower() in self._admin_identities

    @staticmethod
    def is_owner(principal: Principal | None, resource: Any) -> bool:  # noqa: ANN401
        """Return True if *resource* (anything with ``owner_id``) belongs to *principal*."""
        if principal is None or resource is None:
            return False
        owner_id = getattr(resource, "owner_id", None)
        return owner_id is not None and owner_id == principal.id

    def can(
        self,
        principal: Principal | None,
        action: Action,
        resource: Any = None,  # noqa: ANN401
    ) -> bool:
        """Decide whether *principal* may perform *action* on *resource*.

        Parameters
        ----------
        principal:
            The verified caller, or ``None`` for anonymous requests
            (always denied).
        action:
            The operation being attempted.
        resource:
            For owner actions, the order (anything with ``owner_id``).
            For :attr:`Action.CREATE_ORDER`, the requested owner id
            (``None`` means "the caller").  Ignored for admin actions.

        Returns
        -------
        bool

        """
        if principal is None:
            return False

        if action in _ADMIN_ACTIONS:
            return self.is_admin(principal)

        if action == Action.CREATE_ORDER:
            return resource is None or resource == principal.id

        if action in _OWNER_ACTIONS:
            return self.is_owner(principal, resource)

        log.warning("Unknown action %r denied", action)
        return False
