"""Entitlement guard: may this principal download this file of this order?

The decision is evaluated fresh on every request:

=============================  ==========================================
order state                    outcome
=============================  ==========================================
not owned by the caller        :class:`NotFoundError` (same as absent)
pending / shipped / cancelled  :class:`AuthorizationError` "payment not completed"
paid, older than the window    :class:`ExpiredEntitlementError`
paid, file not in any item     :class:`AuthorizationError`
paid, within the window        PERMIT
=============================  ==========================================

Administrators have a separate resolver that scans every product's
manifest and skips ownership and expiry.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from edelivery.app.errors import (
    AuthorizationError,
    ExpiredEntitlementError,
    NotFoundError,
    UpstreamError,
)
from edelivery.core.types import PAID_STATUSES, Action
from edelivery.integrations.base import IntegrationError
from edelivery.logging import security_events

if TYPE_CHECKING:
    from edelivery.core.policy import AuthorizationPolicy
    from edelivery.integrations.base import Catalog
    from edelivery.models.order import Order
    from edelivery.models.principal import Principal
    from edelivery.models.product import FileDescriptor, Product
    from edelivery.services.order import OrderLedger

log = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 365


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Entitlement:
    """A PERMIT decision for one file of one order."""

    order: Order
    product_id: str
    file: FileDescriptor
    remaining_days: int


class EntitlementGuard:
    """Decide PERMIT/DENY for (order, file) pairs.

    Parameters
    ----------
    ledger:
        Order ledger used for the owner-scoped lookup.
    catalog:
        Source of product file manifests.
    policy:
        Authorization policy (ownership and admin checks).
    window_days:
        Days after ``created_at`` during which downloads are allowed.
    clock:
        Returns the current aware datetime; injectable for tests.

    """

    def __init__(  # noqa: PLR0913
        self,
        ledger: OrderLedger,
        catalog: Catalog,
        policy: AuthorizationPolicy,
        window_days: int = DEFAULT_WINDOW_DAYS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._ledger = ledger
        self._catalog = catalog
        self._policy = policy
        self._window = timedelta(days=window_days)
        self._window_days = window_days
        self._clock = clock

    @property
    def window_days(self) -> int:
        return self._window_days

    # -- customer path ----------------------------------------------------------

    def authorize(self, principal: Principal, order_id: str, file_id: str) -> Entitlement:
        """Look up *order_id* for *principal* and evaluate the file request."""
        order = self._ledger.get(order_id, principal.id)
        return self.evaluate(order, principal, file_id)

    def evaluate(self, order: Order, principal: Principal, file_id: str) -> Entitlement:
        """Evaluate an already-loaded order.

        Raises
        ------
        NotFoundError
            *principal* does not own *order*.
        AuthorizationError
            The order is unpaid, or no item's manifest has *file_id*.
        ExpiredEntitlementError
            The order was paid but the window has elapsed.

        """
        if not self._policy.can(principal, Action.DOWNLOAD_FILE, order):
            msg = "order not found"
            raise NotFoundError(msg)

        if order.status not in PAID_STATUSES:
            msg = "payment not completed"
            raise AuthorizationError(msg)

        elapsed = self._elapsed(order)
        if elapsed > self._window:
            security_events.entitlement_expired(
                principal.id,
                order.id,
                elapsed.days,
                self._window_days,
            )
            raise ExpiredEntitlementError(elapsed.days, self._window_days)

        resolved = self._resolve_in_order(order, file_id)
        if resolved is None:
            security_events.access_denied(principal.id, Action.DOWNLOAD_FILE.value, order.id)
            msg = "no download authorization for this file"
            raise AuthorizationError(msg)

        product_id, descriptor = resolved
        return Entitlement(
            order=order,
            product_id=product_id,
            file=descriptor,
            remaining_days=max(self._window_days - elapsed.days, 0),
        )

    # -- admin path ---------------------------------------------------------------

    def resolve_admin_file(
        self,
        principal: Principal,
        file_id: str,
    ) -> tuple[Product, FileDescriptor]:
        """Find *file_id* in any product's manifest for an administrator.

        Raises
        ------
        AuthorizationError
            *principal* is not an administrator.
        NotFoundError
            No product carries *file_id*.
        UpstreamError
            The catalog could not be read.

        """
        if not self._policy.can(principal, Action.ADMIN_DOWNLOAD):
            security_events.access_denied(principal.id, Action.ADMIN_DOWNLOAD.value, file_id)
            msg = "administrator access required"
            raise AuthorizationError(msg)

        try:
            for product in self._catalog.iter_products():
                descriptor = product.find_file(file_id)
                if descriptor is not None:
                    return product, descriptor
        except IntegrationError as exc:
            raise UpstreamError("catalog", exc.detail) from exc

        msg = "file not found"
        raise NotFoundError(msg)

    # -- internals ----------------------------------------------------------------

    def _elapsed(self, order: Order) -> timedelta:
        created = order.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=UTC)
        return self._clock() - created

    def _resolve_in_order(
        self,
        order: Order,
        file_id: str,
    ) -> tuple[str, FileDescriptor] | None:
        for item in order.items:
            try:
                manifest = self._catalog.get_manifest(item.product_id)
            except IntegrationError as exc:
                log.warning(
                    "Skipping manifest of product %s for order %s: %s",
                    item.product_id,
                    order.id,
                    exc.detail,
                )
                continue
            for descriptor in manifest:
                if descriptor.id == file_id:
                    return item.product_id, descriptor
        return None
