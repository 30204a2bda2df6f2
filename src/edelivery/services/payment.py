"""Payment reconciler: merge the gateway's view of a payment into the ledger.

The gateway is the source of truth for "paid".  Verification is safe to
repeat: the ledger upsert is a single atomic statement that never moves
a paid order backwards, so duplicate or racing calls converge on the
same row.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from edelivery.app.errors import AuthError, UpstreamError, ValidationError
from edelivery.core.types import PaymentStatus
from edelivery.integrations.base import IntegrationError
from edelivery.logging import security_events

if TYPE_CHECKING:
    from collections.abc import Sequence

    from edelivery.config.settings import PaymentSettings
    from edelivery.integrations.base import PaymentGateway, PaymentRecord
    from edelivery.models.order import Order, OrderItem
    from edelivery.models.principal import Principal
    from edelivery.services.order import OrderLedger

log = logging.getLogger(__name__)

GATEWAY_SERVICE = "payment gateway"
_UNKNOWN_METHOD = "UNKNOWN"


class PaymentReconciler:
    """Verify payments with the gateway and upsert paid orders.

    Parameters
    ----------
    gateway:
        Client for the external payment gateway.
    ledger:
        The order ledger receiving the paid upsert.
    settings:
        ``payments`` config section (mandatory bearer, mismatch policy).
    paid_statuses:
        Gateway status strings that mean the payment succeeded.

    """

    def __init__(
        self,
        gateway: PaymentGateway,
        ledger: OrderLedger,
        settings: PaymentSettings,
        paid_statuses: Sequence[str] = ("PAID",),
    ) -> None:
        self._gateway = gateway
        self._ledger = ledger
        self._settings = settings
        self._paid_statuses = frozenset(s.upper() for s in paid_statuses)

    def verify(  # noqa: PLR0913
        self,
        payment_reference: Any,  # noqa: ANN401
        order_id: Any,  # noqa: ANN401
        items: Sequence[OrderItem] = (),
        total_amount: int | None = None,
        principal: Principal | None = None,
    ) -> tuple[PaymentRecord, Order]:
        """Reconcile *payment_reference* into *order_id*.

        Parameters
        ----------
        payment_reference:
            The gateway's payment id.
        order_id:
            Local order id the payment belongs to.
        items:
            Caller-declared items, used only when the order does not
            exist yet (or was stored without items).
        total_amount:
            Caller-declared expected amount, used for the mismatch check
            when there is no stored order.
        principal:
            Verified caller, bound as owner of an owner-less order.

        Returns
        -------
        tuple
            ``(payment_record, order)`` after the upsert.

        Raises
        ------
        ValidationError
            Missing reference or order id, an unpaid gateway record, or
            an amount mismatch under the ``reject`` policy.
        AuthError
            A bearer token is required and none was presented.
        UpstreamError
            The gateway could not be reached or refused the request.

        """
        if not payment_reference or not isinstance(payment_reference, str):
            msg = "payment_reference is required"
            raise ValidationError(msg)
        if not order_id or not isinstance(order_id, str):
            msg = "order_id is required"
            raise ValidationError(msg)
        if principal is None and self._settings.require_principal:
            msg = "authentication is required to verify payments"
            raise AuthError(msg)

        record = self._fetch(payment_reference)
        if record.status.upper() not in self._paid_statuses:
            log.info(
                "Payment %s for order %s is not completed (status=%s)",
                record.id,
                order_id,
                record.status,
            )
            msg = "payment is not completed"
            raise ValidationError(msg, extra={"payment_status": record.status})

        existing = self._ledger.lookup(order_id)
        expected = existing.total_amount if existing is not None else total_amount
        payment_status = PaymentStatus.COMPLETED
        if expected is not None and expected != record.amount:
            security_events.payment_amount_mismatch(
                order_id,
                record.id,
                paid_amount=record.amount,
                expected_amount=expected,
            )
            if self._settings.amount_mismatch == "reject":
                msg = "paid amount does not match the order total"
                raise ValidationError(msg)
            payment_status = PaymentStatus.AMOUNT_MISMATCH
        elif (
            existing is not None
            and existing.payment_id == record.id
            and existing.payment_status == PaymentStatus.AMOUNT_MISMATCH
        ):
            # the stored total was replaced by the paid amount; keep the flag
            payment_status = PaymentStatus.AMOUNT_MISMATCH

        owner_id = principal.id if principal is not None else None
        order, created = self._ledger.upsert_paid(
            order_id,
            owner_id=owner_id,
            items=items,
            total_amount=record.amount,
            payment_id=record.id,
            payment_method=record.method or _UNKNOWN_METHOD,
            payment_status=payment_status.value,
        )

        if owner_id is not None and order.owner_id != owner_id:
            log.warning(
                "Payment %s reconciled into order %s owned by a different principal",
                record.id,
                order_id,
            )

        security_events.payment_reconciled(
            order_id,
            record.id,
            record.amount,
            principal_id=owner_id,
            created=created,
        )
        return record, order

    def lookup(self, payment_reference: Any) -> PaymentRecord:  # noqa: ANN401
        """Read-only gateway lookup; never touches the ledger."""
        if not payment_reference or not isinstance(payment_reference, str):
            msg = "payment_reference is required"
            raise ValidationError(msg)
        return self._fetch(payment_reference)

    def _fetch(self, payment_reference: str) -> PaymentRecord:
        try:
            return self._gateway.fetch_payment(payment_reference)
        except IntegrationError as exc:
            raise UpstreamError(GATEWAY_SERVICE, exc.detail) from exc
