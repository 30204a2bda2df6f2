"""Structured security event logger.

Emits standardized security events for SIEM integration.
All events are logged to the ``edelivery.security`` logger with
a consistent ``event_id`` field for filtering and alerting.

Credentials and signed-URL signatures are redacted via
:func:`~edelivery.logging.sanitize.sanitize_for_logs` before emission.
"""

from __future__ import annotations

import logging
from typing import Any

from edelivery.logging.sanitize import sanitize_for_logs

security_log = logging.getLogger("edelivery.security")


def _emit(
    event_id: str,
    message: str,
    *args: Any,  # noqa: ANN401
    principal_id: str | None = None,
    severity: str = "INFO",
    **extra: Any,  # noqa: ANN401
) -> None:
    """Emit a structured security event.

    All *extra* keyword arguments are sanitized before logging.
    """
    data: dict[str, object] = {
        "event_id": event_id,
        "severity": severity,
    }
    if principal_id is not None:
        data["principal_id"] = str(principal_id)
    data.update(sanitize_for_logs(extra))
    level = getattr(logging, severity.upper(), logging.INFO)
    security_log.log(level, message, *args, extra=data)


# ---------------------------------------------------------------------------
# Authentication / authorization
# ---------------------------------------------------------------------------


def auth_failed(reason: str) -> None:
    """Log a rejected bearer credential."""
    _emit(
        "edelivery.security.auth_failed",
        "Authentication failed: %s",
        reason,
        severity="WARNING",
        reason=reason,
    )


def access_denied(principal_id: str, action: str, resource_id: str | None) -> None:
    """Log a request the authorization policy refused."""
    _emit(
        "edelivery.security.access_denied",
        "Access denied: %s on %s",
        action,
        resource_id or "-",
        principal_id=principal_id,
        severity="WARNING",
        action=action,
        resource_id=resource_id,
    )


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


def payment_reconciled(
    order_id: str,
    payment_id: str,
    amount: int,
    *,
    principal_id: str | None,
    created: bool,
) -> None:
    """Log an order marked paid after gateway verification."""
    _emit(
        "edelivery.security.payment_reconciled",
        "Payment %s reconciled for order %s",
        payment_id,
        order_id,
        principal_id=principal_id,
        order_id=order_id,
        payment_id=payment_id,
        amount=amount,
        order_created=created,
    )


def payment_amount_mismatch(
    order_id: str,
    payment_id: str,
    *,
    paid_amount: int,
    expected_amount: int,
) -> None:
    """Log a verified payment whose amount differs from the order total."""
    _emit(
        "edelivery.security.payment_amount_mismatch",
        "Payment %s amount %d does not match order %s total %d",
        payment_id,
        paid_amount,
        order_id,
        expected_amount,
        severity="WARNING",
        order_id=order_id,
        payment_id=payment_id,
        paid_amount=paid_amount,
        expected_amount=expected_amount,
    )


# ---------------------------------------------------------------------------
# Downloads
# ---------------------------------------------------------------------------


def download_issued(principal_id: str, order_id: str, file_id: str) -> None:
    """Log a signed download URL issued to an entitled purchaser."""
    _emit(
        "edelivery.security.download_issued",
        "Download URL issued for file %s of order %s",
        file_id,
        order_id,
        principal_id=principal_id,
        order_id=order_id,
        file_id=file_id,
    )


def admin_download_issued(principal_id: str, product_id: str, file_id: str) -> None:
    """Log an entitlement-bypassing download by an administrator."""
    _emit(
        "edelivery.security.admin_download_issued",
        "Admin download URL issued for file %s of product %s",
        file_id,
        product_id,
        principal_id=principal_id,
        severity="WARNING",
        product_id=product_id,
        file_id=file_id,
    )


def entitlement_expired(
    principal_id: str,
    order_id: str,
    elapsed_days: int,
    window_days: int,
) -> None:
    """Log a download refused because the entitlement window has passed."""
    _emit(
        "edelivery.security.entitlement_expired",
        "Entitlement for order %s expired (%d days elapsed)",
        order_id,
        elapsed_days,
        principal_id=principal_id,
        order_id=order_id,
        elapsed_days=elapsed_days,
        window_days=window_days,
    )


def order_status_changed(
    principal_id: str,
    order_id: str,
    from_status: str,
    to_status: str,
    *,
    admin: bool,
) -> None:
    """Log an order status change made through the API."""
    _emit(
        "edelivery.security.order_status_changed",
        "Order %s status %s -> %s",
        order_id,
        from_status,
        to_status,
        principal_id=principal_id,
        severity="WARNING" if admin else "INFO",
        order_id=order_id,
        from_status=from_status,
        to_status=to_status,
        admin=admin,
    )
