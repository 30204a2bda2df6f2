"""Order status state machine.

Defines the status transitions an explicit status change may perform.
Payment reconciliation does not go through this table: it flips an
order to ``processing`` with a single atomic upsert that never moves a
paid order backwards (see :meth:`OrderRepository.upsert_paid`).

Usage::

    from edelivery.core.state import ORDER_TRANSITIONS, assert_transition
    from edelivery.core.types import OrderStatus

    assert_transition(
        OrderStatus.PENDING, OrderStatus.CANCELLED,
        ORDER_TRANSITIONS,
    )
"""

from __future__ import annotations

import logging

from edelivery.core.types import OrderStatus

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# pending → processing/cancelled, processing → shipped/delivered/cancelled,
# shipped → delivered/cancelled.  delivered & cancelled are terminal.
# ---------------------------------------------------------------------------

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset(
        {
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
            OrderStatus.CANCELLED,
        }
    ),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Targets an order owner may request without admin rights.
OWNER_SETTABLE_STATUSES: frozenset[OrderStatus] = frozenset({OrderStatus.CANCELLED})


def assert_transition(
    current: OrderStatus,
    target: OrderStatus,
    table: dict[OrderStatus, frozenset[OrderStatus]],
) -> None:
    """Raise :class:`ValueError` if *current* → *target* is not allowed.

    Parameters
    ----------
    current:
        The current status of the order.
    target:
        The desired new status.
    table:
        Transition table, normally :data:`ORDER_TRANSITIONS`.

    """
    allowed = table.get(current)
    if allowed is None:
        msg = f"Unknown status {current!r}"
        raise ValueError(msg)
    if target not in allowed:
        msg = (
            f"Invalid transition {current.value!r} -> {target.value!r}; "
            f"allowed targets: {sorted(s.value for s in allowed) or '(terminal)'}"
        )
        raise ValueError(msg)


def log_transition(
    order_id: str,
    from_status: OrderStatus | None,
    to_status: OrderStatus,
    *,
    reason: str | None = None,
) -> None:
    """Emit a structured log entry for an order status change."""
    log.info(
        "order %s: %s -> %s%s",
        order_id,
        from_status.value if from_status is not None else "(new)",
        to_status.value,
        f" ({reason})" if reason else "",
        extra={
            "order_id": order_id,
            "from_status": from_status.value if from_status is not None else None,
            "to_status": to_status.value,
            "reason": reason,
        },
    )
