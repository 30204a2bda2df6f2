"""Order ledger: checkout creation, owner-scoped access and status changes.

Every read and write that acts on behalf of a customer is filtered by
both order id and owner id in SQL, so an order owned by someone else is
indistinguishable from one that does not exist.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from edelivery.app.errors import AuthorizationError, NotFoundError, ValidationError
from edelivery.core.state import (
    ORDER_TRANSITIONS,
    OWNER_SETTABLE_STATUSES,
    assert_transition,
    log_transition,
)
from edelivery.core.types import OrderStatus
from edelivery.logging import security_events
from edelivery.models.order import Order
from edelivery.repositories.order import item_from_dict

if TYPE_CHECKING:
    from collections.abc import Sequence

    from edelivery.models.order import OrderItem
    from edelivery.repositories.order import OrderRepository

log = logging.getLogger(__name__)

_MAX_ITEMS = 200
DEFAULT_ADMIN_LIST_LIMIT = 100
MAX_ADMIN_LIST_LIMIT = 500


def parse_status(value: Any) -> OrderStatus:  # noqa: ANN401
    """Convert client input to an :class:`OrderStatus`.

    Raises
    ------
    ValidationError
        If *value* is not one of the known status strings.

    """
    if not isinstance(value, str):
        msg = "status must be a string"
        raise ValidationError(msg)
    try:
        return OrderStatus(value.strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        msg = f"unknown status {value!r}; expected one of: {allowed}"
        raise ValidationError(msg) from None


def parse_items(raw_items: Any) -> tuple[OrderItem, ...]:  # noqa: ANN401
    """Validate a client-supplied item list.

    Raises
    ------
    ValidationError
        On a non-list, a non-object entry, a missing product id, a
        non-positive quantity or a negative price.

    """
    if raw_items is None:
        return ()
    if not isinstance(raw_items, list):
        msg = "items must be a list"
        raise ValidationError(msg)
    if len(raw_items) > _MAX_ITEMS:
        msg = f"too many items (max {_MAX_ITEMS})"
        raise ValidationError(msg)

    items: list[OrderItem] = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            msg = f"items[{idx}] must be an object"
            raise ValidationError(msg)
        item = item_from_dict(raw)
        if not item.product_id:
            msg = f"items[{idx}].product_id is required"
            raise ValidationError(msg)
        if item.quantity <= 0:
            msg = f"items[{idx}].quantity must be positive"
            raise ValidationError(msg)
        if item.unit_price < 0:
            msg = f"items[{idx}].unit_price must not be negative"
            raise ValidationError(msg)
        items.append(item)
    return tuple(items)


def parse_amount(value: Any, field: str = "total_amount") -> int | None:  # noqa: ANN401
    """Return *value* as a non-negative int, ``None`` when absent."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        msg = f"{field} must be a number"
        raise ValidationError(msg)
    if value < 0 or int(value) != value:
        msg = f"{field} must be a non-negative whole amount"
        raise ValidationError(msg)
    return int(value)


class OrderLedger:
    """Owns the order entity on behalf of customers, admins and the reconciler."""

    def __init__(self, order_repo: OrderRepository) -> None:
        self._orders = order_repo

    # -- checkout ---------------------------------------------------------------

    def create(  # noqa: PLR0913
        self,
        order_id: str | None,
        owner_id: str | None,
        items: Sequence[OrderItem],
        total_amount: int | None,
        shipping: dict | None = None,
        status: OrderStatus = OrderStatus.PENDING,
    ) -> Order:
        """Persist a checkout order and return the stored row.

        Re-submitting an id the same owner already holds returns the
        stored row unchanged.  An owner-less row left behind by the
        payment reconciler is claimed by *owner_id* when the checkout
        total and items match it.

        Raises
        ------
        ValidationError
            Missing id or owner, a non-pending *status*, or a negative
            total.
        AuthorizationError
            The id is held by another owner.

        """
        if not order_id or not isinstance(order_id, str):
            msg = "order_id is required"
            raise ValidationError(msg)
        if not owner_id:
            msg = "owner_id is required"
            raise ValidationError(msg)
        if status is not OrderStatus.PENDING:
            msg = "new orders must be created with status 'pending'"
            raise ValidationError(msg)

        if total_amount is None:
            total_amount = sum(i.unit_price * i.quantity for i in items)
        if total_amount < 0:
            msg = "total_amount must not be negative"
            raise ValidationError(msg)

        order = Order(
            id=order_id,
            owner_id=owner_id,
            status=status,
            items=tuple(items),
            total_amount=total_amount,
            shipping_address=shipping,
        )
        stored, created = self._orders.insert_or_claim(order)

        if stored.owner_id != owner_id:
            log.warning(
                "Checkout for order %s rejected: id held by another owner",
                order_id,
            )
            msg = "order id is already in use"
            raise AuthorizationError(msg)

        if created:
            log_transition(order_id, None, stored.status, reason="checkout")
        return stored

    # -- owner-scoped access ----------------------------------------------------

    def get(self, order_id: str, owner_id: str) -> Order:
        """Return *order_id* if *owner_id* owns it.

        Raises
        ------
        NotFoundError
            No such order, or it belongs to someone else.

        """
        order = self._orders.find_owned(order_id, owner_id)
        if order is None:
            msg = "order not found"
            raise NotFoundError(msg)
        return order

    def list(self, owner_id: str) -> list[Order]:
        """All orders of *owner_id*, newest first."""
        return self._orders.find_by_owner(owner_id)

    def patch_status(self, order_id: str, owner_id: str, new_status: Any) -> Order:  # noqa: ANN401
        """Owner-requested status change.

        Owners may only cancel; paid states are reached through payment
        reconciliation or an administrator.
        """
        target = parse_status(new_status)
        order = self.get(order_id, owner_id)
        if order.status is target:
            return order
        if target not in OWNER_SETTABLE_STATUSES:
            msg = f"customers cannot set order status to '{target.value}'"
            raise AuthorizationError(msg)
        return self._transition(order, target, owner_id=owner_id, actor_id=owner_id)

    # -- administrative ---------------------------------------------------------

    def admin_list(
        self,
        *,
        status: Any = None,  # noqa: ANN401
        limit: Any = None,  # noqa: ANN401
    ) -> list[Order]:
        """Every order regardless of owner, newest first."""
        status_filter = parse_status(status) if status not in (None, "") else None
        if limit in (None, ""):
            limit_value = DEFAULT_ADMIN_LIST_LIMIT
        else:
            try:
                limit_value = int(limit)
            except (TypeError, ValueError):
                msg = "limit must be an integer"
                raise ValidationError(msg) from None
            if not 1 <= limit_value <= MAX_ADMIN_LIST_LIMIT:
                msg = f"limit must be between 1 and {MAX_ADMIN_LIST_LIMIT}"
                raise ValidationError(msg)
        return self._orders.find_all_recent(status=status_filter, limit=limit_value)

    def admin_patch_status(self, order_id: str, new_status: Any, admin_id: str) -> Order:  # noqa: ANN401
        """Administrator status change; any transition of the state table."""
        target = parse_status(new_status)
        order = self._orders.find_by_id(order_id)
        if order is None:
            msg = "order not found"
            raise NotFoundError(msg)
        if order.status is target:
            return order
        return self._transition(order, target, owner_id=None, actor_id=admin_id)

    # -- reconciliation ---------------------------------------------------------

    def lookup(self, order_id: str) -> Order | None:
        """Unscoped read used by the payment reconciler."""
        return self._orders.find_by_id(order_id)

    def upsert_paid(  # noqa: PLR0913
        self,
        order_id: str,
        *,
        owner_id: str | None,
        items: Sequence[OrderItem],
        total_amount: int,
        payment_id: str,
        payment_method: str | None,
        payment_status: str,
    ) -> tuple[Order, bool]:
        """Mark *order_id* paid, creating it if needed.

        Returns ``(order, created)``.
        """
        previous = self._orders.find_by_id(order_id)
        order, created = self._orders.upsert_paid(
            order_id,
            owner_id=owner_id,
            items=items,
            total_amount=total_amount,
            payment_id=payment_id,
            payment_method=payment_method,
            payment_status=payment_status,
        )
        from_status = None if created or previous is None else previous.status
        if from_status is not order.status:
            log_transition(order_id, from_status, order.status, reason="payment")
        return order, created

    # -- internals --------------------------------------------------------------

    def _transition(
        self,
        order: Order,
        target: OrderStatus,
        *,
        owner_id: str | None,
        actor_id: str,
    ) -> Order:
        try:
            assert_transition(order.status, target, ORDER_TRANSITIONS)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        updated = self._orders.update_status_owned(order.id, owner_id, order.status, target)
        if updated is None:
            # Row changed between read and compare-and-swap
            current = self._orders.find_by_id(order.id)
            if current is not None and current.status is target:
                return current
            msg = "order status changed concurrently, please retry"
            raise ValidationError(msg)

        log_transition(order.id, order.status, target, reason="admin" if owner_id is None else "owner")
        security_events.order_status_changed(
            actor_id,
            order.id,
            order.status.value,
            target.value,
            admin=owner_id is None,
        )
        return updated
