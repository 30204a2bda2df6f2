"""Unit tests for edelivery.core.state: order status transitions."""

from __future__ import annotations

import pytest

from edelivery.core.state import (
    ORDER_TRANSITIONS,
    OWNER_SETTABLE_STATUSES,
    assert_transition,
    log_transition,
)
from edelivery.core.types import PAID_STATUSES, OrderStatus

# ---------------------------------------------------------------------------
# TestOrderTransitions
# ---------------------------------------------------------------------------


class TestOrderTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.PROCESSING),
            (OrderStatus.PENDING, OrderStatus.CANCELLED),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
            (OrderStatus.PROCESSING, OrderStatus.DELIVERED),
            (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
            (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
        ],
    )
    def test_valid_transitions(self, current, target):
        assert_transition(current, target, ORDER_TRANSITIONS)  # no exception

    @pytest.mark.parametrize("terminal", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
    def test_terminal_states_reject_everything(self, terminal):
        for target in OrderStatus:
            if target == terminal:
                continue
            with pytest.raises(ValueError, match="Invalid transition"):
                assert_transition(terminal, target, ORDER_TRANSITIONS)

    def test_paid_order_cannot_go_back_to_pending(self):
        with pytest.raises(ValueError, match="Invalid transition"):
            assert_transition(OrderStatus.PROCESSING, OrderStatus.PENDING, ORDER_TRANSITIONS)

    def test_pending_cannot_skip_to_delivered(self):
        with pytest.raises(ValueError, match="Invalid transition"):
            assert_transition(OrderStatus.PENDING, OrderStatus.DELIVERED, ORDER_TRANSITIONS)

    def test_unknown_current_status(self):
        with pytest.raises(ValueError, match="Unknown status"):
            assert_transition(OrderStatus.PENDING, OrderStatus.CANCELLED, {})

    def test_every_status_has_an_entry(self):
        assert set(ORDER_TRANSITIONS) == set(OrderStatus)


class TestConstants:
    def test_paid_statuses(self):
        assert frozenset({OrderStatus.PROCESSING, OrderStatus.DELIVERED}) == PAID_STATUSES

    def test_owner_may_only_cancel(self):
        assert frozenset({OrderStatus.CANCELLED}) == OWNER_SETTABLE_STATUSES


class TestLogTransition:
    def test_does_not_raise_for_new_order(self):
        log_transition("o1", None, OrderStatus.PENDING, reason="checkout")

    def test_does_not_raise_for_change(self):
        log_transition("o1", OrderStatus.PENDING, OrderStatus.PROCESSING)
