"""Unit tests for edelivery.services.entitlement: the entitlement guard."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from edelivery.app.errors import (
    AuthorizationError,
    ExpiredEntitlementError,
    NotFoundError,
    UpstreamError,
)
from edelivery.core.policy import AuthorizationPolicy
from edelivery.core.types import OrderStatus
from edelivery.integrations.base import IntegrationError
from edelivery.models.order import Order, OrderItem
from edelivery.models.principal import Principal
from edelivery.models.product import FileDescriptor, Product
from edelivery.services.entitlement import EntitlementGuard

NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=UTC)

ALICE = Principal(id="u-alice")
BOB = Principal(id="u-bob")
ADMIN = Principal(id="u-admin", role="admin")

F1 = FileDescriptor(id="f1", filename="workbook.pdf", storage_path="books/workbook.pdf", size=2048)
F2 = FileDescriptor(id="f2", filename="answers.pdf", storage_path="books/answers.pdf")
F9 = FileDescriptor(id="f9", filename="bonus.zip", storage_path="extras/bonus.zip", size=99)

P1 = Product(id="p1", title="Workbook", files=(F1, F2))
P2 = Product(id="p2", title="Bonus pack", files=(F9,))


def _order(age: timedelta = timedelta(days=10), **overrides) -> Order:
    base = Order(
        id="o1",
        owner_id="u-alice",
        status=OrderStatus.PROCESSING,
        items=(OrderItem(product_id="p1", unit_price=15000, quantity=1),),
        total_amount=15000,
        created_at=NOW - age,
    )
    return replace(base, **overrides)


class _FakeCatalog:
    def __init__(self, products=(P1, P2)):
        self._products = {p.id: p for p in products}
        self.failing: set[str] = set()

    def get_manifest(self, product_id):
        if product_id in self.failing:
            msg = f"catalog down for {product_id}"
            raise IntegrationError(msg)
        product = self._products.get(product_id)
        return product.files if product is not None else ()

    def iter_products(self):
        yield from self._products.values()


@pytest.fixture()
def ledger():
    led = MagicMock()
    led.get.return_value = _order()
    return led


@pytest.fixture()
def catalog():
    return _FakeCatalog()


@pytest.fixture()
def guard(ledger, catalog):
    return EntitlementGuard(
        ledger,
        catalog,
        AuthorizationPolicy(),
        window_days=365,
        clock=lambda: NOW,
    )


@pytest.fixture(autouse=True)
def events():
    with patch("edelivery.services.entitlement.security_events") as ev:
        yield ev


# ---------------------------------------------------------------------------
# Customer path
# ---------------------------------------------------------------------------


class TestPermit:
    def test_paid_order_within_window(self, guard, ledger):
        ent = guard.authorize(ALICE, "o1", "f1")
        assert ent.file is F1
        assert ent.product_id == "p1"
        assert ent.remaining_days == 355
        ledger.get.assert_called_once_with("o1", "u-alice")

    def test_delivered_order_is_paid(self, guard, ledger):
        ledger.get.return_value = _order(status=OrderStatus.DELIVERED)
        assert guard.authorize(ALICE, "o1", "f2").file is F2

    def test_exactly_at_window_boundary(self, guard, ledger):
        ledger.get.return_value = _order(age=timedelta(days=365))
        ent = guard.authorize(ALICE, "o1", "f1")
        assert ent.remaining_days == 0

    def test_naive_created_at_treated_as_utc(self, guard, ledger):
        naive = (NOW - timedelta(days=30)).replace(tzinfo=None)
        ledger.get.return_value = _order(created_at=naive)
        assert guard.authorize(ALICE, "o1", "f1").remaining_days == 335

    def test_file_found_in_second_item(self, guard, ledger):
        items = (
            OrderItem(product_id="p1", unit_price=1, quantity=1),
            OrderItem(product_id="p2", unit_price=1, quantity=1),
        )
        ledger.get.return_value = _order(items=items)
        ent = guard.authorize(ALICE, "o1", "f9")
        assert ent.product_id == "p2"


class TestDeny:
    def test_one_second_past_window_is_expired(self, guard, ledger, events):
        ledger.get.return_value = _order(age=timedelta(days=365, seconds=1))
        with pytest.raises(ExpiredEntitlementError) as exc_info:
            guard.authorize(ALICE, "o1", "f1")
        assert exc_info.value.elapsed_days == 365
        assert exc_info.value.window_days == 365
        assert exc_info.value.status == 403
        events.entitlement_expired.assert_called_once_with("u-alice", "o1", 365, 365)

    @pytest.mark.parametrize(
        "status",
        [OrderStatus.PENDING, OrderStatus.SHIPPED, OrderStatus.CANCELLED],
    )
    def test_unpaid_order(self, guard, ledger, status):
        ledger.get.return_value = _order(status=status)
        with pytest.raises(AuthorizationError, match="payment not completed"):
            guard.authorize(ALICE, "o1", "f1")

    def test_unpaid_checked_before_expiry(self, guard, ledger):
        ledger.get.return_value = _order(status=OrderStatus.PENDING, age=timedelta(days=900))
        with pytest.raises(AuthorizationError, match="payment not completed"):
            guard.authorize(ALICE, "o1", "f1")

    def test_file_not_in_order(self, guard, ledger, events):
        with pytest.raises(AuthorizationError, match="no download authorization"):
            guard.authorize(ALICE, "o1", "f9")
        events.access_denied.assert_called_once()

    def test_foreign_order_is_not_found(self, guard, ledger):
        ledger.get.side_effect = NotFoundError("order not found")
        with pytest.raises(NotFoundError):
            guard.authorize(BOB, "o1", "f1")

    def test_evaluate_masks_foreign_order(self, guard):
        with pytest.raises(NotFoundError):
            guard.evaluate(_order(), BOB, "f1")

    def test_failing_manifest_is_skipped(self, guard, ledger, catalog):
        items = (
            OrderItem(product_id="p1", unit_price=1, quantity=1),
            OrderItem(product_id="p2", unit_price=1, quantity=1),
        )
        ledger.get.return_value = _order(items=items)
        catalog.failing.add("p1")

        assert guard.authorize(ALICE, "o1", "f9").file is F9
        with pytest.raises(AuthorizationError):
            guard.authorize(ALICE, "o1", "f1")


class TestWindow:
    def test_custom_window(self, ledger, catalog):
        guard = EntitlementGuard(
            ledger,
            catalog,
            AuthorizationPolicy(),
            window_days=30,
            clock=lambda: NOW,
        )
        ledger.get.return_value = _order(age=timedelta(days=31))
        with pytest.raises(ExpiredEntitlementError):
            guard.authorize(ALICE, "o1", "f1")
        assert guard.window_days == 30


# ---------------------------------------------------------------------------
# Admin path
# ---------------------------------------------------------------------------


class TestAdminResolve:
    def test_admin_finds_file_in_any_product(self, guard):
        product, descriptor = guard.resolve_admin_file(ADMIN, "f9")
        assert product is P2
        assert descriptor is F9

    def test_non_admin_rejected(self, guard, events):
        with pytest.raises(AuthorizationError, match="administrator"):
            guard.resolve_admin_file(ALICE, "f9")
        events.access_denied.assert_called_once()

    def test_unknown_file(self, guard):
        with pytest.raises(NotFoundError, match="file not found"):
            guard.resolve_admin_file(ADMIN, "nope")

    def test_catalog_failure(self, ledger):
        catalog = MagicMock()
        catalog.iter_products.side_effect = IntegrationError("db down")
        guard = EntitlementGuard(ledger, catalog, AuthorizationPolicy(), clock=lambda: NOW)
        with pytest.raises(UpstreamError):
            guard.resolve_admin_file(ADMIN, "f9")
