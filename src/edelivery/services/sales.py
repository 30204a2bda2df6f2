"""Per-product sales statistics computed from paid orders in the ledger."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from edelivery.app.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from edelivery.models.order import Order
    from edelivery.repositories.order import OrderRepository

log = logging.getLogger(__name__)

UNCATEGORIZED = "uncategorized"

_RANGE_DAYS = {"7days": 7, "30days": 30, "90days": 90}
TIME_RANGES = ("7days", "30days", "90days", "1year", "all")
SORT_KEYS = ("revenue", "quantity", "orders", "title")

# Lower bound used for timeRange=all
_ALL_TIME_START = datetime(2020, 1, 1, tzinfo=UTC)

_MONTH_RE = re.compile(r"^(\d{4})-(\d{1,2})$")
_QUARTER_RE = re.compile(r"^(\d{4})-Q([1-4])$", re.IGNORECASE)


@dataclass
class ProductSales:
    product_id: str
    product_title: str
    category: str
    total_quantity: int = 0
    total_revenue: int = 0
    order_count: int = 0

    @property
    def average_price(self) -> float:
        if not self.total_quantity:
            return 0.0
        return round(self.total_revenue / self.total_quantity, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_title": self.product_title,
            "total_quantity": self.total_quantity,
            "total_revenue": self.total_revenue,
            "order_count": self.order_count,
            "average_price": self.average_price,
            "category": self.category,
        }


def _add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def parse_period(period: str) -> tuple[datetime, datetime]:
    """Parse ``month:YYYY-MM`` or ``quarter:YYYY-Qn`` into ``[start, end)``.

    Raises
    ------
    ValidationError
        If *period* is not in one of those forms.

    """
    kind, _, value = period.partition(":")
    if kind == "month":
        match = _MONTH_RE.match(value)
        if match and 1 <= int(match.group(2)) <= 12:  # noqa: PLR2004
            year, month = int(match.group(1)), int(match.group(2))
            end_year, end_month = _add_months(year, month, 1)
            return (
                datetime(year, month, 1, tzinfo=UTC),
                datetime(end_year, end_month, 1, tzinfo=UTC),
            )
    elif kind == "quarter":
        match = _QUARTER_RE.match(value)
        if match:
            year, quarter = int(match.group(1)), int(match.group(2))
            start_month = (quarter - 1) * 3 + 1
            end_year, end_month = _add_months(year, start_month, 3)
            return (
                datetime(year, start_month, 1, tzinfo=UTC),
                datetime(end_year, end_month, 1, tzinfo=UTC),
            )
    msg = f"invalid period {period!r}; expected month:YYYY-MM or quarter:YYYY-Qn"
    raise ValidationError(msg)


def range_bounds(time_range: str, now: datetime) -> tuple[datetime, datetime]:
    """Return ``[start, end)`` for a rolling *time_range* ending at *now*."""
    if time_range in _RANGE_DAYS:
        return now - timedelta(days=_RANGE_DAYS[time_range]), now
    if time_range == "1year":
        try:
            start = now.replace(year=now.year - 1)
        except ValueError:
            # Feb 29 -> Feb 28
            start = now.replace(year=now.year - 1, day=28)
        return start, now
    if time_range == "all":
        return _ALL_TIME_START, now
    msg = f"invalid timeRange {time_range!r}; expected one of: {', '.join(TIME_RANGES)}"
    raise ValidationError(msg)


def aggregate(orders: list[Order]) -> list[ProductSales]:
    """Fold order items into one :class:`ProductSales` per product id."""
    stats: dict[str, ProductSales] = {}
    for order in orders:
        for item in order.items:
            entry = stats.get(item.product_id)
            if entry is None:
                entry = stats[item.product_id] = ProductSales(
                    product_id=item.product_id,
                    product_title=item.title,
                    category=item.category or UNCATEGORIZED,
                )
            entry.total_quantity += item.quantity
            entry.total_revenue += item.unit_price * item.quantity
            entry.order_count += 1
    return list(stats.values())


def _sort_key(sort_by: str) -> Callable[[ProductSales], Any]:
    return {
        "revenue": lambda s: s.total_revenue,
        "quantity": lambda s: s.total_quantity,
        "orders": lambda s: s.order_count,
        "title": lambda s: s.product_title.casefold(),
    }[sort_by]


class SalesStatisticsService:
    """Aggregate revenue per product over a date range."""

    def __init__(
        self,
        order_repo: OrderRepository,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._orders = order_repo
        self._clock = clock or (lambda: datetime.now(UTC))

    def compute(
        self,
        *,
        time_range: str | None = None,
        period: str | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
    ) -> dict[str, Any]:
        """Return ``{"statistics": [...], "summary": {...}}``.

        Raises
        ------
        ValidationError
            Unknown *time_range*, *sort_by* or *sort_order*, or a
            malformed *period*.

        """
        time_range = time_range or "30days"
        sort_by = sort_by or "revenue"
        sort_order = (sort_order or "desc").lower()
        if sort_by not in SORT_KEYS:
            msg = f"invalid sortBy {sort_by!r}; expected one of: {', '.join(SORT_KEYS)}"
            raise ValidationError(msg)
        if sort_order not in ("asc", "desc"):
            msg = "sortOrder must be 'asc' or 'desc'"
            raise ValidationError(msg)

        if period:
            start, end = parse_period(period)
        else:
            start, end = range_bounds(time_range, self._clock())

        orders = self._orders.find_paid_between(start, end)
        statistics = aggregate(orders)
        statistics.sort(key=_sort_key(sort_by), reverse=sort_order == "desc")

        total_revenue = sum(s.total_revenue for s in statistics)
        summary = {
            "total_products": len(statistics),
            "total_revenue": total_revenue,
            "total_quantity": sum(s.total_quantity for s in statistics),
            "total_orders": len(orders),
            "average_order_value": round(total_revenue / len(orders), 2) if orders else 0,
            "time_range": period or time_range,
            "date_range": {"start": start.isoformat(), "end": end.isoformat()},
        }
        log.info(
            "Sales statistics: %d products over %d orders (%s)",
            len(statistics),
            len(orders),
            summary["time_range"],
        )
        return {
            "statistics": [s.to_dict() for s in statistics],
            "summary": summary,
        }
