"""Enumerated types for the edelivery persistence layer.

All enums inherit from :class:`enum.StrEnum` so their ``.value`` is a
plain string that psycopg serialises as TEXT and JSON round-trips
naturally.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------


class OrderStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Statuses that mean the gateway confirmed payment.
PAID_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.PROCESSING, OrderStatus.DELIVERED},
)


# ---------------------------------------------------------------------------
# Payment bookkeeping
# ---------------------------------------------------------------------------


class PaymentStatus(StrEnum):
    COMPLETED = "completed"
    AMOUNT_MISMATCH = "amount_mismatch"


# ---------------------------------------------------------------------------
# Principals and authorization
# ---------------------------------------------------------------------------


class Role(StrEnum):
    USER = "user"
    ADMIN = "admin"


class Action(StrEnum):
    """Operations checked by :class:`~edelivery.core.policy.AuthorizationPolicy`."""

    CREATE_ORDER = "order.create"
    READ_ORDER = "order.read"
    UPDATE_ORDER_STATUS = "order.update_status"
    DOWNLOAD_FILE = "file.download"
    ADMIN_DOWNLOAD = "admin.file.download"
    ADMIN_LIST_ORDERS = "admin.order.list"
    ADMIN_UPDATE_ORDER = "admin.order.update"
    VIEW_SALES = "admin.sales.view"
