"""Order repository.

Every mutating method is a single SQL statement so that concurrent
requests converge without explicit locks:

* owner-scoped reads and updates filter on ``id`` **and** ``owner_id``
* :meth:`OrderRepository.insert_or_claim` and
  :meth:`OrderRepository.upsert_paid` use ``INSERT ... ON CONFLICT``
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from psycopg.types.json import Jsonb
from pypgkit import BaseRepository, Database

from edelivery.core.types import PAID_STATUSES, OrderStatus, PaymentStatus
from edelivery.models.order import Order, OrderItem

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime


def item_from_dict(raw: dict[str, Any]) -> OrderItem:
    """Build an :class:`OrderItem` from a stored (or client-supplied) dict.

    Accepts the storefront's legacy keys ``id`` and ``price`` as aliases
    for ``product_id`` and ``unit_price``.
    """
    product_id = raw.get("product_id", raw.get("id"))
    unit_price = raw.get("unit_price", raw.get("price", 0))
    return OrderItem(
        product_id=str(product_id) if product_id is not None else "",
        title=str(raw.get("title") or ""),
        unit_price=_to_int(unit_price),
        quantity=_to_int(raw.get("quantity", 1)) or 1,
        category=raw.get("category"),
    )


def _to_int(value: Any) -> int:  # noqa: ANN401
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        digits = "".join(ch for ch in value if ch.isdigit() or ch in "-.")
        try:
            return int(float(digits)) if digits else 0
        except ValueError:
            return 0
    return 0


class OrderRepository(BaseRepository[Order]):
    table_name = "orders"
    primary_key = "id"

    def _row_to_entity(self, row: dict) -> Order:
        raw_items = row.get("items") or []
        if isinstance(raw_items, str):
            raw_items = json.loads(raw_items)
        return Order(
            id=row["id"],
            owner_id=row.get("owner_id"),
            status=OrderStatus(row["status"]),
            items=tuple(item_from_dict(i) for i in raw_items),
            total_amount=row.get("total_amount") or 0,
            shipping_address=row.get("shipping_address"),
            payment_id=row.get("payment_id"),
            payment_method=row.get("payment_method"),
            payment_status=row.get("payment_status"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _entity_to_row(self, entity: Order) -> dict:
        return {
            "id": entity.id,
            "owner_id": entity.owner_id,
            "status": entity.status.value,
            "items": Jsonb([i.to_dict() for i in entity.items]),
            "total_amount": entity.total_amount,
            "shipping_address": (
                Jsonb(entity.shipping_address) if entity.shipping_address is not None else None
            ),
            "payment_id": entity.payment_id,
            "payment_method": entity.payment_method,
            "payment_status": entity.payment_status,
        }

    # -- owner-scoped access --------------------------------------------------

    def find_owned(self, order_id: str, owner_id: str) -> Order | None:
        """Return the order only when *owner_id* owns it."""
        return self.find_one_by({"id": order_id, "owner_id": owner_id})

    def find_by_owner(self, owner_id: str) -> list[Order]:
        """All orders of *owner_id*, newest first."""
        return self.find_by(
            {"owner_id": owner_id},
            order_by="created_at",
            order_desc=True,
        )

    def update_status_owned(
        self,
        order_id: str,
        owner_id: str | None,
        from_status: OrderStatus,
        to_status: OrderStatus,
    ) -> Order | None:
        """Atomic compare-and-swap status transition.

        When *owner_id* is ``None`` the ownership filter is skipped
        (administrative changes).  Returns the updated order, or ``None``
        if no row matched id, owner and *from_status*.
        """
        db = Database.get_instance()
        params: list[Any] = [to_status.value, order_id, from_status.value]
        owner_clause = ""
        if owner_id is not None:
            owner_clause = " AND owner_id = %s"
            params.append(owner_id)
        row = db.fetch_one(
            "UPDATE orders SET status = %s, updated_at = now() "
            f"WHERE id = %s AND status = %s{owner_clause} RETURNING *",
            tuple(params),
            as_dict=True,
        )
        return self._row_to_entity(row) if row else None

    # -- creation ---------------------------------------------------------------

    def insert_or_claim(self, order: Order) -> tuple[Order, bool]:
        """Insert *order*, or claim an existing owner-less row with the same id.

        An owner-less row is only claimed when its total matches and its
        items are empty or identical to the checkout.  Otherwise, and when
        the id already belongs to some owner, the existing row is returned
        unchanged; the caller decides whether that is the same principal.

        Returns ``(order, created)``.
        """
        db = Database.get_instance()
        row = self._entity_to_row(order)
        row = db.fetch_one(
            "INSERT INTO orders "
            "(id, owner_id, status, items, total_amount, shipping_address) "
            "VALUES (%s, %s, %s, %s, %s, %s) "
            "ON CONFLICT (id) DO UPDATE SET "
            "  owner_id = EXCLUDED.owner_id, "
            "  items = CASE WHEN jsonb_array_length(orders.items) = 0 "
            "               THEN EXCLUDED.items ELSE orders.items END, "
            "  shipping_address = COALESCE(orders.shipping_address, EXCLUDED.shipping_address), "
            "  updated_at = now() "
            "WHERE orders.owner_id IS NULL "
            "  AND orders.total_amount = EXCLUDED.total_amount "
            "  AND (jsonb_array_length(orders.items) = 0 OR orders.items = EXCLUDED.items) "
            "RETURNING *, (xmax = 0) AS inserted",
            (
                row["id"],
                row["owner_id"],
                row["status"],
                row["items"],
                row["total_amount"],
                row["shipping_address"],
            ),
            as_dict=True,
        )
        if row is not None:
            return self._row_to_entity(row), bool(row.get("inserted"))
        existing = self.find_by_id(order.id)
        if existing is None:  # pragma: no cover - row vanished between statements
            msg = f"order {order.id} disappeared during insert"
            raise RuntimeError(msg)
        return existing, False

    def upsert_paid(
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
        """Mark *order_id* paid in one atomic statement.

        Existing rows get the payment fields merged, ``status`` moved to
        ``processing`` unless already paid, ``owner_id`` bound only if
        still NULL and ``items`` filled only if empty.  An
        ``amount_mismatch`` flag stays set while the payment id is
        unchanged.  Missing rows are inserted with *total_amount* and
        *items*.

        Returns ``(order, created)``.
        """
        db = Database.get_instance()
        paid = tuple(s.value for s in sorted(PAID_STATUSES))
        row = db.fetch_one(
            "INSERT INTO orders "
            "(id, owner_id, status, items, total_amount, "
            " payment_id, payment_method, payment_status) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s) "
            "ON CONFLICT (id) DO UPDATE SET "
            "  payment_id = EXCLUDED.payment_id, "
            "  payment_method = EXCLUDED.payment_method, "
            "  payment_status = CASE WHEN orders.payment_id = EXCLUDED.payment_id "
            "                         AND orders.payment_status = %s "
            "                        THEN orders.payment_status "
            "                        ELSE EXCLUDED.payment_status END, "
            "  status = CASE WHEN orders.status IN (%s, %s) "
            "                THEN orders.status ELSE EXCLUDED.status END, "
            "  owner_id = COALESCE(orders.owner_id, EXCLUDED.owner_id), "
            "  items = CASE WHEN jsonb_array_length(orders.items) = 0 "
            "               THEN EXCLUDED.items ELSE orders.items END, "
            "  updated_at = now() "
            "RETURNING *, (xmax = 0) AS inserted",
            (
                order_id,
                owner_id,
                OrderStatus.PROCESSING.value,
                Jsonb([i.to_dict() for i in items]),
                total_amount,
                payment_id,
                payment_method,
                payment_status,
                PaymentStatus.AMOUNT_MISMATCH.value,
                *paid,
            ),
            as_dict=True,
        )
        return self._row_to_entity(row), bool(row.get("inserted"))

    # -- administrative queries ----------------------------------------------

    def find_all_recent(
        self,
        *,
        status: OrderStatus | None = None,
        limit: int = 100,
    ) -> list[Order]:
        """All orders (any owner), newest first."""
        conditions: dict[str, Any] = {}
        if status is not None:
            conditions["status"] = status.value
        return self.find_by(
            conditions,
            order_by="created_at",
            order_desc=True,
            limit=limit,
        )

    def find_paid_between(self, start: datetime, end: datetime) -> list[Order]:
        """Paid orders created in ``[start, end)``."""
        db = Database.get_instance()
        paid = tuple(s.value for s in sorted(PAID_STATUSES))
        rows = db.fetch_all(
            "SELECT * FROM orders "
            "WHERE created_at >= %s AND created_at < %s "
            "  AND status IN (%s, %s) "
            "ORDER BY created_at",
            (start, end, *paid),
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]
