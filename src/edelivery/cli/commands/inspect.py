"""Inspect subcommand: query stored resources for debugging.

Usage::

    edelivery -c config.yaml inspect order <order-id>
"""

from __future__ import annotations

import json
import sys


def run_inspect(config, args) -> None:
    """Dispatch to the appropriate inspect sub-handler."""
    sub = getattr(args, "inspect_command", None)
    if sub is None:
        sys.stderr.write("usage: edelivery -c CONFIG inspect order ID\n")
        sys.exit(1)

    from edelivery.db import init_database  # noqa: PLC0415

    db = init_database(config.settings.database)

    if sub == "order":
        _inspect_order(db, args.resource_id)
    else:
        sys.exit(1)


def _inspect_order(db, resource_id: str) -> None:
    """Print an order with its download history as JSON."""
    from edelivery.api.serializers import serialize_order  # noqa: PLC0415
    from edelivery.repositories.download_history import (  # noqa: PLC0415
        DownloadHistoryRepository,
    )
    from edelivery.repositories.order import OrderRepository  # noqa: PLC0415

    order = OrderRepository(db).find_by_id(resource_id)
    if order is None:
        sys.stderr.write(f"order not found: {resource_id}\n")
        sys.exit(1)

    downloads = DownloadHistoryRepository(db).find_by(
        {"order_id": order.id},
        order_by="downloaded_at",
        order_desc=True,
    )
    result = serialize_order(order)
    result["downloads"] = [
        {
            "user_id": d.user_id,
            "file_id": d.file_id,
            "filename": d.filename,
            "downloaded_at": d.downloaded_at.isoformat(),
        }
        for d in downloads
    ]
    sys.stdout.write(json.dumps(result, indent=2, default=str) + "\n")
