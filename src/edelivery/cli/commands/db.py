"""Database management subcommands."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)

_TABLES = ("orders", "products", "download_history")


def run_db(config, args) -> None:
    """Handle db subcommands."""
    if args.db_command == "status":
        _db_status(config)
    else:
        sys.stderr.write("usage: edelivery -c CONFIG db status\n")
        sys.exit(1)


def _db_status(config) -> None:
    """Check database connectivity and which tables exist."""
    from edelivery.db import init_database  # noqa: PLC0415

    try:
        db = init_database(config.settings.database)
        db.fetch_value("SELECT 1")
        present = {
            row["table_name"]
            for row in db.fetch_all(
                "SELECT table_name FROM information_schema.tables "
                "WHERE table_schema = 'public' AND table_name = ANY(%s)",
                (list(_TABLES),),
                as_dict=True,
            )
        }
    except Exception:
        log.exception("Database status check failed")
        sys.exit(1)

    sys.stdout.write("database: reachable\n")
    for table in _TABLES:
        state = "ok" if table in present else "missing"
        sys.stdout.write(f"  {table:<18} {state}\n")
    if len(present) != len(_TABLES):
        sys.exit(2)
