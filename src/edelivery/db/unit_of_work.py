"""Unit of Work: statements sharing one connection and one transaction.

PyPGKit's :class:`BaseRepository` CRUD methods each acquire their own
connection from the pool, so transaction-local settings (such as a
tighter ``statement_timeout`` for background writes) would not apply
to them.  This wrapper keeps every statement on the same connection.

Usage::

    from edelivery.db import UnitOfWork

    with UnitOfWork(db) as uow:
        uow.set_statement_timeout(2000)
        uow.insert("download_history", {...})
        # COMMIT on clean exit; ROLLBACK on exception
"""

from __future__ import annotations

from typing import Any, Self

from psycopg.rows import dict_row
from pypgkit import Database


class UnitOfWork:
    """Transaction-scoped helper over :meth:`Database.transaction`.

    The caller is responsible for building correct SQL; this class is
    intentionally thin.
    """

    def __init__(self, database: Database | None = None) -> None:
        self._db = database or Database.get_instance()
        self._conn = None

    # -- context manager -----------------------------------------------------

    def __enter__(self) -> Self:
        self._tx = self._db.transaction()
        self._conn = self._tx.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._tx.__exit__(exc_type, exc_val, exc_tb)
        self._conn = None

    # -- helpers -------------------------------------------------------------

    def set_statement_timeout(self, milliseconds: int) -> None:
        """Limit every following statement of this transaction."""
        self.fetch_one(
            "SELECT set_config('statement_timeout', %s, true)",
            (str(int(milliseconds)),),
        )

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """INSERT a single row and return the full row via RETURNING *.

        Parameters
        ----------
        table:
            Table name (unquoted).
        row:
            Column-name → value mapping.

        Returns
        -------
        dict
            The inserted row as returned by the database.

        """
        columns = list(row.keys())
        placeholders = ", ".join(["%s"] * len(columns))
        col_list = ", ".join(columns)
        sql = f"INSERT INTO {table} ({col_list}) VALUES ({placeholders}) RETURNING *"
        assert self._conn is not None, "UnitOfWork must be used as a context manager"
        with self._conn.cursor(row_factory=dict_row) as cur:
            cur.execute(sql, list(row.values()))
            return cur.fetchone()

    def fetch_one(
        self,
        sql: str,
        params: tuple | list | None = None,
    ) -> dict[str, Any] | None:
        """Execute a query and return the first row as a dict, or None."""
        assert self._conn is not None, "UnitOfWork must be used as a context manager"
        with self._conn.cursor(row_factory=dict_row) as cur:
            cur.execute(sql, params)
            return cur.fetchone()
