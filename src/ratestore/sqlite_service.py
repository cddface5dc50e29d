"""SQLite implementation of DatabaseService."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator

from ratestore.errors import DatabaseConnectionError
from ratestore.service import DatabaseService
from ratestore.types import Params, ParamsList


def _adapt(value: Any) -> Any:
    # Fixed-width text keeps DATETIME columns comparable with BETWEEN.
    if isinstance(value, datetime):
        return value.isoformat(sep=" ", timespec="microseconds")
    if isinstance(value, Decimal):
        return str(value)
    return value


def _adapt_params(params: Params | None) -> Params:
    if params is None:
        return ()
    if isinstance(params, dict):
        return {key: _adapt(value) for key, value in params.items()}
    return tuple(_adapt(value) for value in params)


class SQLiteDatabaseService(DatabaseService):
    """SQLite backend using stdlib sqlite3.

    Holds a single connection. Decimals are bound as text and datetimes as
    ISO-8601 text; the spot column is TEXT so rates read back digit for digit.
    """

    placeholder = "?"
    datetime_type = "DATETIME"
    # TEXT affinity keeps every digit; a DECIMAL column would round through REAL.
    decimal_type = "TEXT"
    driver_error = sqlite3.Error

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        if self._conn is not None:
            return
        try:
            conn = sqlite3.connect(self._db_path)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.Error as e:
            raise DatabaseConnectionError(
                f"Unable to open SQLite database at {self._db_path}: {e}"
            ) from e
        self._conn = conn

    def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        conn.close()

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[None]:
        conn = self._get_conn()
        try:
            yield
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def execute(self, sql: str, params: Params | None = None) -> list[dict[str, Any]]:
        conn = self._get_conn()
        cursor = conn.execute(sql, _adapt_params(params))
        if cursor.description is None:
            return []
        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def execute_many(self, sql: str, params_list: ParamsList) -> int:
        conn = self._get_conn()
        cursor = conn.executemany(sql, [_adapt_params(params) for params in params_list])
        return cursor.rowcount

    def execute_ddl(self, sql: str) -> None:
        conn = self._get_conn()
        conn.executescript(sql)
        conn.commit()
