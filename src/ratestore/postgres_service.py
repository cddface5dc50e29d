"""PostgreSQL implementation of DatabaseService."""

from contextlib import contextmanager
from typing import Any, Iterator

import psycopg2
import psycopg2.extras

from ratestore.errors import DatabaseConnectionError
from ratestore.service import DatabaseService
from ratestore.types import Params, ParamsList


class PostgresDatabaseService(DatabaseService):
    """PostgreSQL backend using psycopg2.

    Holds a single connection with autocommit off; every transaction() block
    commits or rolls back on exit. NUMERIC columns come back as Decimal.
    """

    placeholder = "%s"
    datetime_type = "TIMESTAMP"
    decimal_type = "DECIMAL(20,5)"
    driver_error = psycopg2.Error
    connection_errors = (psycopg2.OperationalError, psycopg2.InterfaceError)

    def __init__(self, dsn: str, user: str | None = None, password: str | None = None):
        self._dsn = dsn
        self._user = user
        self._password = password
        self._conn = None

    def connect(self) -> None:
        if self._conn is not None:
            return
        try:
            # psycopg2 drops keyword arguments that are None.
            conn = psycopg2.connect(self._dsn, user=self._user, password=self._password)
        except psycopg2.Error as e:
            raise DatabaseConnectionError(f"Unable to connect to PostgreSQL: {e}") from e
        conn.autocommit = False
        self._conn = conn

    def close(self) -> None:
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        conn.close()

    @property
    def connected(self) -> bool:
        return self._conn is not None and not self._conn.closed

    def _get_conn(self):
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
            if not conn.closed:
                conn.rollback()
            raise

    def execute(self, sql: str, params: Params | None = None) -> list[dict[str, Any]]:
        conn = self._get_conn()
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(sql, params or ())
            if cur.description is None:
                return []
            return [dict(row) for row in cur.fetchall()]

    def execute_many(self, sql: str, params_list: ParamsList) -> int:
        conn = self._get_conn()
        with conn.cursor() as cur:
            cur.executemany(sql, params_list)
            return cur.rowcount

    def execute_ddl(self, sql: str) -> None:
        conn = self._get_conn()
        try:
            with conn.cursor() as cur:
                for statement in sql.split(";"):
                    statement = statement.strip()
                    if statement:
                        cur.execute(statement)
            conn.commit()
        except Exception:
            if not conn.closed:
                conn.rollback()
            raise
