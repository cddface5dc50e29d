"""Abstract DatabaseService interface."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, ClassVar, Iterator

from ratestore.types import Params, ParamsList


class DatabaseService(ABC):
    """Database-agnostic interface for all DB operations.

    Design principles:
    - One connection per instance, opened by connect() and released by close()
    - Sequential use: no internal concurrency, one caller at a time
    - DB-agnostic: callers program against this ABC, never a concrete backend
    """

    #: Parameter placeholder understood by the driver.
    placeholder: ClassVar[str]
    #: Column type used for timestamps in DDL.
    datetime_type: ClassVar[str]
    #: Column type used for exact decimal rates in DDL.
    decimal_type: ClassVar[str]
    #: Base class of every exception the driver raises.
    driver_error: ClassVar[type[Exception]] = Exception
    #: Driver exceptions that mean the connection itself is unusable.
    connection_errors: ClassVar[tuple[type[Exception], ...]] = ()

    @abstractmethod
    def connect(self) -> None:
        """Open the connection. Raises DatabaseConnectionError on failure."""

    @abstractmethod
    def close(self) -> None:
        """Close the connection. Safe to call more than once."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """True while a connection is open."""

    @abstractmethod
    def execute(self, sql: str, params: Params | None = None) -> list[dict[str, Any]]:
        """Execute a single SQL statement and return rows as dicts."""

    @abstractmethod
    def execute_many(self, sql: str, params_list: ParamsList) -> int:
        """Execute a SQL statement for each parameter set.

        Returns the affected row count reported by the driver, or -1 if the
        driver does not report one.
        """

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Context manager: commits on success, rolls back on error."""

    @abstractmethod
    def execute_ddl(self, sql: str) -> None:
        """Execute DDL statements (CREATE TABLE, CREATE INDEX, etc.)."""

    def upsert(
        self,
        table: str,
        columns: list[str],
        rows: list[tuple],
        conflict_columns: list[str],
    ) -> int:
        """Insert rows, updating the non-key columns on conflict.

        Both backends accept the same ON CONFLICT ... excluded spelling.
        Returns the affected row count as for execute_many().
        """
        if not rows:
            return 0
        cols = ", ".join(columns)
        placeholders = ", ".join(self.placeholder for _ in columns)
        conflict_cols = ", ".join(conflict_columns)
        update_cols = [c for c in columns if c not in conflict_columns]

        sql = f"INSERT INTO {table} ({cols}) VALUES ({placeholders}) ON CONFLICT ({conflict_cols}) "
        if update_cols:
            sql += "DO UPDATE SET " + ", ".join(f"{c} = excluded.{c}" for c in update_cols)
        else:
            sql += "DO NOTHING"
        return self.execute_many(sql, rows)
