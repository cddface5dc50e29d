"""Exchange rate storage: connection factory and public API."""

from ratestore.errors import (
    ConfigError,
    DatabaseConnectionError,
    ErrorKind,
    RateStoreError,
    ReadError,
    SchemaError,
    WriteError,
)
from ratestore.service import DatabaseService
from ratestore.sqlite_service import SQLiteDatabaseService


def create_service(
    db_url: str, user: str | None = None, password: str | None = None
) -> DatabaseService:
    """Create a DatabaseService from a connection URL.

    The returned service is not connected yet.

    Supported schemes:
    - sqlite:///path/to/db  or  sqlite:///:memory:
    - postgresql://host:port/dbname (user and password may also be in the URL)
    """
    if db_url.startswith("sqlite"):
        # Extract path: sqlite:///foo.db -> foo.db, sqlite:///:memory: -> :memory:
        path = db_url.split(":///", 1)[1] if ":///" in db_url else ":memory:"
        return SQLiteDatabaseService(path)
    elif db_url.startswith(("postgresql", "postgres://")):
        from ratestore.postgres_service import PostgresDatabaseService

        return PostgresDatabaseService(db_url, user=user, password=password)
    else:
        raise ConfigError(f"Unsupported database URL scheme: {db_url}")


__all__ = [
    "create_service",
    "DatabaseService",
    "SQLiteDatabaseService",
    "ErrorKind",
    "RateStoreError",
    "ConfigError",
    "DatabaseConnectionError",
    "SchemaError",
    "ReadError",
    "WriteError",
]
