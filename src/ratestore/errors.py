"""Error taxonomy for rate storage.

Every error carries an ``ErrorKind`` so callers can dispatch on ``err.kind``
instead of catching each class separately::

    try:
        store.save(rates)
    except RateStoreError as err:
        match err.kind:
            case ErrorKind.CONNECTION:
                ...
"""

from decimal import Decimal
from enum import Enum


class ErrorKind(Enum):
    CONFIG = "config"
    CONNECTION = "connection"
    SCHEMA = "schema"
    READ = "read"
    WRITE = "write"


class RateStoreError(Exception):
    """Base class for every error raised by ratestore."""

    kind: ErrorKind


class ConfigError(RateStoreError):
    """Connection settings are missing, unreadable or malformed."""

    kind = ErrorKind.CONFIG


class DatabaseConnectionError(RateStoreError):
    """The database connection could not be opened or was lost."""

    kind = ErrorKind.CONNECTION


class SchemaError(RateStoreError):
    """Table creation failed."""

    kind = ErrorKind.SCHEMA


class ReadError(RateStoreError):
    """A query failed (range reads and the latest-rate pre-read)."""

    kind = ErrorKind.READ


class WriteError(RateStoreError):
    """The batch upsert failed.

    ``failed`` maps each currency in the failed batch to the rate that could
    not be written.
    """

    kind = ErrorKind.WRITE

    def __init__(self, message: str, failed: dict[str, Decimal] | None = None):
        super().__init__(message)
        self.failed = dict(failed or {})
