"""Exchange rate table schema."""

import re

from ratestore.errors import DatabaseConnectionError, SchemaError
from ratestore.service import DatabaseService

EXCHANGE_RATES_DDL = """
CREATE TABLE IF NOT EXISTS {table} (
    currency      VARCHAR(3)      NOT NULL,
    spot          {decimal_type}  NOT NULL,
    date          {datetime_type} NOT NULL,
    PRIMARY KEY (currency, date)
);
CREATE INDEX IF NOT EXISTS idx_{table}_date ON {table}(date);
"""

EXCHANGE_RATES_TABLE = "exchange_rates"
RATE_COLUMNS = ["currency", "spot", "date"]
RATE_CONFLICT_COLUMNS = ["currency", "date"]
SPOT_PRECISION = 20
SPOT_SCALE = 5

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_table_name(table: str) -> str:
    """Return ``table`` if it is a plain SQL identifier, else raise ValueError.

    Table names are interpolated into SQL text, so nothing but
    ``[A-Za-z_][A-Za-z0-9_]*`` is accepted.
    """
    if not _IDENTIFIER.match(table):
        raise ValueError(f"Invalid table name: {table!r}")
    return table


def schema_ddl(table: str, datetime_type: str, decimal_type: str = "DECIMAL(20,5)") -> str:
    return EXCHANGE_RATES_DDL.format(
        table=validate_table_name(table),
        datetime_type=datetime_type,
        decimal_type=decimal_type,
    )


def ensure_schema(service: DatabaseService, table: str = EXCHANGE_RATES_TABLE) -> None:
    """Create the exchange rate table if it doesn't exist.

    Safe to call on every startup: existing rows are left untouched.
    """
    ddl = schema_ddl(table, service.datetime_type, service.decimal_type)
    try:
        service.execute_ddl(ddl)
    except service.connection_errors as e:
        raise DatabaseConnectionError(
            f"Connection lost while initializing table {table}: {e}"
        ) from e
    except service.driver_error as e:
        raise SchemaError(f"Unable to initialize table {table}: {e}") from e
