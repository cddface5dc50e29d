"""FX rate persistence: deduplicated upserts and range reads.

The module-level functions are the write and read paths over a
``DatabaseService``; they raise driver exceptions unchanged.
``ExchangeRateStore`` composes them against one connection and maps every
failure onto the ``ratestore.errors`` taxonomy.

The latest-rate pre-read and the upsert run in separate transactions. Two
stores writing the same table at once can therefore both decide a value
changed and write it; the primary key still keeps one row per
(currency, date), so the cost is a redundant row, not a lost update.
"""

import logging
import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from ratestore import create_service
from ratestore.config import StorageConfig
from ratestore.errors import DatabaseConnectionError, ReadError, WriteError
from ratestore.fx.schema import (
    EXCHANGE_RATES_TABLE,
    RATE_COLUMNS,
    RATE_CONFLICT_COLUMNS,
    SPOT_PRECISION,
    SPOT_SCALE,
    ensure_schema,
    validate_table_name,
)
from ratestore.service import DatabaseService
from ratestore.types import Row, Snapshot, TimeSeries

SPOT_QUANTUM = Decimal(1).scaleb(-SPOT_SCALE)
SPOT_LIMIT = Decimal(10) ** (SPOT_PRECISION - SPOT_SCALE)

LATEST_POINTS_QUERY = """
SELECT r.currency, r.spot, r.date FROM {table} r
WHERE r.date = (SELECT MAX(l.date) FROM {table} l WHERE l.currency = r.currency)
"""

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")


@dataclass(frozen=True)
class RatePoint:
    """One stored row: the spot rate of a currency at a point in time."""

    currency: str
    spot: Decimal
    date: datetime


@dataclass(frozen=True)
class SaveResult:
    """Outcome of ExchangeRateStore.save()."""

    date: datetime
    written: dict[str, Decimal] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the table."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_currency(code: str) -> str:
    currency = str(code).strip().upper()
    if not _CURRENCY_CODE.match(currency):
        raise ValueError(f"Invalid currency code: {code!r}")
    return currency


def to_decimal(value: Any) -> Decimal:
    """Convert a driver or caller value to Decimal.

    Floats go through str() so 1.0821 becomes Decimal("1.0821") rather than
    its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid rate: {value!r}") from e


def normalize_rate(value: Any) -> Decimal:
    """Quantize a rate to the column scale. Rejects negative and non-finite values."""
    rate = to_decimal(value)
    if not rate.is_finite():
        raise ValueError(f"Rate must be finite: {value!r}")
    if rate < 0:
        raise ValueError(f"Rate must be non-negative: {value!r}")
    if rate >= SPOT_LIMIT:
        raise ValueError(
            f"Rate does not fit DECIMAL({SPOT_PRECISION},{SPOT_SCALE}): {value!r}"
        )
    return rate.quantize(SPOT_QUANTUM, rounding=ROUND_HALF_UP)


def to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def to_naive_utc(value: datetime) -> datetime:
    """Shift aware datetimes to UTC and drop tzinfo. Naive ones are already UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def normalize_snapshot(snapshot: Snapshot) -> dict[str, Decimal]:
    """Uppercase currency codes and quantize rates."""
    return {normalize_currency(code): normalize_rate(rate) for code, rate in snapshot.items()}


def latest_rates(
    service: DatabaseService, table: str = EXCHANGE_RATES_TABLE
) -> dict[str, RatePoint]:
    """Return the most recent stored point for every currency."""
    with service.transaction():
        rows = service.execute(LATEST_POINTS_QUERY.format(table=table))
    latest: dict[str, RatePoint] = {}
    for row in rows:
        point = RatePoint(
            currency=row["currency"],
            spot=to_decimal(row["spot"]),
            date=to_datetime(row["date"]),
        )
        latest[point.currency] = point
    return latest


def filter_unchanged(
    rates: Mapping[str, Decimal], latest: Mapping[str, RatePoint]
) -> tuple[dict[str, Decimal], list[str]]:
    """Split ``rates`` into entries that must be written and unchanged currencies.

    A currency is unchanged when its latest stored spot equals the new rate
    as a decimal (trailing zeros do not matter). Currencies never stored
    before are always written.
    """
    survivors: dict[str, Decimal] = {}
    skipped: list[str] = []
    for currency, spot in rates.items():
        previous = latest.get(currency)
        if previous is not None and previous.spot.normalize() == spot.normalize():
            skipped.append(currency)
        else:
            survivors[currency] = spot
    return survivors, sorted(skipped)


def upsert_rates(
    service: DatabaseService,
    table: str,
    rates: Mapping[str, Decimal],
    date: datetime,
) -> int:
    """Upsert every rate at ``date`` in one batch.

    Idempotent: ON CONFLICT (currency, date) DO UPDATE SET spot.
    Returns the affected row count reported by the driver.
    """
    rows = [(currency, spot, date) for currency, spot in rates.items()]
    if not rows:
        return 0
    with service.transaction():
        return service.upsert(table, RATE_COLUMNS, rows, RATE_CONFLICT_COLUMNS)


def range_query(
    table: str,
    placeholder: str,
    start: datetime,
    end: datetime,
    currency: str | None = None,
) -> tuple[str, tuple]:
    """Build the range SELECT and its parameters.

    Both shapes share the column list and the inclusive date predicate; a
    currency adds one equality filter.
    """
    sql = (
        f"SELECT date, currency, spot FROM {table} "
        f"WHERE date BETWEEN {placeholder} AND {placeholder}"
    )
    params: tuple = (start, end)
    if currency is not None:
        sql += f" AND currency = {placeholder}"
        params += (currency,)
    return sql, params


def fold_rows(rows: Iterable[Row], result: TimeSeries | None = None) -> TimeSeries:
    """Reshape flat (date, currency, spot) rows into {currency: {date: spot}}.

    Duplicate rows overwrite the earlier value.
    """
    series: TimeSeries = {} if result is None else result
    for row in rows:
        points = series.setdefault(row["currency"], {})
        points[to_datetime(row["date"])] = float(to_decimal(row["spot"]))
    return series


def retrieve_rates(
    service: DatabaseService,
    table: str,
    start: datetime,
    end: datetime,
    currency: str | None = None,
) -> TimeSeries:
    sql, params = range_query(table, service.placeholder, start, end, currency)
    with service.transaction():
        rows = service.execute(sql, params)
    return fold_rows(rows)


class ExchangeRateStore:
    """Daily exchange rate series stored in one table.

    Owns one connection: the constructor connects and creates the table,
    close() releases it. Use it as a context manager so the connection is
    released on every exit path::

        with ExchangeRateStore.from_config(config) as store:
            store.save({"USD": Decimal("1.0821")})
            series = store.retrieve(start)
    """

    def __init__(
        self,
        service: DatabaseService,
        *,
        table: str = EXCHANGE_RATES_TABLE,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._service = service
        self._table = validate_table_name(table)
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock or utcnow

        try:
            self._logger.info("Establishing database connection...")
            service.connect()
            self._logger.info("Initializing table %s...", self._table)
            ensure_schema(service, self._table)
        except Exception as e:
            self._logger.error("Storage initialization failed: %s", e)
            service.close()
            raise

    @classmethod
    def from_config(cls, config: StorageConfig, **kwargs: Any) -> "ExchangeRateStore":
        """Create the backend named by ``config.db_url`` and open a store on it."""
        service = create_service(config.db_url, config.user, config.password)
        return cls(service, **kwargs)

    @property
    def table(self) -> str:
        return self._table

    @property
    def closed(self) -> bool:
        return not self._service.connected

    def close(self) -> None:
        if self._service.connected:
            self._logger.info("Closing database connection")
        self._service.close()

    def __enter__(self) -> "ExchangeRateStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def _translate(
        self,
        error_cls: type[ReadError] | type[WriteError],
        message: str,
        **extra: Any,
    ) -> Iterator[None]:
        if self.closed:
            raise DatabaseConnectionError(f"{message}: store is closed")
        try:
            yield
        except self._service.connection_errors as e:
            self._logger.error("Connection lost: %s: %s", message, e)
            raise DatabaseConnectionError(f"{message}: {e}") from e
        except self._service.driver_error as e:
            self._logger.error("%s: %s", message, e)
            raise error_cls(f"{message}: {e}", **extra) from e

    def latest(self) -> dict[str, RatePoint]:
        """Most recent stored point per currency."""
        with self._translate(ReadError, "Error while retrieving latest rates"):
            return latest_rates(self._service, self._table)

    def save(self, snapshot: Snapshot) -> SaveResult:
        """Store today's rates, skipping currencies whose rate has not changed.

        Every written row shares one timestamp, truncated to whole seconds.
        Raises ReadError if the pre-read fails and WriteError if the upsert
        fails; nothing is retried.
        """
        rates = normalize_snapshot(snapshot)

        with self._translate(ReadError, "Error while retrieving data for comparison"):
            latest = latest_rates(self._service, self._table)

        for currency, spot in rates.items():
            previous = latest.get(currency)
            if previous is not None:
                self._logger.debug("%s old: %s, new: %s", currency, previous.spot, spot)

        survivors, skipped = filter_unchanged(rates, latest)
        now = to_naive_utc(self._clock()).replace(microsecond=0)
        if not survivors:
            self._logger.info("No rate changes since last save; nothing stored")
            return SaveResult(date=now, skipped=skipped)

        with self._translate(WriteError, "Error when saving data", failed=survivors):
            affected = upsert_rates(self._service, self._table, survivors, now)

        if 0 <= affected < len(survivors):
            message = f"Upsert affected {affected} of {len(survivors)} rows"
            self._logger.error(message)
            raise WriteError(message, failed=survivors)

        self._logger.info(
            "Stored %d rates at %s (%d unchanged)", len(survivors), now.isoformat(), len(skipped)
        )
        return SaveResult(date=now, written=survivors, skipped=skipped)

    def retrieve(
        self,
        start: datetime,
        end: datetime | None = None,
        currency: str | None = None,
    ) -> TimeSeries:
        """Return {currency: {date: rate}} for every point with start <= date <= end.

        ``end`` defaults to now; ``currency`` restricts the result to one
        currency. Rates are converted to float here and nowhere else.
        Timezone-aware bounds are converted to UTC, the zone rows are stored in.
        """
        start = to_naive_utc(start)
        end = to_naive_utc(self._clock() if end is None else end)
        if start > end:
            raise ValueError(f"start {start.isoformat()} is after end {end.isoformat()}")
        if currency is not None:
            currency = normalize_currency(currency)

        self._logger.debug(
            "Retrieving %s rates between %s and %s",
            currency or "all",
            start.isoformat(),
            end.isoformat(),
        )
        with self._translate(ReadError, "Error while retrieving data"):
            return retrieve_rates(self._service, self._table, start, end, currency)
