"""Shared test fixtures."""

from datetime import datetime, timedelta

import pytest

from ratestore import create_service
from ratestore.fx.store import ExchangeRateStore

T0 = datetime(2024, 1, 5, 16, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def db_service(tmp_path):
    """Provide a fresh, connected SQLite DatabaseService for each test."""
    db_path = tmp_path / "test.db"
    service = create_service(f"sqlite:///{db_path}")
    service.connect()
    yield service
    service.close()


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def store(db_service, clock):
    """ExchangeRateStore over db_service with a controllable clock."""
    with ExchangeRateStore(db_service, clock=clock) as rate_store:
        yield rate_store


@pytest.fixture
def count_rows(db_service):
    """Count stored rows, optionally for one currency."""

    def _count(currency: str | None = None) -> int:
        sql = "SELECT COUNT(*) AS cnt FROM exchange_rates"
        params: tuple = ()
        if currency is not None:
            sql += " WHERE currency = ?"
            params = (currency,)
        with db_service.transaction():
            rows = db_service.execute(sql, params)
        return rows[0]["cnt"]

    return _count
