"""E2E tests that run against a real PostgreSQL instance.

Requires: docker compose up -d
Run with: pytest tests/test_e2e_postgres.py -v -m e2e
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from ratestore import create_service
from ratestore.config import StorageConfig
from ratestore.fx.schema import ensure_schema
from ratestore.fx.store import ExchangeRateStore

PG_URL = "postgresql://localhost:5433/ratestore_test"
PG_USER = "ratestore"
PG_PASSWORD = "ratestore"
T0 = datetime(2024, 1, 5, 16, 0, 0)

pytestmark = pytest.mark.e2e


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def pg_service():
    """Connect to Postgres and drop the table between tests."""
    service = create_service(PG_URL, PG_USER, PG_PASSWORD)
    service.connect()
    try:
        # Clean slate
        service.execute_ddl("DROP TABLE IF EXISTS exchange_rates")
        yield service
    finally:
        service.close()


def count_rows(service, currency: str) -> int:
    with service.transaction():
        rows = service.execute(
            "SELECT COUNT(*) AS cnt FROM exchange_rates WHERE currency = %s", (currency,)
        )
    return rows[0]["cnt"]


class TestSchema:
    def test_ensure_schema_idempotent(self, pg_service):
        ensure_schema(pg_service)
        ensure_schema(pg_service)
        with pg_service.transaction():
            rows = pg_service.execute("SELECT COUNT(*) AS cnt FROM exchange_rates")
        assert rows[0]["cnt"] == 0


class TestExchangeRateStore:
    def test_scenario(self, pg_service):
        clock = Clock(T0)
        store = ExchangeRateStore(pg_service, clock=clock)

        store.save({"USD": Decimal("1.0821"), "JPY": Decimal("162.33")})
        store.save({"USD": Decimal("1.0821"), "JPY": Decimal("162.33")})
        assert count_rows(pg_service, "USD") == 1

        t1 = clock.now = T0 + timedelta(days=1)
        store.save({"USD": Decimal("1.0850"), "JPY": Decimal("162.33")})
        assert count_rows(pg_service, "USD") == 2
        assert count_rows(pg_service, "JPY") == 1

        series = store.retrieve(T0 - timedelta(seconds=1), currency="USD")
        assert series == {"USD": {T0: pytest.approx(1.0821), t1: pytest.approx(1.085)}}

        latest = store.latest()
        assert latest["USD"].spot == Decimal("1.08500")
        assert latest["JPY"].date == T0

    def test_same_timestamp_upsert(self, pg_service):
        store = ExchangeRateStore(pg_service, clock=Clock(T0))
        store.save({"USD": Decimal("1.0821")})
        store.save({"USD": Decimal("1.0999")})

        with pg_service.transaction():
            rows = pg_service.execute(
                "SELECT spot FROM exchange_rates WHERE currency = %s", ("USD",)
            )
        assert rows == [{"spot": Decimal("1.09990")}]

    def test_from_config(self, pg_service):
        config = StorageConfig(PG_URL, PG_USER, PG_PASSWORD)
        with ExchangeRateStore.from_config(config, table="exchange_rates_e2e") as store:
            result = store.save({"USD": Decimal("1.0821")})
            series = store.retrieve(result.date - timedelta(seconds=1))
        pg_service.execute_ddl("DROP TABLE exchange_rates_e2e")
        assert series["USD"][result.date] == pytest.approx(1.0821)
