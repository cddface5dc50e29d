"""FX rates: ECB client, schema and deduplicating rate store."""

from ratestore.fx.client import EcbRatesClient, MockRatesClient, RatesClient
from ratestore.fx.schema import EXCHANGE_RATES_TABLE, ensure_schema
from ratestore.fx.store import ExchangeRateStore, RatePoint, SaveResult

__all__ = [
    "RatesClient",
    "EcbRatesClient",
    "MockRatesClient",
    "EXCHANGE_RATES_TABLE",
    "ensure_schema",
    "ExchangeRateStore",
    "RatePoint",
    "SaveResult",
]
