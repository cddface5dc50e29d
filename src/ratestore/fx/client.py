"""ECB reference rate client with mock support."""

import logging
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation

import requests

logger = logging.getLogger(__name__)

ECB_DAILY_URL = "https://www.ecb.europa.eu/stats/eurofxref/eurofxref-daily.xml"
ECB_NAMESPACE = "http://www.ecb.int/vocabulary/2002-08-01/eurofxref"


class RatesClient(ABC):
    """Abstract interface for fetching today's FX rates."""

    @abstractmethod
    def fetch_rates(self) -> dict[str, Decimal]:
        """Fetch the current reference rates.

        Returns:
            Dict mapping currency code to rate vs EUR, e.g.
            {"USD": Decimal("1.0821"), "JPY": Decimal("162.33")}.
        """


class EcbRatesClient(RatesClient):
    """Euro foreign exchange reference rates published daily by the ECB.

    Failures propagate to the caller; nothing is retried.
    """

    def __init__(
        self,
        url: str = ECB_DAILY_URL,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self._url = url
        self._timeout = timeout
        self._session = session or requests.Session()

    def fetch_rates(self) -> dict[str, Decimal]:
        logger.info("Retrieving rates from %s...", self._url)
        resp = self._session.get(self._url, timeout=self._timeout)
        resp.raise_for_status()
        return parse_ecb_rates(resp.content)


def parse_ecb_rates(payload: bytes | str) -> dict[str, Decimal]:
    """Extract {currency: rate} from an ECB eurofxref XML document."""
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise RuntimeError(f"Malformed ECB rates document: {e}") from e

    rates: dict[str, Decimal] = {}
    for cube in root.iter(f"{{{ECB_NAMESPACE}}}Cube"):
        currency = cube.get("currency")
        rate = cube.get("rate")
        if currency is None or rate is None:
            continue
        try:
            rates[currency] = Decimal(rate).normalize()
        except InvalidOperation as e:
            raise RuntimeError(f"ECB rate for {currency} is not a number: {rate!r}") from e

    if not rates:
        raise RuntimeError("ECB rates document contained no rates")
    return rates


class MockRatesClient(RatesClient):
    """Mock client returning fixed rates for testing."""

    MOCK_RATES = {
        "USD": Decimal("1.0821"),
        "JPY": Decimal("162.33"),
        "GBP": Decimal("0.8569"),
        "CHF": Decimal("0.9487"),
    }

    def __init__(self, rates: dict[str, Decimal] | None = None):
        self._rates = dict(self.MOCK_RATES if rates is None else rates)

    def fetch_rates(self) -> dict[str, Decimal]:
        return dict(self._rates)
