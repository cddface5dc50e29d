"""CLI entry point for FX rate fetching.

Usage:
    python -m scripts.fetch_rates --db-url sqlite:///rates.db [--currency USD] [--mock]
    python -m scripts.fetch_rates --config ratestore.ini
"""

import argparse
import json
import logging
import sys
from datetime import datetime, time

from ratestore import create_service
from ratestore.config import StorageConfig, config_from_env, load_config
from ratestore.errors import ConfigError
from ratestore.fx.client import EcbRatesClient, MockRatesClient
from ratestore.fx.store import ExchangeRateStore, utcnow

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def resolve_config(args: argparse.Namespace) -> StorageConfig:
    if args.config:
        config = load_config(args.config)
        if args.db_url:
            config = StorageConfig(args.db_url, config.user, config.password)
        return config
    if args.db_url:
        return StorageConfig(args.db_url)
    return config_from_env()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Fetch, store and report ECB FX rates")
    parser.add_argument("--db-url", help="Database URL (sqlite:/// or postgresql://)")
    parser.add_argument("--config", help="INI file with a [storage] section")
    parser.add_argument("--currency", help="Only report this currency")
    parser.add_argument("--mock", action="store_true", help="Use mock FX client (for testing)")
    args = parser.parse_args(argv)

    try:
        config = resolve_config(args)
        service = create_service(config.db_url, config.user, config.password)
    except ConfigError as e:
        logger.error("%s", e)
        sys.exit(1)

    client = MockRatesClient() if args.mock else EcbRatesClient()
    rates = client.fetch_rates()
    logger.debug("Rates: %s", rates)

    with ExchangeRateStore(service) as store:
        logger.info("Saving data to database...")
        result = store.save(rates)
        logger.info("Stored %s, unchanged %s", sorted(result.written), result.skipped)

        logger.info("Getting info from database...")
        start_of_day = datetime.combine(utcnow().date(), time.min)
        series = store.retrieve(start_of_day, currency=args.currency)

    report = {
        currency: {date.isoformat(): spot for date, spot in sorted(points.items())}
        for currency, points in sorted(series.items())
    }
    logger.info(json.dumps(report))


if __name__ == "__main__":
    main()
