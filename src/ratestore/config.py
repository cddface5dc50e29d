"""Connection settings for the rate store.

Settings come either from an INI file::

    [storage]
    db_url = postgresql://localhost:5432/rates
    user = rates
    password = secret

or from the RATESTORE_DB_URL / RATESTORE_DB_USER / RATESTORE_DB_PASSWORD
environment variables.
"""

import configparser
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from ratestore.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_SECTION = "storage"
ENV_DB_URL = "RATESTORE_DB_URL"
ENV_DB_USER = "RATESTORE_DB_USER"
ENV_DB_PASSWORD = "RATESTORE_DB_PASSWORD"


@dataclass(frozen=True)
class StorageConfig:
    db_url: str
    user: str | None = None
    password: str | None = None

    def __repr__(self) -> str:
        masked = "***" if self.password else None
        return f"StorageConfig(db_url={self.db_url!r}, user={self.user!r}, password={masked!r})"


def _build(
    db_url: str | None, user: str | None, password: str | None, source: str
) -> StorageConfig:
    db_url = (db_url or "").strip()
    if not db_url:
        raise ConfigError(f"No database URL configured in {source}")
    return StorageConfig(db_url=db_url, user=user or None, password=password or None)


def load_config(path: str | Path) -> StorageConfig:
    """Read connection settings from the [storage] section of an INI file."""
    parser = configparser.ConfigParser(interpolation=None)
    try:
        with open(path, encoding="utf-8") as f:
            parser.read_file(f)
    except (OSError, configparser.Error) as e:
        logger.error("Unable to read storage config file at %s: %s", path, e)
        raise ConfigError(f"Unable to read storage config file at {path}: {e}") from e

    if not parser.has_section(CONFIG_SECTION):
        raise ConfigError(f"Missing [{CONFIG_SECTION}] section in {path}")

    section = parser[CONFIG_SECTION]
    return _build(section.get("db_url"), section.get("user"), section.get("password"), str(path))


def config_from_env(environ: Mapping[str, str] | None = None) -> StorageConfig:
    """Read connection settings from environment variables."""
    env = os.environ if environ is None else environ
    return _build(env.get(ENV_DB_URL), env.get(ENV_DB_USER), env.get(ENV_DB_PASSWORD), ENV_DB_URL)
