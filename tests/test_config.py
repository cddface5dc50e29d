"""Tests for storage configuration loading."""

import pytest

from ratestore.config import StorageConfig, config_from_env, load_config
from ratestore.errors import ConfigError, ErrorKind


class TestLoadConfig:
    def test_load(self, tmp_path):
        path = tmp_path / "ratestore.ini"
        path.write_text(
            "[storage]\n"
            "db_url = postgresql://localhost:5432/rates\n"
            "user = rates\n"
            "password = p%ss\n"
        )
        config = load_config(path)
        assert config == StorageConfig("postgresql://localhost:5432/rates", "rates", "p%ss")

    def test_user_and_password_optional(self, tmp_path):
        path = tmp_path / "ratestore.ini"
        path.write_text("[storage]\ndb_url = sqlite:///rates.db\n")
        assert load_config(path) == StorageConfig("sqlite:///rates.db")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Unable to read") as excinfo:
            load_config(tmp_path / "missing.ini")
        assert excinfo.value.kind is ErrorKind.CONFIG

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "ratestore.ini"
        path.write_text("db_url = sqlite:///rates.db\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_missing_section(self, tmp_path):
        path = tmp_path / "ratestore.ini"
        path.write_text("[other]\ndb_url = sqlite:///rates.db\n")
        with pytest.raises(ConfigError, match=r"Missing \[storage\] section"):
            load_config(path)

    def test_missing_db_url(self, tmp_path):
        path = tmp_path / "ratestore.ini"
        path.write_text("[storage]\nuser = rates\n")
        with pytest.raises(ConfigError, match="No database URL"):
            load_config(path)


class TestConfigFromEnv:
    def test_from_env(self):
        config = config_from_env(
            {
                "RATESTORE_DB_URL": "postgresql://db/rates",
                "RATESTORE_DB_USER": "rates",
                "RATESTORE_DB_PASSWORD": "secret",
            }
        )
        assert config == StorageConfig("postgresql://db/rates", "rates", "secret")

    def test_empty_values_become_none(self):
        config = config_from_env({"RATESTORE_DB_URL": "sqlite:///x.db", "RATESTORE_DB_USER": ""})
        assert config.user is None
        assert config.password is None

    def test_missing_url(self):
        with pytest.raises(ConfigError):
            config_from_env({"RATESTORE_DB_URL": "   "})

    def test_repr_masks_password(self):
        config = StorageConfig("postgresql://db/rates", "rates", "secret")
        assert "secret" not in repr(config)
