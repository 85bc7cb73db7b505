"""
Tests for vault database configuration and the global manager.
"""

import pytest

from x402_payment_core.db.db_config import (
    DatabaseConfig,
    DatabaseManager,
    close_db,
    get_database_config,
    get_db_manager,
    get_development_config,
    get_production_config,
    has_db_manager,
    initialize_db,
    set_db_manager,
)
from x402_payment_core.exceptions import ConfigurationError, ErrorCode, ValidationError


class TestDatabaseConfig:
    """Test URL construction."""

    def test_sqlite_url(self, tmp_path):
        path = str(tmp_path / "vault.db")
        url = DatabaseConfig(db_type="sqlite", database=path).get_url()

        assert url.drivername == "sqlite"
        assert url.database == path

    def test_postgres_url_keeps_special_characters(self):
        config = DatabaseConfig(
            host="vault-db.internal",
            database="x402_vault",
            username="vault",
            password="p@ss:w/rd",
        )

        url = config.get_url()

        assert url.drivername == "postgresql+psycopg2"
        assert url.host == "vault-db.internal"
        assert url.port == 5432
        assert url.password == "p@ss:w/rd"

    def test_password_hidden_from_repr(self):
        config = DatabaseConfig(host="h", database="d", username="u", password="hunter2")
        assert "hunter2" not in repr(config)

    def test_missing_postgres_settings(self):
        config = DatabaseConfig(host="vault-db.internal", database="x402_vault")

        with pytest.raises(ValidationError) as exc_info:
            config.get_url()

        assert exc_info.value.error_code == ErrorCode.MISSING_REQUIRED
        assert exc_info.value.context["missing"] == ["username", "password"]

    def test_unsupported_type(self):
        with pytest.raises(ValidationError) as exc_info:
            DatabaseConfig(db_type="oracle", database="vault").get_url()
        assert exc_info.value.context["field"] == "db_type"


class TestEnvironmentConfigs:
    def test_development_default_path(self, monkeypatch):
        monkeypatch.delenv("VAULT_DB_PATH", raising=False)
        config = get_development_config()

        assert config.is_sqlite
        assert config.database == "x402_vault.db"
        assert config.development_mode is True

    def test_production_from_env(self, monkeypatch):
        monkeypatch.setenv("VAULT_DB_HOST", "vault-db.internal")
        monkeypatch.setenv("VAULT_DB_PORT", "6432")
        monkeypatch.setenv("VAULT_DB_NAME", "payments")
        monkeypatch.setenv("VAULT_DB_USER", "vault")
        monkeypatch.setenv("VAULT_DB_PASSWORD", "secret")

        config = get_production_config()

        assert config.port == 6432
        assert config.database == "payments"
        assert config.password.get_secret_value() == "secret"
        assert config.development_mode is False

    def test_host_selects_postgres(self, monkeypatch):
        monkeypatch.setenv("VAULT_DB_HOST", "vault-db.internal")
        assert get_database_config().db_type == "postgres"

    def test_no_host_selects_sqlite(self, monkeypatch):
        monkeypatch.delenv("VAULT_DB_HOST", raising=False)
        assert get_database_config().is_sqlite


class TestGlobalManager:
    """Test initialize_db / close_db against the registered manager."""

    def test_initialize_and_close(self, db_manager, tmp_path):
        set_db_manager(None)
        try:
            manager = initialize_db(
                DatabaseConfig(db_type="sqlite", database=str(tmp_path / "vault.db"))
            )

            assert get_db_manager() is manager
            close_db()
            assert not has_db_manager()
        finally:
            set_db_manager(db_manager)

    def test_get_without_manager(self, db_manager):
        set_db_manager(None)
        try:
            with pytest.raises(ConfigurationError):
                get_db_manager()
        finally:
            set_db_manager(db_manager)

    def test_invalid_config_leaves_manager_unset(self, db_manager):
        set_db_manager(None)
        try:
            with pytest.raises(ValidationError):
                initialize_db(DatabaseConfig(host="vault-db.internal", database="x"))
            assert not has_db_manager()
        finally:
            set_db_manager(db_manager)


def test_drop_tables_refused_outside_development():
    manager = DatabaseManager(
        DatabaseConfig(db_type="sqlite", database=":memory:", development_mode=False)
    )
    try:
        with pytest.raises(ConfigurationError):
            manager.drop_tables()
    finally:
        manager.close()
