"""
Database configuration and session management for the credential vault.

The vault runs on Postgres in deployed environments and on SQLite for local
development and tests. ``initialize_db`` picks one from the ``VAULT_DB_*``
environment variables and registers it as the process-wide manager.
"""

import os
from typing import Any, Optional

from pydantic import BaseModel, SecretStr
from sqlalchemy import URL, create_engine
from sqlalchemy.orm import Session, declarative_base, scoped_session, sessionmaker

from ..constants import EnvironmentVariable
from ..exceptions import ConfigurationError, ErrorCode, ValidationError
from ..utils.logger import get_logger

# Base class for all SQLAlchemy models
Base: Any = declarative_base()

DEFAULT_SQLITE_PATH = "x402_vault.db"


class DatabaseConfig(BaseModel):
    db_type: str = "postgres"
    database: str
    host: Optional[str] = None
    port: int = 5432
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    echo: bool = False
    development_mode: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.db_type.lower() == "sqlite"

    def get_url(self) -> URL:
        """
        Build the SQLAlchemy URL for this configuration.

        Raises:
            ValidationError: Unsupported db_type or incomplete Postgres settings
        """
        if self.is_sqlite:
            return URL.create("sqlite", database=self.database)
        if self.db_type.lower() != "postgres":
            raise ValidationError(
                f"Unsupported database type: {self.db_type}",
                error_code=ErrorCode.INVALID_FORMAT,
                field="db_type",
                value=self.db_type,
            )

        missing = [
            name
            for name in ("host", "database", "username", "password")
            if not getattr(self, name)
        ]
        if missing:
            raise ValidationError(
                "Missing required Postgres configuration parameters",
                error_code=ErrorCode.MISSING_REQUIRED,
                field="database_config",
                missing=missing,
            )
        return URL.create(
            "postgresql+psycopg2",
            username=self.username,
            password=self.password.get_secret_value(),
            host=self.host,
            port=self.port,
            database=self.database,
        )


class DatabaseManager:
    """Owns the engine and thread-scoped sessions for one vault database."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine = self._create_engine()
        self.session_factory = sessionmaker(bind=self.engine)
        self.scoped_session = scoped_session(self.session_factory)

    def _create_engine(self):
        url = self.config.get_url()
        if self.config.is_sqlite:
            # Vault writes arrive from request threads
            return create_engine(
                url, echo=self.config.echo, connect_args={"check_same_thread": False}
            )
        return create_engine(
            url,
            echo=self.config.echo,
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_timeout=self.config.pool_timeout,
            pool_pre_ping=True,
        )

    def create_tables(self) -> None:
        import_all_models()
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        if not self.config.development_mode:
            raise ConfigurationError(
                "Refusing to drop vault tables outside development mode",
                setting="development_mode",
            )
        Base.metadata.drop_all(self.engine)

    def get_session(self) -> Session:
        """Session bound to the calling thread."""
        return self.scoped_session()

    def close_session(self, session: Optional[Session] = None) -> None:
        if session:
            session.close()
        else:
            self.scoped_session.remove()

    def close(self) -> None:
        self.scoped_session.remove()
        self.engine.dispose()


def _env(variable: EnvironmentVariable, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(variable.value, default)


def get_development_config() -> DatabaseConfig:
    """SQLite vault at ``VAULT_DB_PATH`` (``x402_vault.db`` when unset)."""
    return DatabaseConfig(
        db_type="sqlite",
        database=_env(EnvironmentVariable.VAULT_DB_PATH, DEFAULT_SQLITE_PATH),
        echo=_env(EnvironmentVariable.VAULT_DB_ECHO, "false").lower() == "true",
        development_mode=True,
    )


def get_production_config() -> DatabaseConfig:
    """Postgres vault from the ``VAULT_DB_*`` variables."""
    password = _env(EnvironmentVariable.VAULT_DB_PASSWORD)
    return DatabaseConfig(
        db_type="postgres",
        host=_env(EnvironmentVariable.VAULT_DB_HOST),
        port=int(_env(EnvironmentVariable.VAULT_DB_PORT, "5432")),
        database=_env(EnvironmentVariable.VAULT_DB_NAME, "x402_vault"),
        username=_env(EnvironmentVariable.VAULT_DB_USER, "postgres"),
        password=SecretStr(password) if password else None,
        echo=_env(EnvironmentVariable.VAULT_DB_ECHO, "false").lower() == "true",
        development_mode=False,
    )


def get_database_config() -> DatabaseConfig:
    """Postgres when ``VAULT_DB_HOST`` is set, else the development SQLite file."""
    if _env(EnvironmentVariable.VAULT_DB_HOST):
        return get_production_config()
    return get_development_config()


def import_all_models():
    """Import all models to ensure they're registered with SQLAlchemy metadata."""
    from sqlalchemy.orm import configure_mappers

    from .db_credential_models import Credential  # noqa

    configure_mappers()


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """
    Raises:
        ConfigurationError: If no database manager has been initialized
    """
    if _db_manager is None:
        raise ConfigurationError(
            "Database manager not initialized. Call initialize_db() first.",
            setting="database",
        )
    return _db_manager


def has_db_manager() -> bool:
    return _db_manager is not None


def set_db_manager(manager: Optional[DatabaseManager]) -> None:
    """Replace the global manager; tests inject their own here."""
    global _db_manager
    _db_manager = manager


def initialize_db(config: Optional[DatabaseConfig] = None) -> DatabaseManager:
    """
    Build a DatabaseManager and register it as the global manager.

    Tables are not created here; ``startup.initialize_vault`` does that and
    reports failures instead of raising.

    Args:
        config: Database settings; ``get_database_config()`` when None

    Raises:
        ValidationError: The configuration cannot produce a connection URL
    """
    global _db_manager

    if config is None:
        config = get_database_config()

    get_logger().info(
        "Initializing vault database",
        extra={"db_type": config.db_type, "database": config.database},
    )
    manager = DatabaseManager(config)
    if _db_manager is not None:
        _db_manager.close()
    _db_manager = manager
    return manager


def close_db() -> None:
    """Dispose of the global manager's connections and unregister it."""
    global _db_manager
    if _db_manager is not None:
        _db_manager.close()
        _db_manager = None
