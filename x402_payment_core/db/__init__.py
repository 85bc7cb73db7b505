"""
SQLAlchemy models and database management.
"""

from .db_base import JSON, TimestampMixin, UUIDMixin, utc_now
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    close_db,
    get_database_config,
    get_db_manager,
    get_development_config,
    get_production_config,
    has_db_manager,
    import_all_models,
    initialize_db,
    set_db_manager,
)
from .db_credential_models import Credential

__all__ = [
    # Base definitions
    "Base",
    "JSON",
    "TimestampMixin",
    "UUIDMixin",
    "utc_now",
    # Configuration
    "DatabaseConfig",
    "DatabaseManager",
    "close_db",
    "get_database_config",
    "get_db_manager",
    "get_development_config",
    "get_production_config",
    "has_db_manager",
    "import_all_models",
    "initialize_db",
    "set_db_manager",
    # Models
    "Credential",
]
