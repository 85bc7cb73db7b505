"""
Best-effort startup tasks for processes that host the vault.

Failures are reported through the returned StartupReport instead of being
raised, so a host can start and surface the problem on its health endpoint.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .db.db_config import DatabaseManager, close_db, get_db_manager, has_db_manager, initialize_db
from .exceptions import BaseError
from .utils.encryption_utils import get_cipher
from .utils.logger import get_logger


class StartupReport(BaseModel):
    tables_ready: bool = False
    cipher_ready: bool = False
    errors: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.tables_ready and self.cipher_ready and not self.errors


def initialize_vault(db_manager: Optional[DatabaseManager] = None) -> StartupReport:
    """
    Create the credential table and check that the cipher key is configured.

    Args:
        db_manager: Database to initialize. When None the global manager is
            used, or one is built from the VAULT_DB_* environment variables.

    Returns:
        StartupReport describing what succeeded
    """
    logger = get_logger()
    report = StartupReport()

    try:
        if db_manager is None:
            db_manager = get_db_manager() if has_db_manager() else initialize_db()
        db_manager.create_tables()
        report.tables_ready = True
    except BaseError as e:
        report.errors.append(f"database: {e.message}")
    except Exception as e:
        # Driver messages can include the connection string
        report.errors.append(f"database: {type(e).__name__}")

    try:
        get_cipher()
        report.cipher_ready = True
    except BaseError as e:
        report.errors.append(f"cipher: {e.message}")

    if report.ok:
        logger.info("Vault initialized")
    else:
        logger.warning("Vault initialization incomplete", extra={"startup_errors": report.errors})
    return report


def shutdown_vault() -> None:
    """Release the global vault database connections."""
    close_db()
    get_logger().info("Vault database closed")
