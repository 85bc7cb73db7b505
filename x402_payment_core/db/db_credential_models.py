"""
Credential model: one encrypted record per user and credential type.

Just the data structure; encryption and status rules live in the vault service.
"""

from sqlalchemy import Column, Index, String, text

from ..constants import CredentialStatus
from .db_base import JSON, TimestampMixin, UUIDMixin
from .db_config import Base


class Credential(Base, UUIDMixin, TimestampMixin):
    """Stored credential; ``credential_data`` holds per-field or whole-payload ciphertext."""

    __tablename__ = "credential"

    user_id = Column(String(40), nullable=False, index=True)
    credential_type = Column(String(50), nullable=False)
    credential_data = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default=CredentialStatus.ACTIVE.value)

    created_by = Column(String(40), nullable=True)
    updated_by = Column(String(40), nullable=True)

    # At most one ACTIVE row per (user_id, credential_type); inactive history is unbounded
    __table_args__ = (
        Index(
            "ux_credential_active_user_type",
            "user_id",
            "credential_type",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
        Index("ix_credential_lookup", "user_id", "credential_type", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"Credential(id='{self.id}', user_id='{self.user_id}', "
            f"credential_type='{self.credential_type}', status='{self.status}')"
        )
