"""
Pydantic schemas for stored credentials.

Defines the structure and validation of the credential payloads the vault
knows about, and the read models it returns.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.encryption_utils import is_encrypted
from ..utils.ledger_utils import is_valid_account_id


class BaseCredentialSchema(BaseModel):
    """Base schema for credential payloads."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )


class HederaCredentialData(BaseCredentialSchema):
    """
    Hedera operator credential, using the stored (camelCase) field names.

    Values may arrive already encrypted; the account id grammar is only
    checked on plaintext input.
    """

    operator_account_id: str = Field(..., min_length=1, alias="operatorAccountId")
    private_key: str = Field(..., min_length=1, alias="privateKey", repr=False)
    network: Optional[str] = Field(default=None)

    @field_validator("operator_account_id")
    @classmethod
    def validate_account_id(cls, v: str) -> str:
        if not is_encrypted(v) and not is_valid_account_id(v):
            raise ValueError("operatorAccountId must match shard.realm.num")
        return v

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class DecryptedHederaCredential(BaseModel):
    """Plaintext hedera credential handed to the transfer executor."""

    model_config = ConfigDict(frozen=True)

    operator_account_id: str
    private_key: str = Field(repr=False)
    network: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "operatorAccountId": self.operator_account_id,
            "privateKey": self.private_key,
            "network": self.network,
        }


class CredentialRead(BaseModel):
    """A credential with its data decrypted (or masked, for display)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    credential_type: str
    credential_data: Dict[str, Any] = Field(repr=False)
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
