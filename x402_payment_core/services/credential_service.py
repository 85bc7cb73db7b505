"""
Credential vault: per-user encrypted credentials with upsert and soft delete.

For ``hedera`` credentials the account id and private key are encrypted one
field at a time and the network is kept readable. Any other credential type
is serialized and stored as a single ciphertext. Legacy rows written before
encryption existed are still readable: values without the encrypted shape
pass through unchanged.
"""

import json
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_config
from ..constants import (
    HEDERA_DECRYPTED_FIELDS,
    HEDERA_SECRET_FIELDS,
    NON_SENSITIVE_FIELDS,
    CredentialKind,
    CredentialStatus,
    Limits,
)
from ..context.operation_context import operation
from ..context.user_context import UserLockRegistry, get_user_locks
from ..db.db_base import utc_now
from ..db.db_credential_models import Credential
from ..exceptions import (
    CredentialNotFoundError,
    DecryptionError,
    ErrorCode,
    RepositoryError,
    ValidationError,
)
from ..schemas.credential_schemas import (
    CredentialRead,
    DecryptedHederaCredential,
    HederaCredentialData,
)
from ..utils.encryption_utils import CredentialCipher, get_cipher, is_encrypted
from ..utils.ledger_utils import normalize_network
from ..utils.logger import get_logger


def mask_value(value: Optional[str], min_length: int = Limits.MASK_MIN_LENGTH) -> str:
    """
    Mask a secret for display: first 2 and last 2 characters kept.

    Strings shorter than ``min_length`` are returned as-is; empty becomes ``N/A``.
    """
    if not value or value == "N/A" or len(value) < min_length:
        return value or "N/A"
    return f"{value[:2]}{'*' * (len(value) - 4)}{value[-2:]}"


class CredentialVault:
    """
    Stores and reads back user credentials.

    Writes for one user are serialized through the process-wide user lock
    registry; the partial unique index on active rows covers writers in other
    processes.
    """

    def __init__(
        self,
        session: Session,
        cipher: Optional[CredentialCipher] = None,
        locks: Optional[UserLockRegistry] = None,
        default_network: Optional[str] = None,
    ):
        self.session = session
        self.cipher = cipher or get_cipher()
        self.locks = locks or get_user_locks()
        self.default_network = default_network or get_config().ledger.default_network
        self.logger = get_logger()

    # ==================== READS ====================

    @operation()
    def get(self, user_id: str, credential_type: str) -> CredentialRead:
        """
        Get the active credential with its sensitive fields decrypted.

        Raises:
            CredentialNotFoundError: If the user has no active credential of this type
            DecryptionError: If the stored ciphertext cannot be decrypted
        """
        self._validate_identity(user_id, credential_type)
        self.logger.info(
            "Credential access attempt",
            extra={"user_id": user_id, "credential_type": credential_type, "operation": "get"},
        )

        credential = self._find_active(user_id, credential_type)
        if credential is None:
            raise CredentialNotFoundError(
                f"No active '{credential_type}' credential for user",
                user_id=user_id,
                credential_type=credential_type,
            )

        return self._to_read(credential, self._decrypt_payload(credential))

    @operation()
    def get_masked(self, user_id: str, credential_type: str) -> CredentialRead:
        """Get the active credential with secrets masked for display."""
        credential = self.get(user_id, credential_type)
        masked = self.mask_credential_data(credential.credential_data, credential.credential_type)
        return credential.model_copy(update={"credential_data": masked})

    @operation()
    def get_decrypted(
        self, user_id: str, credential_type: str = CredentialKind.HEDERA.value
    ) -> Optional[DecryptedHederaCredential]:
        """
        Get the plaintext hedera credential used to sign transfers.

        Returns None when the user has no active credential of a hedera type.

        Raises:
            DecryptionError: If the stored ciphertext cannot be decrypted
            ValidationError: If the stored network is not a known ledger network
        """
        if credential_type != CredentialKind.HEDERA.value:
            return None

        credential = self._find_active(user_id, credential_type)
        if credential is None:
            return None

        data = self._decrypt_payload(credential)
        account_id = data.get("operatorAccountId")
        private_key = data.get("privateKey")
        if not isinstance(account_id, str) or not isinstance(private_key, str):
            return None
        if not account_id or not private_key:
            return None

        network = normalize_network(data.get("network"))
        if network is None:
            raise ValidationError(
                "Stored credential names an unknown ledger network",
                field="network",
                credential_id=credential.id,
            )

        return DecryptedHederaCredential(
            operator_account_id=account_id, private_key=private_key, network=network
        )

    # ==================== WRITES ====================

    @operation()
    def upsert(
        self,
        user_id: str,
        credential_type: str,
        credential_data: Dict[str, Any],
        actor: str,
    ) -> CredentialRead:
        """
        Create the user's active credential of this type, or replace its data.

        Already-encrypted fields are stored as-is. Returns the decrypted view.

        Raises:
            ValidationError: If the identity or payload is invalid
            RepositoryError: If the write fails
        """
        self._validate_identity(user_id, credential_type)
        stored = self._encrypt_payload(credential_type, credential_data)

        self.logger.info(
            "Storing credential",
            extra={
                "user_id": user_id,
                "credential_type": credential_type,
                "actor": actor,
                "credential_keys": sorted(credential_data.keys()),
            },
        )

        with self.locks.user_lock(user_id):
            credential = self._write_active(user_id, credential_type, stored, actor)
            return self._to_read(credential, self._decrypt_payload(credential))

    @operation()
    def delete(self, user_id: str, actor: str, credential_type: Optional[str] = None) -> bool:
        """
        Soft-delete the user's active credential(s) by flipping status to INACTIVE.

        Args:
            user_id: Owner of the credential
            actor: Who performed the deletion (audit)
            credential_type: Restrict to one type; all active credentials when None

        Returns:
            True if an active row existed
        """
        with self.locks.user_lock(user_id):
            try:
                stmt = select(Credential).where(
                    Credential.user_id == user_id,
                    Credential.status == CredentialStatus.ACTIVE.value,
                )
                if credential_type is not None:
                    stmt = stmt.where(Credential.credential_type == credential_type)
                rows = self.session.execute(stmt.with_for_update()).scalars().all()
                if not rows:
                    return False

                for row in rows:
                    row.status = CredentialStatus.INACTIVE.value
                    row.updated_by = actor
                    row.updated_at = utc_now()
                self.session.commit()
            except SQLAlchemyError as e:
                self.session.rollback()
                raise RepositoryError(
                    "Failed to delete credential",
                    user_id=user_id,
                    error_type=type(e).__name__,
                ) from e

        self.logger.info(
            "Credential deleted",
            extra={"user_id": user_id, "actor": actor, "deleted_count": len(rows)},
        )
        return True

    # ==================== MASKING ====================

    def mask_credential_data(self, data: Dict[str, Any], credential_type: str) -> Dict[str, Any]:
        """Mask every sensitive string in a decrypted payload."""
        if not data:
            return {}

        if credential_type == CredentialKind.HEDERA.value:
            return {
                "operatorAccountId": mask_value(data.get("operatorAccountId")),
                "privateKey": mask_value(data.get("privateKey")),
                "network": data.get("network") or self.default_network,
            }

        masked: Dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, str) and value and key.lower() not in NON_SENSITIVE_FIELDS:
                masked[key] = mask_value(value)
            else:
                masked[key] = value
        return masked

    # ==================== INTERNALS ====================

    def _validate_identity(self, user_id: str, credential_type: str) -> None:
        if not user_id or not isinstance(user_id, str) or len(user_id) > Limits.MAX_USER_ID_LENGTH:
            raise ValidationError(
                "user_id must be a non-empty string of at most "
                f"{Limits.MAX_USER_ID_LENGTH} characters",
                field="user_id",
                error_code=ErrorCode.INVALID_FORMAT,
            )
        if (
            not credential_type
            or not isinstance(credential_type, str)
            or len(credential_type) > Limits.MAX_CREDENTIAL_TYPE_LENGTH
        ):
            raise ValidationError(
                "credential_type must be a non-empty string of at most "
                f"{Limits.MAX_CREDENTIAL_TYPE_LENGTH} characters",
                field="credential_type",
                error_code=ErrorCode.INVALID_FORMAT,
            )

    def _find_active(
        self, user_id: str, credential_type: str, for_update: bool = False
    ) -> Optional[Credential]:
        stmt = select(Credential).where(
            Credential.user_id == user_id,
            Credential.credential_type == credential_type,
            Credential.status == CredentialStatus.ACTIVE.value,
        )
        if for_update:
            stmt = stmt.with_for_update()
        try:
            return self.session.execute(stmt).scalars().first()
        except SQLAlchemyError as e:
            raise RepositoryError(
                "Failed to load credential",
                user_id=user_id,
                credential_type=credential_type,
                error_type=type(e).__name__,
            ) from e

    def _write_active(
        self, user_id: str, credential_type: str, stored: Any, actor: str
    ) -> Credential:
        # A second pass covers a concurrent insert from another process
        for attempt in range(2):
            try:
                credential = self._find_active(user_id, credential_type, for_update=True)
                if credential is not None:
                    credential.credential_data = stored
                    credential.updated_by = actor
                    credential.updated_at = utc_now()
                else:
                    credential = Credential(
                        user_id=user_id,
                        credential_type=credential_type,
                        credential_data=stored,
                        status=CredentialStatus.ACTIVE.value,
                        created_by=actor,
                        updated_by=actor,
                    )
                    self.session.add(credential)
                self.session.commit()
                return credential
            except IntegrityError as e:
                self.session.rollback()
                if attempt == 0:
                    continue
                raise RepositoryError(
                    "Concurrent credential write could not be reconciled",
                    error_code=ErrorCode.CONFLICT,
                    status_code=409,
                    user_id=user_id,
                    credential_type=credential_type,
                ) from e
            except SQLAlchemyError as e:
                self.session.rollback()
                raise RepositoryError(
                    "Failed to store credential",
                    user_id=user_id,
                    credential_type=credential_type,
                    error_type=type(e).__name__,
                ) from e
        raise RepositoryError("Failed to store credential", user_id=user_id)

    def _encrypt_payload(self, credential_type: str, credential_data: Dict[str, Any]) -> Any:
        if not isinstance(credential_data, dict) or not credential_data:
            raise ValidationError(
                "credentialData must be a non-empty object",
                field="credentialData",
                error_code=ErrorCode.MISSING_REQUIRED,
            )

        if credential_type != CredentialKind.HEDERA.value:
            return self.cipher.encrypt(json.dumps(credential_data))

        try:
            hedera = HederaCredentialData.model_validate(credential_data)
        except PydanticValidationError as e:
            # Field names only; the input values may be secrets
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise ValidationError(
                "Invalid hedera credential data",
                field="credentialData",
                invalid_fields=fields,
            ) from e

        stored = hedera.to_storage()
        for field in HEDERA_SECRET_FIELDS:
            stored[field] = self.cipher.encrypt_if_needed(stored[field])

        network = stored.get("network")
        if network and not is_encrypted(network):
            canonical = normalize_network(network)
            if canonical is None:
                raise ValidationError(
                    f"Unsupported ledger network: {network}", field="network", value=network
                )
            stored["network"] = canonical
        elif not network:
            stored["network"] = self.default_network
        return stored

    def _decrypt_payload(self, credential: Credential) -> Dict[str, Any]:
        try:
            data = self._load_payload(credential.credential_data)
            if credential.credential_type == CredentialKind.HEDERA.value:
                data = dict(data)
                for field in HEDERA_DECRYPTED_FIELDS:
                    value = data.get(field)
                    if isinstance(value, str):
                        data[field] = self.cipher.decrypt(value)
                if not data.get("network"):
                    data["network"] = self.default_network
            return data
        except DecryptionError as e:
            e.add_context(credential_id=credential.id, credential_type=credential.credential_type)
            raise

    def _load_payload(self, raw: Any) -> Dict[str, Any]:
        """Turn the stored column value into a dict, decrypting a whole-payload ciphertext."""
        if isinstance(raw, dict):
            return raw
        if not isinstance(raw, str):
            raise DecryptionError("Stored credential data has an unexpected type")

        if not is_encrypted(raw):
            # Legacy: the JSON document stored as a string
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError as e:
                raise DecryptionError("Stored credential data is not valid JSON") from e
        else:
            try:
                parsed = json.loads(self.cipher.decrypt(raw))
            except json.JSONDecodeError as e:
                raise DecryptionError("Decrypted credential data is not valid JSON") from e

        if not isinstance(parsed, dict):
            raise DecryptionError("Stored credential data is not an object")
        return parsed

    def _to_read(self, credential: Credential, data: Dict[str, Any]) -> CredentialRead:
        return CredentialRead(
            id=credential.id,
            user_id=credential.user_id,
            credential_type=credential.credential_type,
            credential_data=data,
            status=credential.status,
            created_at=credential.created_at,
            updated_at=credential.updated_at,
            created_by=credential.created_by,
            updated_by=credential.updated_by,
        )
