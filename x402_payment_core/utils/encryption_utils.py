"""
Symmetric encryption for credential secrets.

Values are sealed with AES-256-GCM and stored as ``iv:authTag:ciphertext``
(all hex). The shape of a value is the only signal of whether it is encrypted,
so legacy plaintext rows keep working: decrypting text that does not look
encrypted returns it unchanged.

The master key is process-wide configuration. Rotating it invalidates every
value encrypted under the previous key; there is no key versioning.
"""

import hashlib
import hmac
import os
import re
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..config import get_config
from ..exceptions import ConfigurationError, DecryptionError

IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32
ASSOCIATED_DATA = b"hedera-private-key"
KDF_SALT = b"hedera-master-key-salt"
KDF_ITERATIONS = 100_000

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")
_HEX = re.compile(r"^[0-9a-fA-F]+$")


def is_encrypted(value: Optional[str]) -> bool:
    """
    Return True when ``value`` has the ``hex:hex:anything`` encrypted shape.

    Exactly three colon-separated parts with non-empty hex in the first two.
    """
    if not isinstance(value, str):
        return False
    parts = value.split(":")
    if len(parts) != 3:
        return False
    iv_hex, tag_hex, _ = parts
    return bool(_HEX.match(iv_hex)) and bool(_HEX.match(tag_hex))


def derive_key(master_key: str) -> bytes:
    """
    Turn the configured master key into 32 bytes of AES key material.

    A 64 character hex string is used directly, anything else is treated as a
    passphrase and stretched with PBKDF2-HMAC-SHA512.
    """
    if _HEX_KEY.match(master_key):
        return bytes.fromhex(master_key)

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_LENGTH,
        salt=KDF_SALT,
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(master_key.encode("utf-8"))


def generate_master_key() -> str:
    """Generate a new random master key (64 hex chars)."""
    return secrets.token_hex(KEY_LENGTH)


def hash_secret(value: str) -> str:
    """SHA-256 hex digest, for comparing secrets without storing them."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def verify_secret_hash(value: str, digest: str) -> bool:
    """Constant-time comparison of ``value`` against a digest from hash_secret."""
    return hmac.compare_digest(hash_secret(value), digest)


class CredentialCipher:
    """
    Encrypts and decrypts individual secret strings.

    Key material is derived once at construction.
    """

    def __init__(self, master_key: Optional[str] = None):
        master_key = master_key if master_key is not None else (
            get_config().security.encryption_master_key
        )
        if not master_key:
            raise ConfigurationError(
                "Encryption master key is not configured",
                setting="ENCRYPTION_MASTER_KEY",
            )
        self._aesgcm = AESGCM(derive_key(master_key))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt ``plaintext`` into ``iv:authTag:ciphertext`` with a fresh IV."""
        iv = os.urandom(IV_LENGTH)
        sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), ASSOCIATED_DATA)
        # cryptography appends the tag to the ciphertext
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, value: str) -> str:
        """
        Decrypt an ``iv:authTag:ciphertext`` value.

        Values that do not have the encrypted shape are legacy plaintext and are
        returned unchanged.

        Raises:
            DecryptionError: If the value has the encrypted shape but fails to
                parse or authenticate (tampering or a rotated key).
        """
        if not is_encrypted(value):
            return value

        iv_hex, tag_hex, ct_hex = value.split(":")
        try:
            iv = bytes.fromhex(iv_hex)
            tag = bytes.fromhex(tag_hex)
            ciphertext = bytes.fromhex(ct_hex)
        except ValueError as e:
            raise DecryptionError("Encrypted value is not valid hex") from e

        if len(tag) != TAG_LENGTH or not iv:
            raise DecryptionError(
                "Encrypted value has an invalid IV or authentication tag length",
                iv_length=len(iv),
                tag_length=len(tag),
            )

        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext + tag, ASSOCIATED_DATA)
        except InvalidTag as e:
            raise DecryptionError("Authentication failed while decrypting value") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError("Decrypted value is not valid UTF-8") from e

    def encrypt_if_needed(self, value: str) -> str:
        """Encrypt ``value`` unless it already has the encrypted shape."""
        return value if is_encrypted(value) else self.encrypt(value)


_cipher: Optional[CredentialCipher] = None


def get_cipher() -> CredentialCipher:
    """Get the process-wide cipher, built from configuration on first use."""
    global _cipher
    if _cipher is None:
        _cipher = CredentialCipher()
    return _cipher


def set_cipher(cipher: Optional[CredentialCipher]) -> None:
    """Replace (or with None, reset) the process-wide cipher."""
    global _cipher
    _cipher = cipher
