"""Utility modules for the x402 payment core."""

from .amount_utils import TINYBARS_PER_HBAR, to_human_units, to_minor_units
from .encryption_utils import CredentialCipher, get_cipher, is_encrypted
from .ledger_utils import normalize_network, validate_account_id
from .logger import configure_logging, get_logger

__all__ = [
    "TINYBARS_PER_HBAR",
    "to_human_units",
    "to_minor_units",
    "CredentialCipher",
    "get_cipher",
    "is_encrypted",
    "normalize_network",
    "validate_account_id",
    "configure_logging",
    "get_logger",
]
