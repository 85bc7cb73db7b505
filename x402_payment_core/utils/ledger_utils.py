"""
Account, transaction id and network helpers for the Hedera ledger.
"""

import re
from typing import Optional

from ..constants import LedgerNetwork
from ..exceptions import validation_failed

ACCOUNT_ID_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")
TRANSACTION_ID_PATTERN = re.compile(r"^(\d+\.\d+\.\d+)@(\d+)\.(\d+)$")
MIRROR_TRANSACTION_ID_PATTERN = re.compile(r"^(\d+\.\d+\.\d+)-(\d+)-(\d+)$")

# Bare SDK names and canonical tokens both map to the canonical token
_NETWORK_ALIASES = {
    "testnet": LedgerNetwork.TESTNET.value,
    "mainnet": LedgerNetwork.MAINNET.value,
    "previewnet": LedgerNetwork.PREVIEWNET.value,
    LedgerNetwork.TESTNET.value: LedgerNetwork.TESTNET.value,
    LedgerNetwork.MAINNET.value: LedgerNetwork.MAINNET.value,
    LedgerNetwork.PREVIEWNET.value: LedgerNetwork.PREVIEWNET.value,
}


def is_valid_account_id(value: Optional[str]) -> bool:
    """True when ``value`` matches the ``shard.realm.num`` account grammar."""
    return isinstance(value, str) and bool(ACCOUNT_ID_PATTERN.match(value))


def validate_account_id(value: Optional[str], field: str = "accountId") -> str:
    """
    Return ``value`` when it is a valid account id.

    Raises:
        ValidationError: If it does not match ``shard.realm.num``
    """
    if not is_valid_account_id(value):
        raise validation_failed(field, value, "must match shard.realm.num (e.g. 0.0.1234)")
    return value


def is_valid_transaction_id(value: Optional[str]) -> bool:
    """True for SDK (``0.0.x@s.n``) or mirror (``0.0.x-s-n``) transaction ids."""
    if not isinstance(value, str):
        return False
    return bool(TRANSACTION_ID_PATTERN.match(value) or MIRROR_TRANSACTION_ID_PATTERN.match(value))


def to_mirror_transaction_id(transaction_id: str) -> str:
    """Convert ``0.0.x@seconds.nanos`` into the mirror node form ``0.0.x-seconds-nanos``."""
    match = TRANSACTION_ID_PATTERN.match(transaction_id)
    if not match:
        return transaction_id
    account, seconds, nanos = match.groups()
    return f"{account}-{seconds}-{nanos}"


def normalize_network(network: Optional[str]) -> Optional[str]:
    """
    Map a network name to its canonical token, or None when unknown.

    >>> normalize_network("testnet")
    'hedera-testnet'
    """
    if not network or not isinstance(network, str):
        return None
    return _NETWORK_ALIASES.get(network.strip().lower())


def sdk_network_name(network: str) -> str:
    """Bare network name as the SDK expects it (``testnet``, ``mainnet``, ``previewnet``)."""
    canonical = normalize_network(network)
    if canonical is None:
        raise ValueError(f"Unsupported ledger network: {network}")
    return canonical.split("-", 1)[1]
