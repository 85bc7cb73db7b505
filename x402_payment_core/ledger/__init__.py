"""
Ledger adapters.

``hedera_client`` needs the optional ``hedera`` SDK and is imported on demand:
``from x402_payment_core.ledger.hedera_client import hedera_client_factory``.
"""

from .base import (
    SUCCESS_STATUS,
    LedgerClient,
    LedgerClientFactory,
    LedgerReader,
    LedgerReaderFactory,
    LedgerReceipt,
    TransferLeg,
    build_transfer_legs,
)
from .in_memory_ledger import InMemoryLedger, InMemoryLedgerClient, InMemoryLedgerReader
from .mirror_node_client import MirrorNodeLedgerReader, mirror_node_reader_factory

__all__ = [
    "SUCCESS_STATUS",
    "LedgerClient",
    "LedgerClientFactory",
    "LedgerReader",
    "LedgerReaderFactory",
    "LedgerReceipt",
    "TransferLeg",
    "build_transfer_legs",
    "InMemoryLedger",
    "InMemoryLedgerClient",
    "InMemoryLedgerReader",
    "MirrorNodeLedgerReader",
    "mirror_node_reader_factory",
]
