"""
Deterministic in-process ledger for local development and tests.

Accounts hold a key and a tinybar balance. Clients bound to an account sign
with HMAC-SHA256 over their key; a client whose key does not match the
account's key gets INVALID_SIGNATURE receipts. Query counters let tests
assert that no ledger call happened.
"""

import hashlib
import hmac
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..constants import LedgerNetwork, LedgerStatus
from ..exceptions import LedgerError
from ..utils.amount_utils import AmountLike, to_minor_units
from ..utils.ledger_utils import normalize_network
from .base import LedgerClient, LedgerReader, LedgerReceipt, TransferLeg


@dataclass
class _Account:
    private_key: str
    balance: int


class InMemoryLedger:
    """Thread-safe ledger state shared by the clients and readers it hands out."""

    def __init__(self, network: str = LedgerNetwork.TESTNET.value):
        self.network = normalize_network(network) or network
        self._accounts: Dict[str, _Account] = {}
        self._receipts: Dict[str, LedgerReceipt] = {}
        self._lock = threading.Lock()
        self._sequence = 0
        self.receipt_queries = 0
        self.balance_queries = 0
        self.submissions = 0
        # When set, every query raises it (simulates an unreachable ledger)
        self.query_error: Optional[Exception] = None

    # ==================== SETUP ====================

    def create_account(self, account_id: str, private_key: str, balance_hbar: AmountLike = 0) -> None:
        with self._lock:
            self._accounts[account_id] = _Account(
                private_key=private_key, balance=to_minor_units(balance_hbar)
            )

    def balance_of(self, account_id: str) -> int:
        """Balance in tinybars without touching the query counters."""
        with self._lock:
            return self._accounts[account_id].balance

    def client_for(self, account_id: str, private_key: str, network: str) -> "InMemoryLedgerClient":
        """Client factory: ``(account_id, private_key, network) -> client``."""
        return InMemoryLedgerClient(self, account_id, private_key, network)

    def reader(self, network: Optional[str] = None) -> "InMemoryLedgerReader":
        """Reader factory: ``network -> reader``."""
        return InMemoryLedgerReader(self, network or self.network)

    def verify_signature(self, account_id: str, message: bytes, signature: str) -> bool:
        with self._lock:
            account = self._accounts.get(account_id)
        if account is None:
            return False
        return hmac.compare_digest(_sign(account.private_key, message), signature)

    # ==================== LEDGER OPERATIONS ====================

    def submit(self, payer: str, private_key: str, legs: List[TransferLeg]) -> LedgerReceipt:
        with self._lock:
            self.submissions += 1
            transaction_id = self._next_transaction_id(payer)
            status = self._apply(payer, private_key, legs)
            receipt = LedgerReceipt(
                transaction_id=transaction_id,
                status=status,
                consensus_timestamp=f"{time.time():.9f}",
            )
            self._receipts[transaction_id] = receipt
            return receipt

    def query_receipt(self, transaction_id: str) -> LedgerReceipt:
        with self._lock:
            self.receipt_queries += 1
            if self.query_error is not None:
                raise self.query_error
            receipt = self._receipts.get(transaction_id)
        if receipt is None:
            return LedgerReceipt(transaction_id=transaction_id, status=LedgerStatus.NOT_FOUND.value)
        return receipt

    def query_balance(self, account_id: str) -> int:
        with self._lock:
            self.balance_queries += 1
            if self.query_error is not None:
                raise self.query_error
            account = self._accounts.get(account_id)
            if account is None:
                raise LedgerError("Unknown account", account_id=account_id)
            return account.balance

    def _apply(self, payer: str, private_key: str, legs: List[TransferLeg]) -> str:
        payer_account = self._accounts.get(payer)
        if payer_account is None:
            return LedgerStatus.INVALID_ACCOUNT_ID.value
        if not hmac.compare_digest(payer_account.private_key, private_key):
            return LedgerStatus.INVALID_SIGNATURE.value
        if any(leg.account_id not in self._accounts for leg in legs):
            return LedgerStatus.INVALID_ACCOUNT_ID.value

        debit = -sum(leg.amount for leg in legs if leg.amount < 0)
        if payer_account.balance < debit:
            return LedgerStatus.INSUFFICIENT_PAYER_BALANCE.value

        for leg in legs:
            self._accounts[leg.account_id].balance += leg.amount
        return LedgerStatus.SUCCESS.value

    def _next_transaction_id(self, payer: str) -> str:
        self._sequence += 1
        seconds = int(time.time())
        return f"{payer}@{seconds}.{self._sequence:09d}"


def _sign(private_key: str, message: bytes) -> str:
    return "0x" + hmac.new(private_key.encode("utf-8"), message, hashlib.sha256).hexdigest()


class InMemoryLedgerReader(LedgerReader):
    def __init__(self, ledger: InMemoryLedger, network: str):
        self.ledger = ledger
        self.network = normalize_network(network) or network

    def query_receipt(self, transaction_id: str) -> LedgerReceipt:
        return self.ledger.query_receipt(transaction_id)

    def query_balance(self, account_id: str) -> int:
        return self.ledger.query_balance(account_id)


class InMemoryLedgerClient(LedgerClient):
    def __init__(self, ledger: InMemoryLedger, account_id: str, private_key: str, network: str):
        self.ledger = ledger
        self.account_id = account_id
        self._private_key = private_key
        self.network = normalize_network(network) or network
        self.closed = False

    def submit_transfer(self, legs: List[TransferLeg], memo: Optional[str] = None) -> LedgerReceipt:
        self._ensure_open()
        return self.ledger.submit(self.account_id, self._private_key, legs)

    def sign_message(self, message: bytes) -> str:
        self._ensure_open()
        return _sign(self._private_key, message)

    def query_receipt(self, transaction_id: str) -> LedgerReceipt:
        self._ensure_open()
        return self.ledger.query_receipt(transaction_id)

    def query_balance(self, account_id: str) -> int:
        self._ensure_open()
        return self.ledger.query_balance(account_id)

    def close(self) -> None:
        self.closed = True

    def _ensure_open(self) -> None:
        if self.closed:
            raise LedgerError("Ledger client is closed", account_id=self.account_id)
