"""
Narrow ledger interfaces used by the transfer executor and the facilitator.

A LedgerReader can look up receipts and balances. A LedgerClient is bound to
one payer account and key for its whole life, can also submit transfers and
sign messages, and must be closed when done.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict

from ..constants import LedgerStatus
from ..exceptions import ValidationError, validation_failed
from ..utils.ledger_utils import validate_account_id

SUCCESS_STATUS = LedgerStatus.SUCCESS.value


class LedgerReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_id: Optional[str] = None
    status: str
    consensus_timestamp: Optional[str] = None

    @property
    def is_success(self) -> bool:
        # Only the literal sentinel counts
        return self.status == SUCCESS_STATUS


class TransferLeg(BaseModel):
    model_config = ConfigDict(frozen=True)

    account_id: str
    amount: int


def build_transfer_legs(payer: str, recipient: str, amount_minor_units: int) -> List[TransferLeg]:
    """
    Build the debit and credit legs of a single-payer transfer.

    Raises:
        ValidationError: If the accounts are invalid or equal, the amount is
            not positive, or the legs do not net to zero
    """
    validate_account_id(payer, field="payer")
    validate_account_id(recipient, field="recipient")
    if payer == recipient:
        raise validation_failed("recipient", recipient, "must differ from the payer account")
    if not isinstance(amount_minor_units, int) or amount_minor_units <= 0:
        raise validation_failed("amount", amount_minor_units, "must be a positive tinybar amount")

    legs = [
        TransferLeg(account_id=payer, amount=-amount_minor_units),
        TransferLeg(account_id=recipient, amount=amount_minor_units),
    ]
    if sum(leg.amount for leg in legs) != 0:
        raise ValidationError("Transfer legs do not balance", field="amount")
    return legs


class LedgerReader(ABC):
    """Read-only ledger access."""

    network: str

    @abstractmethod
    def query_receipt(self, transaction_id: str) -> LedgerReceipt:
        """
        Look up the receipt of a transaction.

        Raises:
            LedgerError: If the ledger cannot be queried
        """

    @abstractmethod
    def query_balance(self, account_id: str) -> int:
        """Balance of ``account_id`` in tinybars."""

    def close(self) -> None:
        """Release any resources held by the reader."""


class LedgerClient(LedgerReader):
    """Ledger access bound to one operator account and key."""

    account_id: str

    @abstractmethod
    def submit_transfer(self, legs: List[TransferLeg], memo: Optional[str] = None) -> LedgerReceipt:
        """
        Freeze, sign with the bound key, submit and wait for the receipt.

        Raises:
            LedgerError: If submission fails before a receipt is obtained
        """

    @abstractmethod
    def sign_message(self, message: bytes) -> str:
        """Sign ``message`` with the bound key; returns ``0x``-prefixed hex."""

    def __enter__(self) -> "LedgerClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# (account_id, private_key, network) -> a fresh client owned by the caller
LedgerClientFactory = Callable[[str, str, str], LedgerClient]

# network -> reader
LedgerReaderFactory = Callable[[str], LedgerReader]
