"""
Ledger client on the Hedera Python SDK (``hedera-sdk-py``, optional extra).

Each instance owns its own SDK ``Client`` with the payer set as operator, so
concurrent transfers for different users never share an operator identity.
"""

from typing import List, Optional

from hedera import (
    AccountBalanceQuery,
    AccountId,
    Client,
    Hbar,
    PrecheckStatusException,
    PrivateKey,
    ReceiptStatusException,
    TransactionId,
    TransactionReceiptQuery,
    TransferTransaction,
)

from ..exceptions import LedgerError
from ..utils.ledger_utils import sdk_network_name
from ..utils.logger import get_logger
from .base import LedgerClient, LedgerReceipt, TransferLeg


def _client_for_network(network: str) -> Client:
    name = sdk_network_name(network)
    if name == "mainnet":
        return Client.forMainnet()
    if name == "previewnet":
        return Client.forPreviewnet()
    return Client.forTestnet()


class HederaLedgerClient(LedgerClient):
    """LedgerClient bound to one operator account on one Hedera network."""

    def __init__(self, account_id: str, private_key: str, network: str):
        self.account_id = account_id
        self.network = network
        self.logger = get_logger()
        try:
            self._operator_id = AccountId.fromString(account_id)
            self._key = PrivateKey.fromString(private_key)
            self._client = _client_for_network(network)
            self._client.setOperator(self._operator_id, self._key)
        except Exception as e:
            # The SDK message may echo the key material; keep only the type
            raise LedgerError(
                "Failed to initialize Hedera client",
                account_id=account_id,
                network=network,
                error_type=type(e).__name__,
            ) from None

    def submit_transfer(self, legs: List[TransferLeg], memo: Optional[str] = None) -> LedgerReceipt:
        tx = TransferTransaction()
        for leg in legs:
            tx.addHbarTransfer(AccountId.fromString(leg.account_id), Hbar.fromTinybars(leg.amount))
        if memo:
            tx.setTransactionMemo(memo)

        try:
            tx.freezeWith(self._client)
            tx = tx.sign(self._key)
            response = tx.execute(self._client)
        except PrecheckStatusException as e:
            # Rejected at precheck: nothing reached consensus
            return LedgerReceipt(
                transaction_id=str(e.transactionId), status=str(e.status.toString())
            )
        except Exception as e:
            raise LedgerError(
                "Hedera transfer submission failed",
                account_id=self.account_id,
                error_type=type(e).__name__,
                cause=e,
            ) from e

        transaction_id = str(response.transactionId.toString())
        try:
            receipt = response.getReceipt(self._client)
        except ReceiptStatusException as e:
            return LedgerReceipt(
                transaction_id=transaction_id, status=str(e.receipt.status.toString())
            )
        except Exception as e:
            raise LedgerError(
                "Failed to obtain Hedera transfer receipt",
                transaction_id=transaction_id,
                error_type=type(e).__name__,
                cause=e,
            ) from e

        return LedgerReceipt(transaction_id=transaction_id, status=str(receipt.status.toString()))

    def sign_message(self, message: bytes) -> str:
        signature = self._key.sign(message)
        return "0x" + bytes(signature).hex()

    def query_receipt(self, transaction_id: str) -> LedgerReceipt:
        try:
            receipt = (
                TransactionReceiptQuery()
                .setTransactionId(TransactionId.fromString(transaction_id))
                .execute(self._client)
            )
        except ReceiptStatusException as e:
            return LedgerReceipt(
                transaction_id=transaction_id, status=str(e.receipt.status.toString())
            )
        except Exception as e:
            raise LedgerError(
                f"Failed to query receipt: {e}",
                transaction_id=transaction_id,
                error_type=type(e).__name__,
            ) from e
        return LedgerReceipt(transaction_id=transaction_id, status=str(receipt.status.toString()))

    def query_balance(self, account_id: str) -> int:
        try:
            balance = AccountBalanceQuery().setAccountId(AccountId.fromString(account_id)).execute(
                self._client
            )
        except Exception as e:
            raise LedgerError(
                "Failed to query balance", account_id=account_id, error_type=type(e).__name__
            ) from e
        return int(balance.hbars.toTinybars())

    def close(self) -> None:
        try:
            self._client.close()
        except Exception as e:
            self.logger.warning(
                "Failed to close Hedera client", extra={"error_type": type(e).__name__}
            )


def hedera_client_factory(account_id: str, private_key: str, network: str) -> HederaLedgerClient:
    """LedgerClientFactory backed by the Hedera SDK."""
    return HederaLedgerClient(account_id, private_key, network)
