"""
Transfer executor: moves HBAR from a user's account using their decrypted key.

Not idempotent. A submission that fails in an ambiguous way is reported with
``outcome_unknown`` and is never retried here; callers that retry must key
the retry on their own idempotency token.
"""

from decimal import Decimal
from typing import Optional

from ..context.operation_context import operation
from ..exceptions import LedgerError, TransferError, ValidationError, validation_failed
from ..ledger.base import LedgerClient, LedgerClientFactory, build_transfer_legs
from ..schemas.credential_schemas import DecryptedHederaCredential
from ..schemas.payment_schemas import PaymentPayload, TransferReceipt
from ..utils.amount_utils import AmountLike, to_decimal, to_minor_units
from ..utils.json_utils import canonical_dumps
from ..utils.ledger_utils import normalize_network, validate_account_id
from ..utils.logger import get_logger


class TransferExecutor:
    """Signs and submits single-payer HBAR transfers."""

    def __init__(self, client_factory: LedgerClientFactory):
        self.client_factory = client_factory
        self.logger = get_logger()

    @operation()
    def execute_transfer(
        self,
        credential: DecryptedHederaCredential,
        recipient: str,
        amount_hbar: AmountLike,
        network: Optional[str] = None,
        memo: Optional[str] = None,
    ) -> TransferReceipt:
        """
        Transfer ``amount_hbar`` from the credential's account to ``recipient``.

        Args:
            credential: Decrypted payer credential
            recipient: Recipient account id
            amount_hbar: Amount in HBAR (human units)
            network: Target network; defaults to the credential's network
            memo: Optional transaction memo

        Returns:
            TransferReceipt with the ledger transaction id and status

        Raises:
            ValidationError: Invalid recipient, amount or network (nothing submitted)
            TransferError: The ledger rejected the transfer or the outcome is unknown
        """
        validate_account_id(recipient, field="recipient")
        amount = to_decimal(amount_hbar)
        if amount <= Decimal(0):
            raise validation_failed("amount", amount, "must be greater than zero")
        amount_minor = to_minor_units(amount)
        if amount_minor <= 0:
            raise validation_failed("amount", amount, "is smaller than one tinybar")

        target_network = normalize_network(network or credential.network)
        if target_network is None:
            raise ValidationError(
                f"Unsupported ledger network: {network or credential.network}", field="network"
            )

        payer = credential.operator_account_id
        legs = build_transfer_legs(payer, recipient, amount_minor)

        self.logger.info(
            "Submitting transfer",
            extra={
                "payer": payer,
                "recipient": recipient,
                "amount_tinybars": amount_minor,
                "network": target_network,
            },
        )

        client = self._open_client(credential, target_network)
        with client:
            try:
                receipt = client.submit_transfer(legs, memo=memo)
            except LedgerError as e:
                raise TransferError(
                    "Transfer submission failed; ledger outcome unknown",
                    outcome_unknown=True,
                    cause=e,
                    payer=payer,
                    recipient=recipient,
                ) from e

        if not receipt.is_success:
            raise TransferError(
                f"Transfer failed with status {receipt.status}",
                status=receipt.status,
                transaction_id=receipt.transaction_id,
                payer=payer,
                recipient=recipient,
            )

        self.logger.info(
            "Transfer completed",
            extra={"transaction_id": receipt.transaction_id, "ledger_status": receipt.status},
        )
        return TransferReceipt(
            transaction_id=receipt.transaction_id,
            status=receipt.status,
            amount_in_minor_units=amount_minor,
            network=target_network,
            payer_account_id=payer,
            recipient_account_id=recipient,
        )

    def sign_payload(self, credential: DecryptedHederaCredential, payload: PaymentPayload) -> str:
        """Sign the canonical JSON of ``payload`` (signature excluded) with the payer key."""
        message = canonical_dumps(payload.signing_view()).encode("utf-8")
        network = normalize_network(payload.network) or credential.network
        with self._open_client(credential, network) as client:
            return client.sign_message(message)

    def _open_client(self, credential: DecryptedHederaCredential, network: str) -> LedgerClient:
        try:
            return self.client_factory(
                credential.operator_account_id, credential.private_key, network
            )
        except LedgerError as e:
            raise TransferError(
                "Could not create a ledger client for the payer",
                cause=e,
                payer=credential.operator_account_id,
            ) from e
