"""
Read-only ledger access through the Hedera mirror node REST API.
"""

from typing import Any, Dict, Optional

import requests

from ..config import get_config
from ..constants import LedgerStatus
from ..exceptions import ConfigurationError, LedgerError
from ..utils.ledger_utils import normalize_network, to_mirror_transaction_id
from ..utils.logger import get_logger
from .base import LedgerReader, LedgerReceipt


class MirrorNodeLedgerReader(LedgerReader):
    """Looks up transaction results and balances on a mirror node."""

    def __init__(
        self,
        network: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        ledger_config = get_config().ledger
        self.network = normalize_network(network) or network
        self.base_url = (base_url or ledger_config.mirror_node_urls.get(self.network) or "").rstrip("/")
        if not self.base_url:
            raise ConfigurationError(
                f"No mirror node configured for network {network}",
                setting="HEDERA_MIRROR_NODE_URL",
            )
        self.timeout = timeout or ledger_config.request_timeout_seconds
        self.http = session or requests
        self.logger = get_logger()

    def query_receipt(self, transaction_id: str) -> LedgerReceipt:
        mirror_id = to_mirror_transaction_id(transaction_id)
        url = f"{self.base_url}/api/v1/transactions/{mirror_id}"
        response = self._get(url)
        if response.status_code == 404:
            return LedgerReceipt(transaction_id=transaction_id, status=LedgerStatus.NOT_FOUND.value)
        body = self._json(response, url)

        transactions = body.get("transactions") or []
        if not transactions:
            return LedgerReceipt(transaction_id=transaction_id, status=LedgerStatus.NOT_FOUND.value)

        # A scheduled or child record can share the id; the parent comes first
        record = transactions[0]
        return LedgerReceipt(
            transaction_id=transaction_id,
            status=str(record.get("result", "UNKNOWN")),
            consensus_timestamp=record.get("consensus_timestamp"),
        )

    def query_balance(self, account_id: str) -> int:
        url = f"{self.base_url}/api/v1/balances"
        response = self._get(url, params={"account.id": account_id})
        body = self._json(response, url)
        for entry in body.get("balances") or []:
            if entry.get("account") == account_id:
                return int(entry.get("balance", 0))
        raise LedgerError("Account not found on mirror node", account_id=account_id)

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        try:
            return self.http.get(
                url, params=params, timeout=self.timeout, headers={"Accept": "application/json"}
            )
        except requests.RequestException as e:
            raise LedgerError(
                "Mirror node request failed", url=url, error_type=type(e).__name__, cause=e
            ) from e

    def _json(self, response: requests.Response, url: str) -> Dict[str, Any]:
        if response.status_code != 200:
            raise LedgerError(
                f"Mirror node returned HTTP {response.status_code}",
                url=url,
                http_status=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise LedgerError("Mirror node returned invalid JSON", url=url) from e


def mirror_node_reader_factory(network: str) -> MirrorNodeLedgerReader:
    """LedgerReaderFactory backed by the configured mirror nodes."""
    return MirrorNodeLedgerReader(network)
