"""
Integration test configuration.

Wires the real components together in one process: the vault on SQLite, the
transfer executor and facilitator on a shared InMemoryLedger, and an HTTP
facilitator client whose requests are dispatched to the Azure Functions
handlers instead of the network.
"""

from urllib.parse import urlparse

import azure.functions as func
import pytest

from x402_payment_core.facilitator.facilitator_client import (
    FacilitatorClient,
    InProcessFacilitatorClient,
)
from x402_payment_core.facilitator.facilitator_service import FacilitatorService
from x402_payment_core.facilitator.function_app import (
    handle_settle,
    handle_supported,
    handle_verify,
)
from x402_payment_core.ledger.in_memory_ledger import InMemoryLedger
from x402_payment_core.services.credential_service import CredentialVault
from x402_payment_core.services.payment_flow_service import PaymentFlowOrchestrator
from x402_payment_core.services.requirements_service import PaymentRequirementsIssuer
from x402_payment_core.services.transfer_service import TransferExecutor
from x402_payment_core.utils.encryption_utils import CredentialCipher
from x402_payment_core.utils.json_utils import dumps, loads

from tests.conftest import PAYER_ACCOUNT, PAYER_KEY, SYSTEM_ACCOUNT, TEST_MASTER_KEY

USER_ID = "user-integration"


class FunctionAppResponse:
    """The subset of requests.Response the facilitator client reads."""

    def __init__(self, http_response: func.HttpResponse):
        self.status_code = http_response.status_code
        self._body = http_response.get_body()

    def json(self):
        return loads(self._body)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise AssertionError(f"HTTP {self.status_code}")


class FunctionAppSession:
    """Routes FacilitatorClient calls to the Functions handlers."""

    ROUTES = {"verify": handle_verify, "settle": handle_settle, "supported": handle_supported}

    def __init__(self, service: FacilitatorService):
        self.service = service
        self.requests = []

    def post(self, url, headers=None, json=None, timeout=None):
        return self._dispatch("POST", url, headers, dumps(json).encode("utf-8"))

    def get(self, url, headers=None, timeout=None):
        return self._dispatch("GET", url, headers, b"")

    def _dispatch(self, method, url, headers, body):
        route = urlparse(url).path.rstrip("/").split("/")[-1]
        self.requests.append((method, route, headers or {}))
        request = func.HttpRequest(method=method, url=url, headers=headers or {}, body=body)
        return FunctionAppResponse(self.ROUTES[route](request, self.service))


@pytest.fixture(scope="function")
def ledger():
    ledger = InMemoryLedger("hedera-testnet")
    ledger.create_account(PAYER_ACCOUNT, PAYER_KEY, balance_hbar="1")
    ledger.create_account(SYSTEM_ACCOUNT, "system-key", balance_hbar="0")
    return ledger


@pytest.fixture(scope="function")
def vault(db_session):
    return CredentialVault(db_session, cipher=CredentialCipher(TEST_MASTER_KEY))


@pytest.fixture(scope="function")
def stored_credential(vault):
    """The integration user's hedera credential, encrypted at rest."""
    return vault.upsert(
        USER_ID,
        "hedera",
        {"operatorAccountId": PAYER_ACCOUNT, "privateKey": PAYER_KEY, "network": "testnet"},
        actor="integration-test",
    )


@pytest.fixture(scope="function")
def facilitator_service(ledger):
    return FacilitatorService(reader_factory=ledger.reader, fee_payer=SYSTEM_ACCOUNT)


@pytest.fixture(scope="function")
def in_process_client(facilitator_service):
    return InProcessFacilitatorClient(facilitator_service)


@pytest.fixture(scope="function")
def http_session(facilitator_service):
    return FunctionAppSession(facilitator_service)


@pytest.fixture(scope="function")
def http_client(http_session):
    return FacilitatorClient(base_url="http://facilitator.test/api", session=http_session)


@pytest.fixture(scope="function")
def issuer():
    return PaymentRequirementsIssuer()


@pytest.fixture(scope="function")
def make_orchestrator(vault, ledger):
    def _make(facilitator):
        return PaymentFlowOrchestrator(
            credentials=vault,
            executor=TransferExecutor(client_factory=ledger.client_for),
            facilitator=facilitator,
        )

    return _make
