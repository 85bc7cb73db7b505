"""
Tests for the facilitator Azure Functions handlers.
"""

import json
from unittest.mock import Mock

import azure.functions as func

from x402_payment_core.exceptions import ConfigurationError
from x402_payment_core.facilitator.function_app import (
    ENDPOINT_DESCRIPTIONS,
    _guarded,
    create_function_app,
    handle_settle,
    handle_supported,
    handle_verify,
)
from x402_payment_core.schemas.payment_schemas import FacilitatorRequest

from tests.conftest import make_payload, make_requirements


def _request(method="POST", route="verify", body=b""):
    return func.HttpRequest(method=method, url=f"http://localhost/api/{route}", body=body)


def _body_for(payload, requirements=None):
    request = FacilitatorRequest(
        payment_payload=payload, payment_requirements=requirements or make_requirements()
    )
    return json.dumps(request.to_wire()).encode("utf-8")


def _json(response):
    return json.loads(response.get_body())


class TestVerifyRoute:
    """Test GET and POST /verify."""

    def test_get_describes_endpoint(self, facilitator):
        response = handle_verify(_request(method="GET"), facilitator)

        assert response.status_code == 200
        assert _json(response) == ENDPOINT_DESCRIPTIONS["verify"]

    def test_post_valid_payment(self, facilitator, completed_transfer):
        body = _body_for(make_payload(transaction_id=completed_transfer.transaction_id))

        response = handle_verify(_request(body=body), facilitator)

        assert response.status_code == 200
        assert response.mimetype == "application/json"
        data = _json(response)
        assert data["valid"] is True
        assert data["transactionId"] == completed_transfer.transaction_id
        assert data["proof"]["status"] == "SUCCESS"

    def test_invalid_payment_is_still_200(self, facilitator):
        response = handle_verify(_request(body=_body_for(make_payload())), facilitator)

        assert response.status_code == 200
        assert _json(response)["valid"] is False

    def test_malformed_json(self, facilitator):
        response = handle_verify(_request(body=b"{not json"), facilitator)

        assert response.status_code == 400
        assert _json(response) == {"error": "Invalid request"}

    def test_missing_fields(self, facilitator):
        body = json.dumps({"paymentPayload": {"network": "hedera-testnet"}}).encode("utf-8")

        response = handle_verify(_request(body=body), facilitator)

        assert response.status_code == 400

    def test_non_object_body(self, facilitator):
        response = handle_verify(_request(body=b"[1, 2]"), facilitator)
        assert response.status_code == 400


class TestSettleRoute:
    def test_get_describes_endpoint(self, facilitator):
        response = handle_settle(_request(method="GET", route="settle"), facilitator)
        assert _json(response)["endpoint"] == "/settle"

    def test_post_settles(self, facilitator, completed_transfer):
        body = _body_for(make_payload(transaction_id=completed_transfer.transaction_id))

        response = handle_settle(_request(route="settle", body=body), facilitator)

        data = _json(response)
        assert data["success"] is True
        assert data["message"] == "Payment settled successfully"

    def test_post_unsettled(self, facilitator):
        request = _request(route="settle", body=_body_for(make_payload()))

        response = handle_settle(request, facilitator)

        data = _json(response)
        assert response.status_code == 200
        assert data["success"] is False
        assert data["error"] == "Transaction status: NOT_FOUND"

    def test_bad_body(self, facilitator):
        response = handle_settle(_request(route="settle", body=b""), facilitator)
        assert response.status_code == 400


class TestSupportedRoute:
    def test_supported(self, facilitator):
        response = handle_supported(_request(method="GET", route="supported"), facilitator)

        kinds = _json(response)["kinds"]
        assert kinds[0]["extra"] == {"feePayer": "0.0.5005"}


class TestGuarded:
    """Test error mapping around the handlers."""

    def test_base_error_uses_status_code(self, facilitator):
        handler = Mock(side_effect=ConfigurationError("Facilitator not configured"))

        response = _guarded(handler, _request(), facilitator)

        assert response.status_code == 500
        assert _json(response) == {"error": "Facilitator not configured"}

    def test_unexpected_error_hides_details(self, facilitator):
        handler = Mock(side_effect=RuntimeError("secret detail"))

        response = _guarded(handler, _request(), facilitator)

        assert response.status_code == 500
        assert _json(response) == {"error": "Internal server error"}


class TestCreateFunctionApp:
    def test_returns_function_app(self, facilitator):
        app = create_function_app(facilitator)

        assert isinstance(app, func.FunctionApp)
        names = {function.get_function_name() for function in app.get_functions()}
        assert names == {"Verify", "Settle", "Supported"}
