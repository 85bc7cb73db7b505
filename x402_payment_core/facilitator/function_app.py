"""
Facilitator HTTP surface on Azure Functions.

Routes:
    GET  /verify     endpoint description
    POST /verify     {paymentPayload, paymentRequirements} -> VerificationResult
    GET  /settle     endpoint description
    POST /settle     {paymentPayload, paymentRequirements} -> SettlementResult
    GET  /supported  supported payment kinds

POST answers 200 with a result document even when the payment is invalid;
only a malformed body gets 400. The handlers are plain callables taking the
request and a FacilitatorService, so they run without the Functions host.

Run with: func start (with a function_app.py that calls create_function_app)
"""

from typing import Any, Dict, Optional

import azure.functions as func
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import BaseError
from ..ledger.mirror_node_client import mirror_node_reader_factory
from ..schemas.payment_schemas import FacilitatorRequest
from ..utils.json_utils import dumps
from ..utils.logger import get_logger
from .facilitator_service import FacilitatorService

ENDPOINT_DESCRIPTIONS: Dict[str, Dict[str, Any]] = {
    "verify": {
        "endpoint": "/verify",
        "description": "POST to verify x402 payments",
        "body": {
            "paymentPayload": "PaymentPayload",
            "paymentRequirements": "PaymentRequirements",
        },
    },
    "settle": {
        "endpoint": "/settle",
        "description": "POST to settle x402 payments",
        "body": {
            "paymentPayload": "PaymentPayload",
            "paymentRequirements": "PaymentRequirements",
        },
    },
}


def _json_response(body: Any, status_code: int = 200) -> func.HttpResponse:
    return func.HttpResponse(dumps(body), status_code=status_code, mimetype="application/json")


def _parse_request(req: func.HttpRequest) -> Optional[FacilitatorRequest]:
    try:
        body = req.get_json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    try:
        return FacilitatorRequest.model_validate(body)
    except PydanticValidationError as e:
        # Field locations only; input values may hold signatures
        get_logger().warning(
            "Rejected facilitator request",
            extra={"invalid_fields": [".".join(str(p) for p in err["loc"]) for err in e.errors()]},
        )
        return None


def handle_verify(req: func.HttpRequest, service: FacilitatorService) -> func.HttpResponse:
    """GET describes the endpoint; POST verifies the payment."""
    if req.method.upper() == "GET":
        return _json_response(ENDPOINT_DESCRIPTIONS["verify"])

    request = _parse_request(req)
    if request is None:
        return _json_response({"error": "Invalid request"}, status_code=400)

    result = service.verify(request.payment_payload, request.payment_requirements)
    return _json_response(result.to_wire())


def handle_settle(req: func.HttpRequest, service: FacilitatorService) -> func.HttpResponse:
    """GET describes the endpoint; POST settles the payment."""
    if req.method.upper() == "GET":
        return _json_response(ENDPOINT_DESCRIPTIONS["settle"])

    request = _parse_request(req)
    if request is None:
        return _json_response({"error": "Invalid request"}, status_code=400)

    result = service.settle(request.payment_payload, request.payment_requirements)
    return _json_response(result.to_wire())


def handle_supported(req: func.HttpRequest, service: FacilitatorService) -> func.HttpResponse:
    return _json_response(service.supported().to_wire())


def create_function_app(service: Optional[FacilitatorService] = None) -> func.FunctionApp:
    """
    Build the Functions app for a facilitator.

    Args:
        service: Facilitator to expose; defaults to one reading from the
            configured mirror nodes

    Returns:
        FunctionApp with the verify, settle and supported routes registered
    """
    facilitator = service or FacilitatorService(reader_factory=mirror_node_reader_factory)
    app = func.FunctionApp()

    @app.function_name(name="Verify")
    @app.route(route="verify", methods=["GET", "POST"], auth_level=func.AuthLevel.ANONYMOUS)
    def verify(req: func.HttpRequest) -> func.HttpResponse:
        return _guarded(handle_verify, req, facilitator)

    @app.function_name(name="Settle")
    @app.route(route="settle", methods=["GET", "POST"], auth_level=func.AuthLevel.ANONYMOUS)
    def settle(req: func.HttpRequest) -> func.HttpResponse:
        return _guarded(handle_settle, req, facilitator)

    @app.function_name(name="Supported")
    @app.route(route="supported", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
    def supported(req: func.HttpRequest) -> func.HttpResponse:
        return _guarded(handle_supported, req, facilitator)

    return app


def _guarded(handler, req: func.HttpRequest, service: FacilitatorService) -> func.HttpResponse:
    try:
        return handler(req, service)
    except BaseError as e:
        return _json_response({"error": e.message}, status_code=e.status_code)
    except Exception as e:
        get_logger().error(
            "Unhandled facilitator error",
            extra={"error_type": type(e).__name__, "route": req.url},
            exc_info=True,
        )
        return _json_response({"error": "Internal server error"}, status_code=500)
