"""
Clients the payment flow uses to reach a facilitator.

``FacilitatorClient`` talks HTTP to a remote facilitator; ``InProcessFacilitatorClient``
calls a co-located FacilitatorService directly. Both expose the same
verify/settle/supported interface and raise VerificationError or
SettlementError only when the facilitator cannot be reached or answers with
something other than a result document. A request that times out raises
PaymentTimeoutError.
"""

from typing import Any, Dict, Optional, Type

import requests
from pydantic import ValidationError as PydanticValidationError

from ..config import get_config
from ..constants import PAYMENT_HEADER
from ..exceptions import PaymentError, PaymentTimeoutError, SettlementError, VerificationError
from ..schemas.payment_schemas import (
    FacilitatorRequest,
    PaymentPayload,
    PaymentRequirements,
    SettlementResult,
    SupportedResponse,
    VerificationResult,
)
from ..utils.json_utils import b64_json
from ..utils.logger import get_logger
from .facilitator_service import FacilitatorService


class FacilitatorClient:
    """HTTP client for a facilitator exposing POST /verify and POST /settle."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        facilitator_config = get_config().facilitator
        self.base_url = (base_url or facilitator_config.base_url).rstrip("/")
        self.timeout = timeout or facilitator_config.request_timeout_seconds
        self.http = session or requests
        self.logger = get_logger()

    def _get_headers(self, payload: PaymentPayload) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            PAYMENT_HEADER: b64_json(payload.to_wire()),
        }

    def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        timeout: Optional[float] = None,
    ) -> VerificationResult:
        """
        POST the payload to /verify.

        Raises:
            VerificationError: Facilitator unreachable, non-200, or unparseable body
        """
        body = self._post("verify", payload, requirements, timeout, VerificationError)
        try:
            return VerificationResult.model_validate(body)
        except PydanticValidationError as e:
            raise VerificationError(
                "Facilitator returned an invalid verification result",
                transaction_id=payload.metadata.transaction_id,
                invalid_fields=[".".join(str(p) for p in err["loc"]) for err in e.errors()],
            ) from None

    def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        timeout: Optional[float] = None,
    ) -> SettlementResult:
        """
        POST the payload to /settle.

        Raises:
            SettlementError: Facilitator unreachable, non-200, or unparseable body
        """
        body = self._post("settle", payload, requirements, timeout, SettlementError)
        try:
            return SettlementResult.model_validate(body)
        except PydanticValidationError as e:
            raise SettlementError(
                "Facilitator returned an invalid settlement result",
                transaction_id=payload.metadata.transaction_id,
                invalid_fields=[".".join(str(p) for p in err["loc"]) for err in e.errors()],
            ) from None

    def supported(self) -> SupportedResponse:
        url = f"{self.base_url}/supported"
        response = self.http.get(url, headers={"Accept": "application/json"}, timeout=self.timeout)
        response.raise_for_status()
        return SupportedResponse.model_validate(response.json())

    def _post(
        self,
        endpoint: str,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        timeout: Optional[float],
        error_class: Type[PaymentError],
    ) -> Dict[str, Any]:
        url = f"{self.base_url}/{endpoint}"
        transaction_id = payload.metadata.transaction_id
        request_body = FacilitatorRequest(
            payment_payload=payload, payment_requirements=requirements
        ).to_wire()

        try:
            response = self.http.post(
                url,
                headers=self._get_headers(payload),
                json=request_body,
                timeout=timeout or self.timeout,
            )
        except requests.Timeout as e:
            raise PaymentTimeoutError(
                f"Facilitator {endpoint} request timed out",
                stage=endpoint,
                transaction_id=transaction_id,
                url=url,
                cause=e,
            ) from e
        except requests.RequestException as e:
            raise error_class(
                f"Facilitator {endpoint} request failed",
                transaction_id=transaction_id,
                url=url,
                error_type=type(e).__name__,
                cause=e,
            ) from e

        if response.status_code != 200:
            raise error_class(
                f"Facilitator {endpoint} returned HTTP {response.status_code}",
                transaction_id=transaction_id,
                url=url,
                http_status=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise error_class(
                f"Facilitator {endpoint} returned invalid JSON",
                transaction_id=transaction_id,
                url=url,
            ) from e

        self.logger.debug(
            f"Facilitator {endpoint} responded",
            extra={"transaction_id": transaction_id, "url": url},
        )
        return body


class InProcessFacilitatorClient:
    """Same interface as FacilitatorClient, backed by a local FacilitatorService."""

    def __init__(self, service: FacilitatorService):
        self.service = service
        self.verify_calls = 0
        self.settle_calls = 0

    def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        timeout: Optional[float] = None,
    ) -> VerificationResult:
        self.verify_calls += 1
        return self.service.verify(payload, requirements)

    def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        timeout: Optional[float] = None,
    ) -> SettlementResult:
        self.settle_calls += 1
        return self.service.settle(payload, requirements)

    def supported(self) -> SupportedResponse:
        return self.service.supported()
