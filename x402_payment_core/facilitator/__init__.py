"""x402 facilitator: verification and settlement against the ledger."""

from .facilitator_client import FacilitatorClient, InProcessFacilitatorClient
from .facilitator_service import FacilitatorService

__all__ = [
    "FacilitatorClient",
    "FacilitatorService",
    "InProcessFacilitatorClient",
]
