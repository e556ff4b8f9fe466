"""FastAPI endpoints exposing a facilitator over HTTP."""

import logging

from fastapi import APIRouter

from x402_avm.facilitator import FacilitatorClient
from x402_avm.types import (
    FacilitatorRequest,
    SettleResponse,
    SupportedResponse,
    VerifyResponse,
)

logger = logging.getLogger(__name__)


def create_facilitator_router(facilitator: FacilitatorClient) -> APIRouter:
    """Create a router with the /verify, /settle and /supported endpoints.

    Responses are serialized with camelCase keys so that
    HTTPFacilitatorClient can consume them.
    """
    router = APIRouter()

    @router.get("/supported", response_model_by_alias=True)
    async def supported() -> SupportedResponse:
        """Get supported payment kinds"""
        return await facilitator.supported()

    @router.post("/verify", response_model_by_alias=True)
    async def verify(request: FacilitatorRequest) -> VerifyResponse:
        """Verify a payment"""
        response = await facilitator.verify(
            request.payment_payload, request.payment_requirements
        )
        logger.info(f"Verify result: {response.is_valid} {response.invalid_reason or ''}")
        return response

    @router.post("/settle", response_model_by_alias=True)
    async def settle(request: FacilitatorRequest) -> SettleResponse:
        """Settle a payment"""
        response = await facilitator.settle(
            request.payment_payload, request.payment_requirements
        )
        logger.info(f"Settle result: {response.success} {response.transaction or ''}")
        return response

    return router
