"""Pay-per-link route: serve a stored file or URL once its payment is verified."""

import logging
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response, StreamingResponse

from x402_avm.common import PriceError, atomic_to_decimal
from x402_avm.facilitator import FacilitatorClient
from x402_avm.gate import GateState, PayGate
from x402_avm.paywall import is_browser_request
from x402_avm.requirements import build_payment_requirements
from x402_avm.settlement import SettlementScheduler
from x402_avm.storage import ContentStore, Link, LinkStore, PaymentRecord, PaymentRecorder
from x402_avm.types import (
    PaymentRequirements,
    PaywallConfig,
    Price,
    SettleResponse,
    TokenAmount,
    TokenAsset,
)

from .middleware import SupportedKindsCache, request_info
from .responses import PAYMENT_HEADER, attach_settlement, payment_required_response

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".mp4": "video/mp4",
    ".mp3": "audio/mpeg",
    ".txt": "text/plain",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(PurePosixPath(filename).suffix.lower(), DEFAULT_CONTENT_TYPE)


def content_disposition(filename: str) -> str:
    """Inline disposition with an ASCII `filename` and, when needed, an RFC 5987
    `filename*` carrying the UTF-8 name."""
    name = PurePosixPath(filename).name
    fallback = name.encode("ascii", "replace").decode("ascii")
    fallback = fallback.replace('"', "_").replace("\\", "_")
    if fallback == name:
        return f'inline; filename="{name}"'
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(name)}"


def link_price(link: Link) -> Price:
    """Price of a link: an explicit asset amount, or dollars in the default asset."""
    if link.asset_id is not None:
        return TokenAmount(
            amount=link.price,
            asset=TokenAsset(id=link.asset_id, decimals=link.decimals),
        )
    return f"${link.price:f}"


def create_pay_router(
    facilitator: FacilitatorClient,
    links: LinkStore,
    content: ContentStore,
    recorder: PaymentRecorder,
    scheduler: Optional[SettlementScheduler] = None,
    paywall_config: Optional[PaywallConfig] = None,
) -> APIRouter:
    """Create the router serving `GET /{link_id}` behind a payment.

    Mount it under `/pay`. Content is served as soon as the payment is
    verified; settlement happens after the response has been sent, and
    successful settlements are handed to `recorder`.
    """
    router = APIRouter()
    scheduler = scheduler or SettlementScheduler(facilitator)
    supported = SupportedKindsCache(facilitator)

    def record_payment(link: Link, requirements: PaymentRequirements):
        async def on_settled(settle_response: SettleResponse, payer: Optional[str]):
            if payer is None:
                logger.error(f"Could not recover payer for link {link.id}")
                return
            await recorder.record(
                PaymentRecord(
                    link_id=link.id,
                    payer_address=payer,
                    amount=atomic_to_decimal(
                        requirements.max_amount_required, link.decimals
                    ),
                    txn_id=settle_response.transaction,
                    txn_group_id=settle_response.transaction,
                )
            )

        return on_settled

    def serve(link: Link, is_browser: bool) -> Response:
        if link.content_type == "FILE" and link.content_path:
            if not content.exists(link.content_path):
                return JSONResponse(content={"error": "File not found"}, status_code=404)
            return StreamingResponse(
                content.open(link.content_path),
                media_type=content_type_for(link.content_path),
                headers={
                    "Content-Disposition": content_disposition(link.content_path)
                },
            )
        if link.content_type == "URL" and link.content_path:
            if is_browser:
                # Browsers fetch this with XHR and cannot follow cross-origin redirects
                return JSONResponse(content={"redirect": True, "link": link.content_path})
            return RedirectResponse(link.content_path, status_code=302)
        return JSONResponse(content={"error": "Content not available"}, status_code=404)

    @router.get("/{link_id}")
    async def pay(link_id: str, request: Request) -> Response:
        outcome = None
        gate = PayGate(facilitator, scheduler)
        try:
            link = await links.get(link_id)
            if link is None:
                return JSONResponse(content={"error": "Link not found"}, status_code=404)

            payment_requirements = build_payment_requirements(
                link_price(link),
                link.network,
                link.creator_wallet,
                request_info(request),
                fee_payer=await supported.fee_payer(link.network),
                description=f"Payment for {'file' if link.content_type == 'FILE' else 'content'}",
            )
            if isinstance(payment_requirements, PriceError):
                return JSONResponse(
                    content={"error": payment_requirements.error}, status_code=500
                )

            outcome = await gate.evaluate(
                request.headers.get(PAYMENT_HEADER), payment_requirements
            )
            if outcome.state != GateState.SERVING:
                return payment_required_response(request, outcome, paywall_config)

            response = serve(link, is_browser_request(dict(request.headers)))
            return attach_settlement(
                response, gate, outcome, record_payment(link, outcome.requirements)
            )
        except Exception:
            logger.error(f"Error in pay route for link {link_id}", exc_info=True)
            if outcome is not None:
                gate.fault(outcome)
            return JSONResponse(
                content={"error": "Internal server error"}, status_code=500
            )

    return router
