import logging
from typing import Callable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from x402_avm.common import PriceError
from x402_avm.encoding import settle_response_header
from x402_avm.facilitator import FacilitatorClient
from x402_avm.gate import GateState, PayGate
from x402_avm.path import compute_route_patterns, find_matching_route
from x402_avm.requirements import RequestInfo, build_payment_requirements, find_fee_payer
from x402_avm.settlement import SettledCallback, SettlementScheduler
from x402_avm.types import PaywallConfig, RoutesConfig, SupportedResponse

from .responses import (
    PAYMENT_HEADER,
    PAYMENT_RESPONSE_HEADER,
    attach_settlement,
    payment_required_response,
)

logger = logging.getLogger(__name__)


def request_info(request: Request) -> RequestInfo:
    return RequestInfo(
        protocol=request.url.scheme,
        host=request.headers.get("host") or request.url.netloc,
        path=request.url.path,
        method=request.method,
    )


class SupportedKindsCache:
    """Caches the facilitator's supported kinds after the first successful query."""

    def __init__(self, facilitator: FacilitatorClient):
        self.facilitator = facilitator
        self._supported: Optional[SupportedResponse] = None

    async def get(self) -> SupportedResponse:
        if self._supported is None:
            self._supported = await self.facilitator.supported()
        return self._supported

    async def fee_payer(self, network: str) -> Optional[str]:
        return find_fee_payer(await self.get(), network)


def require_payment(
    routes: RoutesConfig,
    pay_to_address: str,
    facilitator: FacilitatorClient,
    scheduler: Optional[SettlementScheduler] = None,
    paywall_config: Optional[PaywallConfig] = None,
    settle_before_response: bool = False,
    on_settled: Optional[SettledCallback] = None,
    default_network: str = "algorand",
):
    """Generate a FastAPI middleware that gates the routes of a route table.

    Args:
        routes (RoutesConfig): Mapping of "<VERB> <path>" patterns to a price
            or a RouteConfig. `*` matches anything and `[name]` matches a
            single path segment, e.g. {"GET /articles/[id]": "$0.01"}.
        pay_to_address (str): Algorand address receiving payments when the
            route does not set its own `pay_to`
        facilitator (FacilitatorClient): Verifies and settles payments
        scheduler (SettlementScheduler, optional): Runs settlements after the
            response is sent. Defaults to one built on `facilitator`; pass the
            application's scheduler so it can be drained on shutdown.
        paywall_config (PaywallConfig, optional): Paywall UI customization
        settle_before_response (bool, optional): Settle before responding and
            add the X-PAYMENT-RESPONSE header. Defaults to False, where
            settlement runs after the response is sent.
        on_settled (optional): Coroutine called after a successful settlement
        default_network (str, optional): Network for routes given as a bare price

    Returns:
        Callable: FastAPI middleware function
    """
    route_patterns = compute_route_patterns(routes, default_network)
    scheduler = scheduler or SettlementScheduler(facilitator)
    supported = SupportedKindsCache(facilitator)

    async def middleware(request: Request, call_next: Callable):
        route = find_matching_route(route_patterns, request.url.path, request.method)
        if route is None:
            return await call_next(request)

        route_config = route.config
        config = route_config.config
        fee_payer = await supported.fee_payer(route_config.network)

        payment_requirements = build_payment_requirements(
            route_config.price,
            route_config.network,
            route_config.pay_to or pay_to_address,
            request_info(request),
            fee_payer=fee_payer,
            config=config,
        )
        if isinstance(payment_requirements, PriceError):
            logger.error(f"Invalid price for {request.url.path}: {payment_requirements.error}")
            return JSONResponse(
                content={"error": payment_requirements.error}, status_code=500
            )

        gate = PayGate(
            facilitator,
            scheduler,
            error_messages=config.error_messages if config else None,
        )
        custom_paywall_html = config.custom_paywall_html if config else None

        outcome = await gate.evaluate(
            request.headers.get(PAYMENT_HEADER), payment_requirements
        )
        if outcome.state != GateState.SERVING:
            return payment_required_response(
                request, outcome, paywall_config, custom_paywall_html
            )

        request.state.payment = outcome.payment
        request.state.payment_requirements = outcome.requirements

        response = await call_next(request)

        if not settle_before_response:
            return attach_settlement(response, gate, outcome, on_settled)

        if response.status_code >= 400:
            return response

        settle_response = await gate.settle_now(outcome, on_settled)
        if settle_response is None or not settle_response.success:
            return payment_required_response(
                request, outcome, paywall_config, custom_paywall_html
            )
        response.headers[PAYMENT_RESPONSE_HEADER] = settle_response_header(
            settle_response
        )
        return response

    return middleware
