from typing import Optional

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask, BackgroundTasks

from x402_avm.gate import GateOutcome, GateState, PayGate
from x402_avm.paywall import create_html_response, create_json_response, is_browser_request
from x402_avm.settlement import SettledCallback
from x402_avm.types import PaywallConfig

PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"


def current_url(request: Request) -> str:
    """Path and query of the request, as the browser asked for it."""
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def payment_required_response(
    request: Request,
    outcome: GateOutcome,
    paywall_config: Optional[PaywallConfig] = None,
    custom_paywall_html: Optional[str] = None,
) -> Response:
    """Build the 402 response for a challenged or rejected request.

    Browsers get the HTML paywall when no payment was attempted; everything
    else, including rejected payments, gets the JSON body with the accepted
    requirements and the rejection reason.
    """
    error = outcome.error or "Payment required"
    if outcome.state == GateState.CHALLENGE and is_browser_request(dict(request.headers)):
        content, status_code, headers = create_html_response(
            error,
            outcome.accepts,
            current_url(request),
            paywall_config,
            custom_paywall_html,
        )
        return HTMLResponse(content=content, status_code=status_code, headers=headers)

    content, status_code, headers = create_json_response(
        error, outcome.accepts, outcome.payer, outcome.invalid_reason
    )
    return JSONResponse(content=content, status_code=status_code, headers=headers)


def attach_settlement(
    response: Response,
    gate: PayGate,
    outcome: GateOutcome,
    on_settled: Optional[SettledCallback] = None,
) -> Response:
    """Register settlement to run once the response has been sent.

    Starlette runs a response's background task after the last body chunk
    is written, which makes it the post-flush hook. Responses coming back
    from `call_next` are re-wrapped so their body is streamed unchanged.
    """

    async def settle_after_send() -> None:
        gate.complete(outcome, response.status_code, on_settled)

    hook = BackgroundTask(settle_after_send)
    existing = getattr(response, "background", None)
    if existing is not None:
        # Existing tasks run first, settlement last
        hook = BackgroundTasks([existing, hook])

    if hasattr(response, "body_iterator"):
        wrapped = StreamingResponse(
            response.body_iterator,
            status_code=response.status_code,
            background=hook,
        )
        wrapped.raw_headers = list(response.raw_headers)
        return wrapped

    response.background = hook
    return response
