from typing import Any, Dict, List, Optional, Tuple

from x402_avm.common import x402_VERSION
from x402_avm.types import PaymentRequirements, PaywallConfig, x402PaymentRequiredResponse
from .html import get_paywall_html

# (body, status, headers), left for the web framework to wrap
ChallengeResponse = Tuple[Any, int, Dict[str, str]]


def create_html_response(
    error: str,
    payment_requirements: List[PaymentRequirements],
    current_url: str = "",
    paywall_config: Optional[PaywallConfig] = None,
    custom_html: Optional[str] = None,
) -> ChallengeResponse:
    """402 challenge rendered as the paywall page for browsers."""
    page = get_paywall_html(
        error, payment_requirements, current_url, paywall_config, custom_html
    )
    return page, 402, {"Content-Type": "text/html; charset=utf-8"}


def create_json_response(
    error: str,
    payment_requirements: List[PaymentRequirements],
    payer: Optional[str] = None,
    invalid_reason: Optional[str] = None,
) -> ChallengeResponse:
    """
    402 challenge body for API clients.

    The body carries the protocol version, the accepted requirements, the
    reason for the challenge and, once a payment was rejected, the
    machine-readable reason and the payer.
    """
    body = x402PaymentRequiredResponse(
        x402_version=x402_VERSION,
        accepts=payment_requirements,
        error=error,
        payer=payer,
        invalid_reason=invalid_reason,
    ).model_dump(by_alias=True, exclude_none=True, mode="json")
    return body, 402, {"Content-Type": "application/json"}
