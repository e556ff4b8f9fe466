"""Construction of payment requirements for a requested resource."""

from dataclasses import dataclass
from typing import Optional, Union

from x402_avm.common import PriceError, process_price_to_atomic_amount
from x402_avm.types import (
    HTTPOutputSchema,
    HTTPRequestStructure,
    PaymentExtra,
    PaymentMiddlewareConfig,
    PaymentRequirements,
    Price,
    SupportedResponse,
)

DEFAULT_MAX_TIMEOUT_SECONDS = 60


@dataclass(frozen=True)
class RequestInfo:
    """The parts of an HTTP request the requirements depend on."""

    protocol: str
    host: str
    path: str
    method: str = "GET"

    @property
    def resource_url(self) -> str:
        return f"{self.protocol}://{self.host}{self.path}"


def find_fee_payer(
    supported: SupportedResponse, network: str, scheme: str = "exact"
) -> Optional[str]:
    """Find the fee payer a facilitator advertises for a scheme and network."""
    for kind in supported.kinds:
        if kind.network == network and kind.scheme == scheme:
            return kind.extra.fee_payer if kind.extra else None
    return None


def build_payment_requirements(
    price: Price,
    network: str,
    pay_to: str,
    request: RequestInfo,
    fee_payer: Optional[str] = None,
    config: Optional[PaymentMiddlewareConfig] = None,
    description: str = "",
) -> Union[list[PaymentRequirements], PriceError]:
    """Build the payment requirements for a single request.

    Args:
        price: Route price, as money or an explicit token amount
        network: Network the payment must be made on
        pay_to: Address receiving the payment
        request: The request the requirements are built for
        fee_payer: Facilitator address covering network fees, if any
        config: Optional per-route overrides (description, mime type,
            timeout, resource, output schema)
        description: Description used when the config has none

    Returns:
        A list with one requirements entry per accepted scheme, or a
        PriceError if the price cannot be resolved
    """
    atomic = process_price_to_atomic_amount(price, network)
    if isinstance(atomic, PriceError):
        return atomic

    config = config or PaymentMiddlewareConfig()
    input_structure = HTTPRequestStructure.model_validate(
        {**(config.input_schema or {}), "type": "http", "method": request.method.upper()}
    )

    return [
        PaymentRequirements(
            scheme="exact",
            network=network,
            max_amount_required=atomic.max_amount_required,
            resource=config.resource or request.resource_url,
            description=config.description or description,
            mime_type=config.mime_type or "",
            pay_to=pay_to,
            max_timeout_seconds=config.max_timeout_seconds
            or DEFAULT_MAX_TIMEOUT_SECONDS,
            asset=str(atomic.asset.id),
            output_schema=HTTPOutputSchema(
                input=input_structure, output=config.output_schema
            ),
            extra=PaymentExtra(fee_payer=fee_payer),
        )
    ]
