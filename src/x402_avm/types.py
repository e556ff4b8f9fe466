from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal, Optional, Union

from algosdk import encoding as algo_encoding
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing_extensions import (
    TypedDict,
)  # use `typing_extensions.TypedDict` instead of `typing.TypedDict` on Python < 3.12

from x402_avm.networks import SupportedNetworks

ErrorReason = Literal[
    "insufficient_funds",
    "invalid_network",
    "invalid_payload",
    "invalid_payment_requirements",
    "invalid_scheme",
    "invalid_payment",
    "invalid_fee_pool_transaction",
    "payment_expired",
    "unsupported_scheme",
    "invalid_x402_version",
    "invalid_transaction_state",
    "unexpected_settle_error",
    "unexpected_verify_error",
    "invalid_transaction_count",
    "invalid_payment_index",
    "invalid_simulation",
]

HTTPVerb = Literal["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS", "HEAD"]


def _validate_atomic_string(v: str, field_name: str) -> str:
    try:
        value = int(v)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be an integer encoded as a string")
    if value < 0:
        raise ValueError(f"{field_name} must not be negative")
    return v


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class TokenAmount(CamelModel):
    """Represents an amount of an Algorand Standard Asset with asset information"""

    amount: Decimal
    asset: TokenAsset

    @field_validator("amount")
    def validate_amount(cls, v):
        if v < 0:
            raise ValueError("amount must not be negative")
        return v


class TokenAsset(CamelModel):
    """Algorand Standard Asset id and decimal precision"""

    id: int
    decimals: int

    @field_validator("id")
    def validate_id(cls, v):
        if v < 0:
            raise ValueError("asset id must not be negative")
        return v

    @field_validator("decimals")
    def validate_decimals(cls, v):
        if v < 0 or v > 19:
            raise ValueError("decimals must be between 0 and 19")
        return v


# Price can be either Money (USD string or number) or TokenAmount
Money = Union[str, int, float]  # e.g., "$0.01", 0.01, "0.001"
Price = Union[Money, TokenAmount]


class HTTPRequestStructure(CamelModel):
    """Describes how the protected resource is requested over HTTP"""

    type: Literal["http"] = "http"
    method: HTTPVerb
    query_params: Optional[dict[str, str]] = None
    body_type: Optional[
        Literal["json", "form-data", "multipart-form-data", "text", "binary"]
    ] = None
    body_fields: Optional[dict[str, Any]] = None
    header_fields: Optional[dict[str, Any]] = None


class HTTPOutputSchema(CamelModel):
    input: HTTPRequestStructure
    output: Optional[dict[str, Any]] = None


class PaymentExtra(CamelModel):
    """Scheme specific extras. Unknown keys are kept as-is."""

    fee_payer: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="allow",
    )


class PaymentRequirements(CamelModel):
    scheme: Literal["exact"] = "exact"
    network: SupportedNetworks
    max_amount_required: str
    resource: str
    description: str = ""
    mime_type: str = ""
    output_schema: Optional[Union[HTTPOutputSchema, dict[str, Any]]] = Field(
        None, union_mode="left_to_right"
    )
    pay_to: str
    max_timeout_seconds: int
    asset: str
    extra: Optional[PaymentExtra] = None

    @field_validator("max_amount_required")
    def validate_max_amount_required(cls, v):
        return _validate_atomic_string(v, "max_amount_required")

    @field_validator("asset")
    def validate_asset(cls, v):
        return _validate_atomic_string(v, "asset")

    @field_validator("pay_to")
    def validate_pay_to(cls, v):
        if not algo_encoding.is_valid_address(v):
            raise ValueError("pay_to must be a valid Algorand address")
        return v

    @field_validator("resource")
    def validate_resource(cls, v):
        if "://" not in v:
            raise ValueError("resource must be an absolute URL")
        return v

    @property
    def fee_payer(self) -> Optional[str]:
        return self.extra.fee_payer if self.extra else None


class ExactAvmPayload(CamelModel):
    payment_index: int = Field(ge=0)
    payment_group: list[str]

    @field_validator("payment_group")
    def validate_payment_group(cls, v):
        if any(not txn for txn in v):
            raise ValueError("payment_group entries must not be empty")
        return v

    @model_validator(mode="after")
    def validate_payment_index(self):
        if self.payment_index >= len(self.payment_group):
            raise ValueError("payment_index must be a valid index in payment_group")
        return self


# Union of payloads for each scheme
SchemePayloads = ExactAvmPayload

x402_VERSIONS = (1,)


class PaymentPayload(CamelModel):
    x402_version: int
    scheme: Literal["exact"]
    network: SupportedNetworks
    payload: SchemePayloads

    @field_validator("x402_version")
    def validate_x402_version(cls, v):
        if v not in x402_VERSIONS:
            raise ValueError(f"unsupported x402 version: {v}")
        return v


class VerifyResponse(CamelModel):
    is_valid: bool
    invalid_reason: Optional[ErrorReason] = None
    payer: Optional[str] = None


class SettleResponse(CamelModel):
    success: bool
    error_reason: Optional[ErrorReason] = None
    payer: Optional[str] = None
    network: SupportedNetworks
    transaction: Optional[str] = None


class SupportedKind(CamelModel):
    x402_version: int
    scheme: Literal["exact"]
    network: SupportedNetworks
    extra: Optional[PaymentExtra] = None


class SupportedResponse(CamelModel):
    kinds: list[SupportedKind]


# Returned by a server as json alongside a 402 response code
class x402PaymentRequiredResponse(CamelModel):
    x402_version: int
    error: str
    accepts: list[PaymentRequirements]
    payer: Optional[str] = None
    invalid_reason: Optional[ErrorReason] = None


class FacilitatorRequest(CamelModel):
    """Body of the facilitator /verify and /settle endpoints"""

    x402_version: int = 1
    payment_payload: PaymentPayload
    payment_requirements: PaymentRequirements


class ErrorMessages(CamelModel):
    payment_required: Optional[str] = None
    invalid_payment: Optional[str] = None
    no_matching_requirements: Optional[str] = None
    verification_failed: Optional[str] = None
    settlement_failed: Optional[str] = None


class PaymentMiddlewareConfig(CamelModel):
    description: Optional[str] = None
    mime_type: Optional[str] = None
    max_timeout_seconds: Optional[int] = None
    input_schema: Optional[dict[str, Any]] = None
    output_schema: Optional[dict[str, Any]] = None
    discoverable: Optional[bool] = None
    custom_paywall_html: Optional[str] = None
    resource: Optional[str] = None
    error_messages: Optional[ErrorMessages] = None


class RouteConfig(CamelModel):
    price: Price
    network: SupportedNetworks = "algorand"
    pay_to: Optional[str] = None
    config: Optional[PaymentMiddlewareConfig] = None


RoutesConfig = dict[str, Union[Price, RouteConfig]]


class UnsupportedSchemeException(Exception):
    pass


class PaywallConfig(TypedDict, total=False):
    """Configuration for paywall UI customization"""

    app_name: str
    app_logo: str
