import base64
import json
from typing import Union

from pydantic import ValidationError

from x402_avm.networks import SUPPORTED_AVM_NETWORKS
from x402_avm.types import ErrorReason, PaymentPayload, SettleResponse, x402_VERSIONS


class InvalidPaymentHeaderError(ValueError):
    """Raised when an X-PAYMENT header cannot be decoded into a PaymentPayload."""

    def __init__(self, reason: ErrorReason, message: str):
        super().__init__(message)
        self.reason = reason


def safe_base64_encode(data: Union[str, bytes]) -> str:
    """Safely encode string or bytes to base64 string.

    Args:
        data: String or bytes to encode

    Returns:
        Base64 encoded string
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("utf-8")


def safe_base64_decode(data: str) -> str:
    """Safely decode base64 string to bytes and then to utf-8 string.

    Args:
        data: Base64 encoded string

    Returns:
        Decoded utf-8 string
    """
    return base64.b64decode(data).decode("utf-8")


def encode_payment(payment: PaymentPayload) -> str:
    """Encode a payment payload into an X-PAYMENT header value."""
    return safe_base64_encode(payment.model_dump_json(by_alias=True))


def decode_payment(header: str) -> PaymentPayload:
    """Decode a base64 X-PAYMENT header into a validated PaymentPayload.

    Args:
        header: Base64 encoded JSON payment payload

    Returns:
        The decoded PaymentPayload

    Raises:
        InvalidPaymentHeaderError: With a reason of invalid_payload,
            invalid_network, invalid_scheme or invalid_x402_version
    """
    try:
        parsed = json.loads(safe_base64_decode(header))
    except ValueError as e:
        raise InvalidPaymentHeaderError(
            "invalid_payload", f"Payment header is not base64 encoded JSON: {e}"
        )

    if not isinstance(parsed, dict):
        raise InvalidPaymentHeaderError(
            "invalid_payload", "Payment header must encode a JSON object"
        )

    if parsed.get("network") not in SUPPORTED_AVM_NETWORKS:
        raise InvalidPaymentHeaderError(
            "invalid_network", f"Invalid network: {parsed.get('network')}"
        )
    if parsed.get("scheme") != "exact":
        raise InvalidPaymentHeaderError(
            "invalid_scheme", f"Unsupported scheme: {parsed.get('scheme')}"
        )
    if parsed.get("x402Version") not in x402_VERSIONS:
        raise InvalidPaymentHeaderError(
            "invalid_x402_version",
            f"Unsupported x402 version: {parsed.get('x402Version')}",
        )

    try:
        return PaymentPayload.model_validate(parsed)
    except ValidationError as e:
        raise InvalidPaymentHeaderError("invalid_payload", f"Invalid payment payload: {e}")


def settle_response_header(response: SettleResponse) -> str:
    """Encode a settlement response into a base64 X-PAYMENT-RESPONSE header value."""
    return safe_base64_encode(response.model_dump_json(by_alias=True, exclude_none=True))
