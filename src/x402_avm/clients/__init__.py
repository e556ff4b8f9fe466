"""
Client helpers for x402 payments on Algorand.

Core exports:
    - x402Client: Selects payment requirements and signs payment groups
    - decode_x_payment_response: Decode X-PAYMENT-RESPONSE header
"""

from x402_avm.clients.base import (
    PaymentAmountExceededError,
    PaymentError,
    decode_x_payment_response,
    x402Client,
)

__all__ = [
    "x402Client",
    "decode_x_payment_response",
    "PaymentError",
    "PaymentAmountExceededError",
]
