"""x402-avm: x402 payments on Algorand."""

# Facilitator
from x402_avm.facilitator import Facilitator, FacilitatorClient
from x402_avm.facilitator.client import FacilitatorConfig, HTTPFacilitatorClient

# Algorand
from x402_avm.avm import (
    AlgodClient,
    AlgodClientPool,
    FacilitatorAccount,
    create_account_from_mnemonic,
    get_algod_client,
)

# Clients
from x402_avm.clients.base import (
    x402Client,
    decode_x_payment_response,
    PaymentError,
    PaymentAmountExceededError,
)

# Gate
from x402_avm.gate import GateOutcome, GateState, PayGate
from x402_avm.settlement import SettlementScheduler

# Types
from x402_avm.types import (
    ExactAvmPayload,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    SupportedResponse,
    VerifyResponse,
    x402PaymentRequiredResponse,
)

# Networks
from x402_avm.networks import SUPPORTED_AVM_NETWORKS, SupportedNetworks

# Common utilities
from x402_avm.common import process_price_to_atomic_amount, x402_VERSION


__all__ = [
    # Facilitator
    "Facilitator",
    "FacilitatorClient",
    "FacilitatorConfig",
    "HTTPFacilitatorClient",
    # Algorand
    "AlgodClient",
    "AlgodClientPool",
    "FacilitatorAccount",
    "create_account_from_mnemonic",
    "get_algod_client",
    # Clients
    "x402Client",
    "decode_x_payment_response",
    "PaymentError",
    "PaymentAmountExceededError",
    # Gate
    "GateOutcome",
    "GateState",
    "PayGate",
    "SettlementScheduler",
    # Types
    "ExactAvmPayload",
    "PaymentPayload",
    "PaymentRequirements",
    "SettleResponse",
    "SupportedResponse",
    "VerifyResponse",
    "x402PaymentRequiredResponse",
    # Networks
    "SupportedNetworks",
    "SUPPORTED_AVM_NETWORKS",
    # Common
    "process_price_to_atomic_amount",
    "x402_VERSION",
]
