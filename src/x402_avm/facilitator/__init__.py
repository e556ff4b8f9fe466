"""Local x402 facilitator for the exact scheme on Algorand."""

from typing import Optional, Protocol

from x402_avm.avm.rpc import AlgodClientPool
from x402_avm.avm.wallet import FacilitatorAccount
from x402_avm.common import x402_VERSION
from x402_avm.facilitator.settle import ExactAvmSettler
from x402_avm.facilitator.verify import ExactAvmVerifier
from x402_avm.types import (
    PaymentExtra,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    SupportedKind,
    SupportedResponse,
    VerifyResponse,
)


class FacilitatorClient(Protocol):
    """Protocol for facilitators (local or HTTP).

    verify/settle return response objects with is_valid/success=False on
    failure rather than raising.
    """

    async def verify(
        self, payload: PaymentPayload, requirements: PaymentRequirements
    ) -> VerifyResponse: ...

    async def settle(
        self, payload: PaymentPayload, requirements: PaymentRequirements
    ) -> SettleResponse: ...

    async def supported(self) -> SupportedResponse: ...


class Facilitator:
    """Verifies and settles payments with the facilitator's own account."""

    def __init__(
        self,
        account: FacilitatorAccount,
        algod_pool: Optional[AlgodClientPool] = None,
        fee_payer: bool = True,
    ):
        self.account = account
        self.algod_pool = algod_pool or AlgodClientPool()
        self.fee_payer = fee_payer
        self.verifier = ExactAvmVerifier(account, self.algod_pool, fee_payer=fee_payer)
        self.settler = ExactAvmSettler(account, self.algod_pool, fee_payer=fee_payer)

    async def verify(
        self, payload: PaymentPayload, requirements: PaymentRequirements
    ) -> VerifyResponse:
        return await self.verifier.verify(payload, requirements)

    async def settle(
        self, payload: PaymentPayload, requirements: PaymentRequirements
    ) -> SettleResponse:
        return await self.settler.settle(payload, requirements)

    async def supported(self) -> SupportedResponse:
        """Advertise the (scheme, network) pairs accepted and the fee payer, if any."""
        fee_payer = self.account.address if self.fee_payer else None
        return SupportedResponse(
            kinds=[
                SupportedKind(
                    x402_version=x402_VERSION,
                    scheme="exact",
                    network=network,
                    extra=PaymentExtra(fee_payer=fee_payer),
                )
                for network in ("algorand", "algorand-testnet")
            ]
        )


__all__ = [
    "ExactAvmSettler",
    "ExactAvmVerifier",
    "Facilitator",
    "FacilitatorClient",
]
