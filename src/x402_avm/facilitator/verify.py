"""Verification of exact-scheme Algorand payment groups."""

import logging
from typing import Any, Optional

from x402_avm.avm.rpc import AlgodClientPool
from x402_avm.avm.transaction import (
    DecodedTxn,
    as_signed_transactions,
    cosign_fee_pool_transactions,
    decode_payment_group,
    is_matching_payment,
    validate_fee_pool_transactions,
)
from x402_avm.avm.wallet import FacilitatorAccount
from x402_avm.types import (
    ErrorReason,
    PaymentPayload,
    PaymentRequirements,
    VerifyResponse,
)

logger = logging.getLogger(__name__)


def simulation_failed(result: dict[str, Any]) -> bool:
    """Whether any group in a simulate response reports a failure."""
    return any(
        group.get("failed-at") is not None or group.get("failure-message") is not None
        for group in result.get("txn-groups", [])
    )


class ExactAvmVerifier:
    """Verifies that a payment group pays exactly what the requirements ask for.

    When `fee_payer` is set, the facilitator covers the group's fees: any
    transaction it sends must be a harmless fee pool transaction, and those
    transactions are co-signed before simulation.
    """

    def __init__(
        self,
        account: FacilitatorAccount,
        algod_pool: AlgodClientPool,
        fee_payer: bool = True,
    ):
        self.account = account
        self.algod_pool = algod_pool
        self.fee_payer = fee_payer

    @property
    def payer(self) -> Optional[str]:
        return self.account.address if self.fee_payer else None

    def _invalid(self, reason: ErrorReason) -> VerifyResponse:
        return VerifyResponse(is_valid=False, invalid_reason=reason, payer=self.payer)

    def check_group(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> tuple[Optional[ErrorReason], list[DecodedTxn]]:
        """
        Run the structural and economic checks on a payment group.

        Args:
            payload: The payment payload holding the group
            requirements: The requirements the payment must satisfy

        Returns:
            A tuple of (error reason or None, final group). On success the
            final group has the fee pool transactions co-signed.
        """
        group = payload.payload.payment_group
        decoded = decode_payment_group(group)
        if len(decoded) != len(group):
            return "invalid_transaction_count", decoded

        index = payload.payload.payment_index
        if index < 0 or index >= len(decoded):
            return "invalid_payment_index", decoded

        if self.fee_payer and not validate_fee_pool_transactions(
            decoded, self.account.address
        ):
            return "invalid_fee_pool_transaction", decoded

        if not is_matching_payment(decoded[index].txn, requirements):
            return "invalid_payment", decoded

        if self.fee_payer:
            decoded = cosign_fee_pool_transactions(decoded, self.account)
        return None, decoded

    async def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> VerifyResponse:
        """
        Verify a payment group against requirements.

        Never raises: unexpected failures are reported as
        `unexpected_verify_error`.

        Args:
            payload: The payment payload to verify
            requirements: The payment requirements to verify against

        Returns:
            VerifyResponse with is_valid and, when invalid, the reason
        """
        try:
            reason, final_group = self.check_group(payload, requirements)
            if reason is not None:
                logger.info(f"Payment rejected: {reason}")
                return self._invalid(reason)

            algod = self.algod_pool.get(requirements.network)
            result = await algod.simulate_raw_transactions(
                as_signed_transactions(final_group)
            )
            if simulation_failed(result):
                logger.info(f"Payment simulation failed on {requirements.network}")
                return self._invalid("invalid_simulation")

            return VerifyResponse(is_valid=True, payer=self.payer)
        except Exception:
            logger.error("Unexpected error while verifying payment", exc_info=True)
            return VerifyResponse(is_valid=False, invalid_reason="unexpected_verify_error")
