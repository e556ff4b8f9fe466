"""Settlement of exact-scheme Algorand payment groups."""

import logging

from x402_avm.avm.rpc import AlgodClientPool
from x402_avm.avm.transaction import (
    cosign_fee_pool_transactions,
    decode_payment_group,
    validate_fee_pool_transactions,
)
from x402_avm.avm.wallet import FacilitatorAccount
from x402_avm.types import PaymentPayload, PaymentRequirements, SettleResponse

logger = logging.getLogger(__name__)


class ExactAvmSettler:
    """Submits a payment group and waits for it to be confirmed.

    Settlement does not rely on a previous verification: the payment index
    and fee pool transactions are checked again before submitting.
    """

    def __init__(
        self,
        account: FacilitatorAccount,
        algod_pool: AlgodClientPool,
        fee_payer: bool = True,
        wait_rounds: int = 3,
    ):
        self.account = account
        self.algod_pool = algod_pool
        self.fee_payer = fee_payer
        self.wait_rounds = wait_rounds

    async def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> SettleResponse:
        """
        Settle a payment group on the requirements' network.

        Args:
            payload: The payment payload to settle
            requirements: The requirements the payment was made for

        Returns:
            SettleResponse with the confirmed transaction id on success
        """
        network = requirements.network
        try:
            group = payload.payload.payment_group
            index = payload.payload.payment_index
            if index < 0 or index >= len(group):
                return SettleResponse(
                    success=False, error_reason="invalid_payment_index", network=network
                )

            decoded = decode_payment_group(group)
            if len(decoded) != len(group):
                return SettleResponse(
                    success=False,
                    error_reason="invalid_transaction_count",
                    network=network,
                )

            payer = decoded[index].txn.sender
            if self.fee_payer:
                if not validate_fee_pool_transactions(decoded, self.account.address):
                    return SettleResponse(
                        success=False,
                        error_reason="invalid_fee_pool_transaction",
                        payer=payer,
                        network=network,
                    )
                decoded = cosign_fee_pool_transactions(decoded, self.account)

            algod = self.algod_pool.get(network)
            txid = await algod.send_raw_transactions([entry.encoded for entry in decoded])
            await algod.wait_for_confirmation(txid, self.wait_rounds)

            logger.info(f"Payment settled on {network}: {txid}")
            return SettleResponse(
                success=True, payer=payer, network=network, transaction=txid
            )
        except Exception:
            logger.error("Unexpected error while settling payment", exc_info=True)
            return SettleResponse(
                success=False, error_reason="unexpected_settle_error", network=network
            )
