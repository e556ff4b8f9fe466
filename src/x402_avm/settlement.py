"""Detached settlement of payments after content has been served."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from x402_avm.avm.transaction import get_payer_address
from x402_avm.facilitator import FacilitatorClient
from x402_avm.types import PaymentPayload, PaymentRequirements, SettleResponse

logger = logging.getLogger(__name__)

# Called with (settle_response, payer_address) after a successful settlement
SettledCallback = Callable[[SettleResponse, Optional[str]], Awaitable[None]]


class SettlementScheduler:
    """Runs settlements as background tasks that outlive the request.

    Pending tasks are tracked so the application can wait for them on
    shutdown instead of cancelling them.
    """

    def __init__(self, facilitator: FacilitatorClient):
        self.facilitator = facilitator
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(
        self,
        payment: PaymentPayload,
        requirements: PaymentRequirements,
        on_settled: Optional[SettledCallback] = None,
    ) -> asyncio.Task:
        """Start settling a payment without waiting for the result."""
        task = asyncio.create_task(self.settle(payment, requirements, on_settled))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def settle(
        self,
        payment: PaymentPayload,
        requirements: PaymentRequirements,
        on_settled: Optional[SettledCallback] = None,
    ) -> Optional[SettleResponse]:
        """Settle a payment, log the outcome and notify `on_settled` on success.

        Failures are logged, not raised: the response has already been sent.
        """
        try:
            settle_response = await self.facilitator.settle(payment, requirements)
        except Exception:
            logger.error("Error settling payment", exc_info=True)
            return None

        if not settle_response.success:
            logger.error(f"Payment settlement failed: {settle_response.error_reason}")
            return settle_response

        logger.info(f"Payment settled: {settle_response.transaction}")
        if on_settled is not None:
            payer = get_payer_address(
                payment.payload.payment_group[payment.payload.payment_index]
            )
            try:
                await on_settled(settle_response, payer)
            except Exception:
                logger.error("Error in payment callback", exc_info=True)
        return settle_response

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for pending settlements, up to `timeout` seconds."""
        if not self._tasks:
            return
        logger.info(f"Waiting for {len(self._tasks)} pending settlement(s)")
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} settlement(s) still pending at shutdown")
