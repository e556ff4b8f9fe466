"""Challenge/verify/serve/settle state machine for a payment-gated resource."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from x402_avm.common import find_matching_payment_requirements
from x402_avm.encoding import InvalidPaymentHeaderError, decode_payment
from x402_avm.facilitator import FacilitatorClient
from x402_avm.settlement import SettledCallback, SettlementScheduler
from x402_avm.types import (
    ErrorMessages,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_REQUIRED = "X-PAYMENT header is required"
DEFAULT_INVALID_PAYMENT = "Invalid or malformed payment header"
DEFAULT_NO_MATCHING_REQUIREMENTS = "Unable to find matching payment requirements"
DEFAULT_SETTLEMENT_FAILED = "Settlement failed"


class GateState(str, Enum):
    NO_PAYMENT = "no_payment"
    PAYMENT_PRESENT = "payment_present"
    DECODING = "decoding"
    MATCHING = "matching"
    VERIFYING = "verifying"
    SERVING = "serving"
    SETTLING = "settling"
    # Terminal states
    CHALLENGE = "challenge"
    SERVED = "served"
    REJECTED = "rejected"
    FAULT = "fault"


TERMINAL_STATES = frozenset(
    {GateState.CHALLENGE, GateState.SERVED, GateState.REJECTED, GateState.FAULT}
)


@dataclass
class GateOutcome:
    """Where a request ended up in the gate, and what to answer with.

    `state` is CHALLENGE or REJECTED when a 402 must be returned, and
    SERVING when the content may be served.
    """

    state: GateState
    accepts: list[PaymentRequirements]
    error: Optional[str] = None
    invalid_reason: Optional[str] = None
    payer: Optional[str] = None
    payment: Optional[PaymentPayload] = None
    requirements: Optional[PaymentRequirements] = None
    trail: list[GateState] = field(default_factory=list)
    settlement_registered: bool = False

    def __post_init__(self):
        if not self.trail:
            self.trail.append(self.state)

    @property
    def status_code(self) -> int:
        if self.state in (GateState.CHALLENGE, GateState.REJECTED):
            return 402
        return 500 if self.state == GateState.FAULT else 200

    @property
    def verified(self) -> bool:
        return self.state in (GateState.SERVING, GateState.SERVED)

    def advance(self, state: GateState) -> "GateOutcome":
        self.trail.append(state)
        self.state = state
        return self


class PayGate:
    """Decides between challenging and serving a request, and settles afterwards.

    Args:
        facilitator: Verifies and settles payments
        scheduler: Runs settlements in the background once the response
            has been sent. Defaults to one built on `facilitator`.
        error_messages: Overrides for the 402 error messages
    """

    def __init__(
        self,
        facilitator: FacilitatorClient,
        scheduler: Optional[SettlementScheduler] = None,
        error_messages: Optional[ErrorMessages] = None,
    ):
        self.facilitator = facilitator
        self.scheduler = scheduler or SettlementScheduler(facilitator)
        self.error_messages = error_messages or ErrorMessages()

    async def evaluate(
        self,
        payment_header: Optional[str],
        requirements: list[PaymentRequirements],
    ) -> GateOutcome:
        """Run the request through decoding, matching and verification.

        Args:
            payment_header: Value of the X-PAYMENT header, if any
            requirements: The requirements built for this request

        Returns:
            A GateOutcome in CHALLENGE, REJECTED or SERVING state
        """
        messages = self.error_messages

        if not payment_header:
            outcome = GateOutcome(state=GateState.NO_PAYMENT, accepts=requirements)
            outcome.error = messages.payment_required or DEFAULT_PAYMENT_REQUIRED
            return outcome.advance(GateState.CHALLENGE)

        outcome = GateOutcome(state=GateState.PAYMENT_PRESENT, accepts=requirements)
        outcome.advance(GateState.DECODING)
        try:
            payment = decode_payment(payment_header)
        except InvalidPaymentHeaderError as e:
            logger.warning(f"Invalid payment header: {e}")
            outcome.error = messages.invalid_payment or DEFAULT_INVALID_PAYMENT
            outcome.invalid_reason = e.reason
            return outcome.advance(GateState.REJECTED)
        outcome.payment = payment

        outcome.advance(GateState.MATCHING)
        selected = find_matching_payment_requirements(requirements, payment)
        if selected is None:
            outcome.error = (
                messages.no_matching_requirements or DEFAULT_NO_MATCHING_REQUIREMENTS
            )
            return outcome.advance(GateState.REJECTED)
        outcome.requirements = selected

        outcome.advance(GateState.VERIFYING)
        try:
            verify_response = await self.facilitator.verify(payment, selected)
        except Exception as e:
            logger.error(f"Error verifying payment: {e}")
            outcome.error = messages.verification_failed or "unexpected_verify_error"
            outcome.invalid_reason = "unexpected_verify_error"
            return outcome.advance(GateState.REJECTED)

        if not verify_response.is_valid:
            outcome.invalid_reason = verify_response.invalid_reason
            outcome.error = messages.verification_failed or verify_response.invalid_reason
            outcome.payer = verify_response.payer
            return outcome.advance(GateState.REJECTED)

        outcome.payer = verify_response.payer
        return outcome.advance(GateState.SERVING)

    def complete(
        self,
        outcome: GateOutcome,
        status_code: int,
        on_settled: Optional[SettledCallback] = None,
    ) -> GateOutcome:
        """Post-response hook: register settlement once the response is sent.

        Settlement is only attempted for successful responses (status < 400)
        and at most once per outcome. It runs in the background.
        """
        if outcome.state != GateState.SERVING or outcome.settlement_registered:
            return outcome
        outcome.settlement_registered = True

        if status_code < 400:
            outcome.advance(GateState.SETTLING)
            self.scheduler.schedule(outcome.payment, outcome.requirements, on_settled)
        else:
            logger.info(f"Response status {status_code}, skipping settlement")
        return outcome.advance(GateState.SERVED)

    async def settle_now(
        self,
        outcome: GateOutcome,
        on_settled: Optional[SettledCallback] = None,
    ) -> Optional[SettleResponse]:
        """Settle before responding, for clients that want the settlement header."""
        if outcome.state != GateState.SERVING or outcome.settlement_registered:
            return None
        outcome.settlement_registered = True
        outcome.advance(GateState.SETTLING)
        settle_response = await self.scheduler.settle(
            outcome.payment, outcome.requirements, on_settled
        )
        if settle_response is None or not settle_response.success:
            outcome.error = self.error_messages.settlement_failed or (
                f"{DEFAULT_SETTLEMENT_FAILED}: "
                f"{settle_response.error_reason if settle_response else 'unknown error'}"
            )
            outcome.invalid_reason = (
                settle_response.error_reason if settle_response else None
            )
            outcome.advance(GateState.REJECTED)
            return settle_response
        outcome.advance(GateState.SERVED)
        return settle_response

    def fault(self, outcome: GateOutcome) -> GateOutcome:
        """Mark an outcome as failed on an unexpected error."""
        return outcome.advance(GateState.FAULT)
