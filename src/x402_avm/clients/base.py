import json

from typing import Any, Callable, Dict, List, Optional

from algosdk import account, transaction

from x402_avm.avm.rpc import AlgodClient
from x402_avm.avm.transaction import encode_transaction
from x402_avm.common import x402_VERSION
from x402_avm.encoding import encode_payment, safe_base64_decode
from x402_avm.types import (
    ExactAvmPayload,
    PaymentPayload,
    PaymentRequirements,
    UnsupportedSchemeException,
)

# (accepts, network, scheme, max atomic amount) -> chosen requirements
RequirementsSelector = Callable[
    [List[PaymentRequirements], Optional[str], Optional[str], Optional[int]],
    PaymentRequirements,
]


def decode_x_payment_response(header: str) -> Dict[str, Any]:
    """Decode a base64 X-PAYMENT-RESPONSE header into the settlement result dict
    (success, transaction, network, payer, errorReason)."""
    return json.loads(safe_base64_decode(header))


class PaymentError(Exception):
    """A payment could not be prepared."""


class PaymentAmountExceededError(PaymentError):
    """The selected requirements ask for more than the client allows."""


def select_exact_requirements(
    accepts: List[PaymentRequirements],
    network: Optional[str] = None,
    scheme: Optional[str] = None,
    max_value: Optional[int] = None,
) -> PaymentRequirements:
    """Pick the first exact-scheme entry matching the optional filters.

    Raises:
        UnsupportedSchemeException: If no entry matches
        PaymentAmountExceededError: If the chosen entry costs more than `max_value`
    """
    candidates = (
        requirements
        for requirements in accepts
        if requirements.scheme == "exact"
        and (scheme is None or requirements.scheme == scheme)
        and (network is None or requirements.network == network)
    )
    chosen = next(candidates, None)
    if chosen is None:
        raise UnsupportedSchemeException("No supported payment scheme found")

    amount = int(chosen.max_amount_required)
    if max_value is not None and amount > max_value:
        raise PaymentAmountExceededError(
            f"Payment of {amount} atomic units is above the limit of {max_value}"
        )
    return chosen


class x402Client:
    """Pays for x402 resources from an Algorand account.

    Args:
        private_key: Key of the paying account
        max_value: Highest amount, in atomic units, the client agrees to pay
        payment_requirements_selector: Replaces `select_exact_requirements`
    """

    def __init__(
        self,
        private_key: str,
        max_value: Optional[int] = None,
        payment_requirements_selector: Optional[RequirementsSelector] = None,
    ):
        self._private_key = private_key
        self.address = account.address_from_private_key(private_key)
        self.max_value = max_value
        self._select = payment_requirements_selector or select_exact_requirements

    def select_payment_requirements(
        self,
        accepts: List[PaymentRequirements],
        network_filter: Optional[str] = None,
        scheme_filter: Optional[str] = None,
    ) -> PaymentRequirements:
        return self._select(accepts, network_filter, scheme_filter, self.max_value)

    def build_payment_group(
        self,
        payment_requirements: PaymentRequirements,
        params: transaction.SuggestedParams,
    ) -> List[transaction.Transaction]:
        """Build the payment group for the given requirements.

        The asset transfer comes first. When the requirements advertise a fee
        payer, the transfer pays no fee and a zero-amount self-payment from
        the fee payer covers the fees of the whole group.
        """
        fee_payer = payment_requirements.fee_payer
        min_fee = params.min_fee or params.fee

        payment_params = transaction.SuggestedParams(
            fee=0 if fee_payer else min_fee,
            first=params.first,
            last=params.last,
            gh=params.gh,
            gen=params.gen,
            flat_fee=True,
        )
        txns: List[transaction.Transaction] = [
            transaction.AssetTransferTxn(
                sender=self.address,
                sp=payment_params,
                receiver=payment_requirements.pay_to,
                amt=int(payment_requirements.max_amount_required),
                index=int(payment_requirements.asset),
            )
        ]

        if fee_payer:
            fee_params = transaction.SuggestedParams(
                fee=min_fee * 2,
                first=params.first,
                last=params.last,
                gh=params.gh,
                gen=params.gen,
                flat_fee=True,
            )
            txns.append(
                transaction.PaymentTxn(
                    sender=fee_payer, sp=fee_params, receiver=fee_payer, amt=0
                )
            )

        return transaction.assign_group_id(txns)

    def create_payment_header(
        self,
        payment_requirements: PaymentRequirements,
        params: transaction.SuggestedParams,
        x402_version: int = x402_VERSION,
    ) -> str:
        """Create a signed X-PAYMENT header for the given requirements.

        Args:
            payment_requirements: Selected payment requirements
            params: Suggested parameters for the requirements' network
            x402_version: x402 protocol version

        Returns:
            Base64 encoded payment header
        """
        group = self.build_payment_group(payment_requirements, params)
        payment_group = [
            encode_transaction(txn.sign(self._private_key))
            if txn.sender == self.address
            else encode_transaction(txn)
            for txn in group
        ]
        payment = PaymentPayload(
            x402_version=x402_version,
            scheme="exact",
            network=payment_requirements.network,
            payload=ExactAvmPayload(payment_index=0, payment_group=payment_group),
        )
        return encode_payment(payment)

    async def create_payment_header_async(
        self,
        payment_requirements: PaymentRequirements,
        algod: AlgodClient,
        x402_version: int = x402_VERSION,
    ) -> str:
        """Create a payment header, fetching suggested parameters from algod."""
        params = await algod.suggested_params()
        return self.create_payment_header(payment_requirements, params, x402_version)
