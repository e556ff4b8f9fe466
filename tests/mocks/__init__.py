"""Builders and fakes for testing without an Algorand node."""

from typing import Any, NamedTuple, Optional, Sequence

from algosdk import account, transaction

from x402_avm.avm.transaction import encode_transaction
from x402_avm.types import (
    ExactAvmPayload,
    PaymentExtra,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    SupportedKind,
    SupportedResponse,
    VerifyResponse,
)

GENESIS_HASH = "SGO1GKSzyE7IEPItTxCByw9x8FmnrCDexi9/cOUJOiI="
USDC_TESTNET = 10458941


class TestAccount(NamedTuple):
    private_key: str
    address: str


def new_account() -> TestAccount:
    private_key, address = account.generate_account()
    return TestAccount(private_key, address)


def suggested_params(fee: int = 1000) -> transaction.SuggestedParams:
    return transaction.SuggestedParams(
        fee=fee,
        first=1,
        last=1000,
        gh=GENESIS_HASH,
        gen="testnet-v1.0",
        flat_fee=True,
        min_fee=1000,
    )


def asset_transfer(
    sender: str,
    receiver: str,
    amount: int = 10000,
    asset: int = USDC_TESTNET,
    fee: int = 0,
) -> transaction.AssetTransferTxn:
    return transaction.AssetTransferTxn(
        sender=sender,
        sp=suggested_params(fee),
        receiver=receiver,
        amt=amount,
        index=asset,
    )


def fee_pool_txn(
    fee_payer: str,
    amount: int = 0,
    receiver: Optional[str] = None,
    close_remainder_to: Optional[str] = None,
    rekey_to: Optional[str] = None,
) -> transaction.PaymentTxn:
    return transaction.PaymentTxn(
        sender=fee_payer,
        sp=suggested_params(2000),
        receiver=receiver or fee_payer,
        amt=amount,
        close_remainder_to=close_remainder_to,
        rekey_to=rekey_to,
    )


def encode_group(
    txns: Sequence[transaction.Transaction], signers: Sequence[TestAccount]
) -> list[str]:
    """Assign a group id, sign the entries of the given signers and encode."""
    keys = {signer.address: signer.private_key for signer in signers}
    group = transaction.assign_group_id(list(txns))
    return [
        encode_transaction(txn.sign(keys[txn.sender]))
        if txn.sender in keys
        else encode_transaction(txn)
        for txn in group
    ]


def make_requirements(
    pay_to: str,
    fee_payer: Optional[str] = None,
    amount: str = "10000",
    network: str = "algorand-testnet",
    asset: str = str(USDC_TESTNET),
) -> PaymentRequirements:
    return PaymentRequirements(
        scheme="exact",
        network=network,
        max_amount_required=amount,
        resource="https://example.com/pay/abc",
        description="Payment for file",
        pay_to=pay_to,
        max_timeout_seconds=60,
        asset=asset,
        extra=PaymentExtra(fee_payer=fee_payer),
    )


def make_payload(
    payment_group: list[str], payment_index: int = 0, network: str = "algorand-testnet"
) -> PaymentPayload:
    return PaymentPayload(
        x402_version=1,
        scheme="exact",
        network=network,
        payload=ExactAvmPayload(payment_index=payment_index, payment_group=payment_group),
    )


class FakeAlgod:
    """Records calls and answers with canned algod responses."""

    def __init__(
        self,
        simulate_result: Optional[dict[str, Any]] = None,
        txid: str = "TXID123",
        confirm_error: Optional[Exception] = None,
    ):
        self.simulate_result = simulate_result or {"txn-groups": [{"txn-results": []}]}
        self.txid = txid
        self.confirm_error = confirm_error
        self.simulated: list[list[Any]] = []
        self.sent: list[list[str]] = []
        self.waited: list[tuple[str, int]] = []

    async def simulate_raw_transactions(self, txns, allow_empty_signatures=False):
        self.simulated.append(list(txns))
        return self.simulate_result

    async def send_raw_transactions(self, encoded_group):
        self.sent.append(list(encoded_group))
        return self.txid

    async def wait_for_confirmation(self, txid, wait_rounds=3):
        self.waited.append((txid, wait_rounds))
        if self.confirm_error:
            raise self.confirm_error
        return {"confirmed-round": 10}


class FakeAlgodPool:
    def __init__(self, algod: Optional[FakeAlgod] = None):
        self.algod = algod or FakeAlgod()
        self.networks: list[str] = []

    def get(self, network: str) -> FakeAlgod:
        self.networks.append(network)
        return self.algod


class FakeFacilitator:
    """Facilitator with canned verify/settle results that records its calls."""

    def __init__(
        self,
        verify_response: Optional[VerifyResponse] = None,
        settle_response: Optional[SettleResponse] = None,
        fee_payer: Optional[str] = None,
    ):
        self.verify_response = verify_response or VerifyResponse(is_valid=True)
        self.settle_response = settle_response or SettleResponse(
            success=True, network="algorand-testnet", transaction="TXID123"
        )
        self.fee_payer = fee_payer
        self.verify_calls: list[tuple[PaymentPayload, PaymentRequirements]] = []
        self.settle_calls: list[tuple[PaymentPayload, PaymentRequirements]] = []
        self.supported_calls = 0

    async def verify(self, payload, requirements) -> VerifyResponse:
        self.verify_calls.append((payload, requirements))
        return self.verify_response

    async def settle(self, payload, requirements) -> SettleResponse:
        self.settle_calls.append((payload, requirements))
        return self.settle_response

    async def supported(self) -> SupportedResponse:
        self.supported_calls += 1
        return SupportedResponse(
            kinds=[
                SupportedKind(
                    x402_version=1,
                    scheme="exact",
                    network=network,
                    extra=PaymentExtra(fee_payer=self.fee_payer),
                )
                for network in ("algorand", "algorand-testnet")
            ]
        )
