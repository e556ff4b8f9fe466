from unittest.mock import AsyncMock

import pytest
from algosdk import transaction

from x402_avm.avm.transaction import SignedTxn, UnsignedTxn, decode_payment_group
from x402_avm.clients.base import (
    PaymentAmountExceededError,
    decode_x_payment_response,
    x402Client,
)
from x402_avm.encoding import decode_payment, safe_base64_encode
from x402_avm.facilitator.verify import ExactAvmVerifier
from x402_avm.types import UnsupportedSchemeException

from ..mocks import FakeAlgodPool, make_requirements, new_account, suggested_params


@pytest.fixture
def client(payer):
    return x402Client(payer.private_key)


class TestSelectPaymentRequirements:
    def test_first_exact_match(self, client, receiver):
        mainnet = make_requirements(receiver.address, network="algorand")
        testnet = make_requirements(receiver.address, network="algorand-testnet")
        assert client.select_payment_requirements([mainnet, testnet]) is mainnet

    def test_network_filter(self, client, receiver):
        mainnet = make_requirements(receiver.address, network="algorand")
        testnet = make_requirements(receiver.address, network="algorand-testnet")
        selected = client.select_payment_requirements(
            [mainnet, testnet], network_filter="algorand-testnet"
        )
        assert selected is testnet

    def test_no_match(self, client, receiver):
        with pytest.raises(UnsupportedSchemeException):
            client.select_payment_requirements(
                [make_requirements(receiver.address, network="algorand")],
                network_filter="algorand-testnet",
            )

    def test_max_value(self, payer, receiver):
        client = x402Client(payer.private_key, max_value=9999)
        with pytest.raises(PaymentAmountExceededError):
            client.select_payment_requirements([make_requirements(receiver.address)])

    def test_custom_selector(self, payer, receiver):
        requirements = make_requirements(receiver.address)
        selector = lambda accepts, network, scheme, max_value: accepts[-1]
        client = x402Client(payer.private_key, payment_requirements_selector=selector)
        assert client.select_payment_requirements([requirements]) is requirements


class TestBuildPaymentGroup:
    def test_without_fee_payer(self, client, payer, receiver):
        [txn] = client.build_payment_group(
            make_requirements(receiver.address), suggested_params()
        )

        assert isinstance(txn, transaction.AssetTransferTxn)
        assert txn.sender == payer.address
        assert txn.receiver == receiver.address
        assert txn.amount == 10000
        assert txn.index == 10458941
        assert txn.fee == 1000
        assert txn.group is not None

    def test_with_fee_payer(self, client, receiver, facilitator_key):
        transfer, fee_pool = client.build_payment_group(
            make_requirements(receiver.address, fee_payer=facilitator_key.address),
            suggested_params(),
        )

        assert transfer.fee == 0
        assert isinstance(fee_pool, transaction.PaymentTxn)
        assert fee_pool.sender == facilitator_key.address
        assert fee_pool.receiver == facilitator_key.address
        assert fee_pool.amt == 0
        assert fee_pool.fee == 2000
        assert transfer.group == fee_pool.group


class TestCreatePaymentHeader:
    def test_header_decodes(self, client, payer, receiver, facilitator_key):
        requirements = make_requirements(receiver.address, fee_payer=facilitator_key.address)

        payment = decode_payment(
            client.create_payment_header(requirements, suggested_params())
        )

        assert payment.network == "algorand-testnet"
        assert payment.payload.payment_index == 0
        transfer, fee_pool = decode_payment_group(payment.payload.payment_group)
        assert isinstance(transfer, SignedTxn)
        assert transfer.txn.sender == payer.address
        assert isinstance(fee_pool, UnsignedTxn)

    def test_header_passes_verification_checks(
        self, client, receiver, facilitator_key, facilitator_account
    ):
        requirements = make_requirements(receiver.address, fee_payer=facilitator_key.address)
        payment = decode_payment(
            client.create_payment_header(requirements, suggested_params())
        )

        verifier = ExactAvmVerifier(facilitator_account, FakeAlgodPool())
        reason, final = verifier.check_group(payment, requirements)

        assert reason is None
        assert all(entry.kind == "signed" for entry in final)

    @pytest.mark.asyncio
    async def test_async_fetches_params(self, client, receiver):
        algod = AsyncMock()
        algod.suggested_params.return_value = suggested_params()

        header = await client.create_payment_header_async(
            make_requirements(receiver.address), algod
        )

        algod.suggested_params.assert_awaited_once()
        assert decode_payment(header).payload.payment_index == 0


def test_decode_x_payment_response():
    header = safe_base64_encode(
        '{"success": true, "transaction": "TX1", "network": "algorand", "payer": "P"}'
    )
    assert decode_x_payment_response(header) == {
        "success": True,
        "transaction": "TX1",
        "network": "algorand",
        "payer": "P",
    }


def test_address_from_key():
    account = new_account()
    assert x402Client(account.private_key).address == account.address
