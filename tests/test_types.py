from decimal import Decimal

import pytest
from pydantic import ValidationError

from x402_avm.types import (
    ExactAvmPayload,
    PaymentExtra,
    PaymentRequirements,
    SettleResponse,
    TokenAmount,
    TokenAsset,
    VerifyResponse,
    x402PaymentRequiredResponse,
)

from .mocks import make_requirements, new_account


@pytest.fixture
def pay_to():
    return new_account().address


def _requirements_dict(pay_to, **overrides):
    data = {
        "scheme": "exact",
        "network": "algorand-testnet",
        "maxAmountRequired": "10000",
        "resource": "https://example.com/pay/abc",
        "payTo": pay_to,
        "maxTimeoutSeconds": 60,
        "asset": "10458941",
    }
    data.update(overrides)
    return data


class TestPaymentRequirements:
    def test_camel_case_aliases(self, pay_to):
        requirements = PaymentRequirements.model_validate(_requirements_dict(pay_to))
        assert requirements.max_amount_required == "10000"
        assert requirements.pay_to == pay_to

        dumped = requirements.model_dump(by_alias=True)
        assert dumped["maxAmountRequired"] == "10000"
        assert dumped["payTo"] == pay_to

    def test_snake_case_accepted(self, pay_to):
        requirements = make_requirements(pay_to)
        assert requirements.asset == "10458941"

    def test_amount_must_be_integer_string(self, pay_to):
        with pytest.raises(ValidationError):
            PaymentRequirements.model_validate(
                _requirements_dict(pay_to, maxAmountRequired="1.5")
            )

    def test_amount_must_not_be_negative(self, pay_to):
        with pytest.raises(ValidationError):
            PaymentRequirements.model_validate(
                _requirements_dict(pay_to, maxAmountRequired="-1")
            )

    def test_asset_must_be_integer_string(self, pay_to):
        with pytest.raises(ValidationError):
            PaymentRequirements.model_validate(_requirements_dict(pay_to, asset="USDC"))

    def test_pay_to_must_be_algorand_address(self, pay_to):
        with pytest.raises(ValidationError):
            PaymentRequirements.model_validate(
                _requirements_dict(pay_to, payTo="0x1111111111111111111111111111111111111111")
            )

    def test_resource_must_be_absolute(self, pay_to):
        with pytest.raises(ValidationError):
            PaymentRequirements.model_validate(
                _requirements_dict(pay_to, resource="/pay/abc")
            )

    def test_unknown_network(self, pay_to):
        with pytest.raises(ValidationError):
            PaymentRequirements.model_validate(
                _requirements_dict(pay_to, network="base")
            )

    def test_fee_payer(self, pay_to):
        requirements = PaymentRequirements.model_validate(
            _requirements_dict(pay_to, extra={"feePayer": pay_to})
        )
        assert requirements.fee_payer == pay_to
        assert make_requirements(pay_to).fee_payer is None

    def test_extra_keeps_unknown_keys(self, pay_to):
        requirements = PaymentRequirements.model_validate(
            _requirements_dict(pay_to, extra={"feePayer": pay_to, "name": "USDC"})
        )
        dumped = requirements.model_dump(by_alias=True, exclude_none=True)
        assert dumped["extra"] == {"feePayer": pay_to, "name": "USDC"}


class TestExactAvmPayload:
    def test_valid(self):
        payload = ExactAvmPayload.model_validate(
            {"paymentIndex": 1, "paymentGroup": ["AAAA", "BBBB"]}
        )
        assert payload.payment_index == 1

    def test_negative_index(self):
        with pytest.raises(ValidationError):
            ExactAvmPayload(payment_index=-1, payment_group=["AAAA"])

    def test_index_past_end(self):
        with pytest.raises(ValidationError):
            ExactAvmPayload(payment_index=1, payment_group=["AAAA"])

    def test_empty_entry(self):
        with pytest.raises(ValidationError):
            ExactAvmPayload(payment_index=0, payment_group=["AAAA", ""])


class TestTokenAmount:
    def test_valid(self):
        amount = TokenAmount(amount="1.25", asset=TokenAsset(id=1, decimals=6))
        assert amount.amount == Decimal("1.25")

    def test_negative_amount(self):
        with pytest.raises(ValidationError):
            TokenAmount(amount="-1", asset=TokenAsset(id=1, decimals=6))

    def test_decimals_out_of_range(self):
        with pytest.raises(ValidationError):
            TokenAsset(id=1, decimals=20)


class TestResponses:
    def test_verify_response_aliases(self):
        response = VerifyResponse.model_validate(
            {"isValid": False, "invalidReason": "invalid_payment", "payer": "P"}
        )
        assert response.is_valid is False
        assert response.invalid_reason == "invalid_payment"

    def test_verify_response_unknown_reason(self):
        with pytest.raises(ValidationError):
            VerifyResponse(is_valid=False, invalid_reason="something_else")

    def test_settle_response_aliases(self):
        response = SettleResponse.model_validate(
            {"success": False, "errorReason": "invalid_fee_pool_transaction", "network": "algorand"}
        )
        assert response.error_reason == "invalid_fee_pool_transaction"

    def test_payment_required_response(self, pay_to):
        response = x402PaymentRequiredResponse(
            x402_version=1,
            error="X-PAYMENT header is required",
            accepts=[make_requirements(pay_to, fee_payer=pay_to)],
        )
        dumped = response.model_dump(by_alias=True, exclude_none=True, mode="json")
        assert dumped["x402Version"] == 1
        assert dumped["accepts"][0]["extra"] == {"feePayer": pay_to}
        assert "payer" not in dumped


def test_payment_extra_defaults():
    assert PaymentExtra().fee_payer is None
