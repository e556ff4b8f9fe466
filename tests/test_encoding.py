import base64
import json

import pytest

from x402_avm.encoding import (
    InvalidPaymentHeaderError,
    decode_payment,
    encode_payment,
    safe_base64_decode,
    safe_base64_encode,
    settle_response_header,
)
from x402_avm.types import SettleResponse


def _header(data) -> str:
    return base64.b64encode(json.dumps(data).encode()).decode()


def _payment_dict(**overrides):
    payment = {
        "x402Version": 1,
        "scheme": "exact",
        "network": "algorand-testnet",
        "payload": {"paymentIndex": 0, "paymentGroup": ["AAAA", "BBBB"]},
    }
    payment.update(overrides)
    return payment


def test_safe_base64_encode():
    assert safe_base64_encode("hello") == "aGVsbG8="
    assert safe_base64_encode(b"hello") == "aGVsbG8="
    assert safe_base64_encode("") == ""


def test_safe_base64_decode():
    assert safe_base64_decode("aGVsbG8=") == "hello"
    assert safe_base64_decode(safe_base64_encode("Hello, 世界")) == "Hello, 世界"


class TestDecodePayment:
    def test_valid_header(self):
        payment = decode_payment(_header(_payment_dict()))
        assert payment.network == "algorand-testnet"
        assert payment.payload.payment_index == 0
        assert payment.payload.payment_group == ["AAAA", "BBBB"]

    def test_encoded_payment_decodes(self):
        payment = decode_payment(_header(_payment_dict()))
        assert decode_payment(encode_payment(payment)) == payment

    def test_not_base64(self):
        with pytest.raises(InvalidPaymentHeaderError) as e:
            decode_payment("not base64!!")
        assert e.value.reason == "invalid_payload"

    def test_not_json(self):
        with pytest.raises(InvalidPaymentHeaderError) as e:
            decode_payment(safe_base64_encode("{nope"))
        assert e.value.reason == "invalid_payload"

    def test_not_an_object(self):
        with pytest.raises(InvalidPaymentHeaderError) as e:
            decode_payment(_header([1, 2]))
        assert e.value.reason == "invalid_payload"

    def test_unknown_network(self):
        with pytest.raises(InvalidPaymentHeaderError) as e:
            decode_payment(_header(_payment_dict(network="base-sepolia")))
        assert e.value.reason == "invalid_network"

    def test_unknown_scheme(self):
        with pytest.raises(InvalidPaymentHeaderError) as e:
            decode_payment(_header(_payment_dict(scheme="upto")))
        assert e.value.reason == "invalid_scheme"

    def test_unknown_version(self):
        with pytest.raises(InvalidPaymentHeaderError) as e:
            decode_payment(_header(_payment_dict(x402Version=2)))
        assert e.value.reason == "invalid_x402_version"

    def test_payment_index_out_of_range(self):
        payment = _payment_dict(payload={"paymentIndex": 2, "paymentGroup": ["AAAA"]})
        with pytest.raises(InvalidPaymentHeaderError) as e:
            decode_payment(_header(payment))
        assert e.value.reason == "invalid_payload"

    def test_missing_group(self):
        payment = _payment_dict(payload={"paymentIndex": 0})
        with pytest.raises(InvalidPaymentHeaderError) as e:
            decode_payment(_header(payment))
        assert e.value.reason == "invalid_payload"


def test_settle_response_header():
    response = SettleResponse(
        success=True, network="algorand", transaction="TX1", payer="PAYER"
    )
    decoded = json.loads(safe_base64_decode(settle_response_header(response)))
    assert decoded == {
        "success": True,
        "network": "algorand",
        "transaction": "TX1",
        "payer": "PAYER",
    }
