import hashlib
import hmac
import random
from datetime import datetime
from decimal import Decimal
from urllib.parse import parse_qsl, urlsplit

from models.payment import Payment
from services.gateways.base import GatewayContext
from services.gateways.signing import canonical_query, sign_params, signatures_match, signed_query
from services.gateways.vnpay import HASH_FIELD, VNPayGateway


def _vnpay():
    return VNPayGateway(
        tmn_code="TMN01",
        hash_secret="secret-key",
        pay_url="https://sandbox.vnpayment.vn/paymentv2/vpcpay.html",
        default_return_url="http://localhost:3000/payment/success",
    )


def _payment():
    return Payment(id=17, order_id=3, amount=Decimal("130000"), description="Payment for order ORD-1")


class TestCanonicalQuery:
    def test_keys_sorted_and_form_encoded(self):
        query = canonical_query({"b": "two words", "a": "x&y=z", "c": 5})
        assert query == "a=x%26y%3Dz&b=two+words&c=5"

    def test_signature_is_hmac_of_canonical_query(self):
        params = {"vnp_Amount": 100, "vnp_OrderInfo": "Payment for order ORD 1"}
        expected = hmac.new(b"k", canonical_query(params).encode(), hashlib.sha512).hexdigest()
        assert sign_params(params, "k", "sha512") == expected
        assert len(sign_params(params, "k", "sha256")) == 64

    def test_signed_query_appends_signature(self):
        query, signature = signed_query({"b": 1, "a": 2}, "k", "sha256", "mac")
        assert query == f"a=2&b=1&mac={signature}"

    def test_signatures_match_is_case_insensitive(self):
        assert signatures_match("abcdef", "ABCDEF")
        assert not signatures_match("abcdef", None)
        assert not signatures_match("abcdef", "abcdee")


class TestVNPaySignature:
    def test_signature_is_reproducible_after_reordering(self):
        gateway = _vnpay()
        params = gateway.build_params(_payment(), GatewayContext(), now=datetime(2026, 1, 2, 3, 4, 5))
        signature = gateway.sign(params)

        keys = list(params)
        random.Random(7).shuffle(keys)
        shuffled = {key: params[key] for key in keys}

        assert gateway.sign(shuffled) == signature
        assert gateway.sign(dict(sorted(params.items()))) == signature

    def test_build_params(self):
        params = _vnpay().build_params(
            _payment(), GatewayContext(return_url="https://shop.test/done", client_ip="10.0.0.1"),
            now=datetime(2026, 1, 2, 3, 4, 5),
        )
        assert params["vnp_TxnRef"] == "17"
        assert params["vnp_Amount"] == 13000000
        assert params["vnp_ReturnUrl"] == "https://shop.test/done"
        assert params["vnp_IpAddr"] == "10.0.0.1"
        assert params["vnp_CreateDate"] == "20260102030405"
        assert params["vnp_Version"] == "2.1.0"

    def test_pay_url_signature_verifies(self):
        gateway = _vnpay()
        result = gateway.initiate(_payment(), GatewayContext())

        url = urlsplit(result.response["pay_url"])
        received = dict(parse_qsl(url.query))
        signature = received.pop(HASH_FIELD)

        assert list(received) == sorted(received)
        assert gateway.sign(received) == signature
        assert result.gateway_response["vnp_Params"][HASH_FIELD] == signature
