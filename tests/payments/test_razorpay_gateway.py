"""Test cases for the Razorpay adapter."""

import hashlib
import hmac

import httpx
import pytest

from app.core.exceptions import PaymentErrorKind, PaymentGatewayException
from app.models.payment import PaymentGatewayName
from app.services.integrations.payment.base import CheckoutRequest, CustomerInfo, PaymentVerification
from app.services.integrations.payment.config import RazorpayConfig
from app.services.integrations.payment.razorpay import RazorpayGateway
from tests.payments.gateway_helpers import (
    RAZORPAY_KEY_SECRET,
    RAZORPAY_WEBHOOK_SECRET,
    RecordingTransport,
    make_http_client,
)

BASE_URL = "https://razorpay.test/v1"


def checkout_request(**overrides) -> CheckoutRequest:
    data = {
        "reference": "65a1b2c3d4e5f60718293a4b",
        "amount": 7500,
        "currency": "INR",
        "customer": CustomerInfo(customer_id="u1", email="asha@example.com", name="Asha"),
        "description": "Subscription: Class 10 - 3 months",
        "notes": {"userId": "u1"},
    }
    data.update(overrides)
    return CheckoutRequest(**data)


def order_response(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={"id": "order_Nx12", "amount": 7500, "currency": "INR", "receipt": "65a1b2c3"},
    )


class TestRazorpayCheckout:
    async def test_creates_order_with_basic_auth(self, razorpay_config):
        transport = RecordingTransport(order_response)
        gateway = RazorpayGateway(razorpay_config, make_http_client(transport), base_url=BASE_URL)

        session = await gateway.create_checkout(checkout_request())

        assert session.gateway == PaymentGatewayName.RAZORPAY
        assert session.order_id == "order_Nx12"
        assert session.amount == 7500
        assert session.client_payload["key_id"] == razorpay_config.key_id

        request = transport.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{BASE_URL}/orders"
        assert request.headers["authorization"].startswith("Basic ")
        body = transport.json_body()
        assert body["amount"] == 7500
        assert body["receipt"] == "65a1b2c3d4e5f60718293a4b"

    async def test_long_reference_is_truncated_to_receipt_limit(self, razorpay_config):
        transport = RecordingTransport(order_response)
        gateway = RazorpayGateway(razorpay_config, make_http_client(transport), base_url=BASE_URL)

        await gateway.create_checkout(checkout_request(reference="r" * 60))

        assert len(transport.json_body()["receipt"]) == 40

    async def test_missing_credentials_never_reach_network(self):
        transport = RecordingTransport(order_response)
        config = RazorpayConfig(enabled=True, key_id="", key_secret="", webhook_secret="", mode="test")
        gateway = RazorpayGateway(config, make_http_client(transport), base_url=BASE_URL)

        with pytest.raises(PaymentGatewayException) as exc_info:
            await gateway.create_checkout(checkout_request())

        assert exc_info.value.kind == PaymentErrorKind.NOT_CONFIGURED
        assert exc_info.value.status_code == 503
        assert transport.requests == []

    async def test_client_error_is_rejected_without_retry(self, razorpay_config):
        transport = RecordingTransport(
            lambda request: httpx.Response(400, json={"error": {"description": "bad amount"}})
        )
        gateway = RazorpayGateway(razorpay_config, make_http_client(transport), base_url=BASE_URL)

        with pytest.raises(PaymentGatewayException) as exc_info:
            await gateway.create_checkout(checkout_request())

        assert exc_info.value.kind == PaymentErrorKind.REJECTED
        assert exc_info.value.details["status"] == 400
        assert len(transport.requests) == 1

    async def test_timeout_is_reported_as_timeout(self, razorpay_config):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        gateway = RazorpayGateway(
            razorpay_config, make_http_client(RecordingTransport(handler)), base_url=BASE_URL
        )

        with pytest.raises(PaymentGatewayException) as exc_info:
            await gateway.create_checkout(checkout_request())

        assert exc_info.value.kind == PaymentErrorKind.TIMEOUT
        assert exc_info.value.status_code == 504

    async def test_connection_failure_is_reported_as_network(self, razorpay_config):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        gateway = RazorpayGateway(
            razorpay_config, make_http_client(RecordingTransport(handler)), base_url=BASE_URL
        )

        with pytest.raises(PaymentGatewayException) as exc_info:
            await gateway.create_checkout(checkout_request())

        assert exc_info.value.kind == PaymentErrorKind.NETWORK

    async def test_renewal_charge_builds_auto_payment_id(self, razorpay_config):
        transport = RecordingTransport(order_response)
        gateway = RazorpayGateway(razorpay_config, make_http_client(transport), base_url=BASE_URL)

        charge = await gateway.charge_renewal(
            user_id="u1", amount=7500, currency="INR", description="Auto-renewal: Class 10"
        )

        assert charge.order_id == "order_Nx12"
        assert charge.payment_id.startswith("auto_order_Nx12_")
        assert transport.json_body()["notes"]["type"] == "auto_renewal"

    async def test_renewal_charge_rejects_non_positive_amount(self, razorpay_config):
        transport = RecordingTransport(order_response)
        gateway = RazorpayGateway(razorpay_config, make_http_client(transport), base_url=BASE_URL)

        with pytest.raises(PaymentGatewayException) as exc_info:
            await gateway.charge_renewal(user_id="u1", amount=0, currency="INR", description="x")

        assert exc_info.value.kind == PaymentErrorKind.INVALID_AMOUNT
        assert transport.requests == []


class TestRazorpaySignatures:
    @pytest.fixture
    def gateway(self, razorpay_config):
        return RazorpayGateway(
            razorpay_config, make_http_client(RecordingTransport(order_response)), base_url=BASE_URL
        )

    async def test_valid_checkout_signature(self, gateway):
        signature = hmac.new(
            RAZORPAY_KEY_SECRET.encode(), b"order_Nx12|pay_Px34", hashlib.sha256
        ).hexdigest()

        verified = await gateway.verify_payment(
            PaymentVerification(order_id="order_Nx12", payment_id="pay_Px34", signature=signature)
        )

        assert verified.payment_id == "pay_Px34"
        assert verified.order_id == "order_Nx12"

    @pytest.mark.parametrize(
        "payment_id,signature", [("pay_Px34", "deadbeef"), ("pay_Px34", None), (None, "deadbeef")]
    )
    async def test_bad_checkout_signature(self, gateway, payment_id, signature):
        with pytest.raises(PaymentGatewayException) as exc_info:
            await gateway.verify_payment(
                PaymentVerification(order_id="order_Nx12", payment_id=payment_id, signature=signature)
            )

        assert exc_info.value.kind == PaymentErrorKind.INVALID_SIGNATURE
        assert exc_info.value.status_code == 400

    def test_webhook_signature(self, gateway):
        body = b'{"event":"payment.captured"}'
        signature = hmac.new(RAZORPAY_WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()

        assert gateway.verify_webhook_signature(body, signature) is True
        assert gateway.verify_webhook_signature(body + b" ", signature) is False
        assert gateway.verify_webhook_signature(body, None) is False

    def test_webhook_signature_requires_secret(self, razorpay_config):
        razorpay_config.webhook_secret = ""
        gateway = RazorpayGateway(
            razorpay_config, make_http_client(RecordingTransport(order_response)), base_url=BASE_URL
        )
        body = b"{}"
        signature = hmac.new(b"", body, hashlib.sha256).hexdigest()

        assert gateway.verify_webhook_signature(body, signature) is False
