"""Test cases for payment endpoints."""

from datetime import datetime
from unittest.mock import AsyncMock, Mock, patch

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from app.api.endpoints.payment import router
from app.api.endpoints.user import router as user_router
from app.core.auth_dependencies import get_current_user
from app.core.exceptions import PaymentErrorKind, PaymentGatewayException
from app.models.payment import Payment, PaymentGatewayName, PaymentStatus
from app.models.user import User, UserRole

PLAN_ID = "65f1a2b3c4d5e6f7a8b9c0d1"


@pytest.fixture
def learner():
    user = Mock(spec=User)
    user.id = ObjectId("507f1f77bcf86cd799439012")
    user.email = "asha@example.com"
    user.role = UserRole.USER
    user.isActive = True
    return user


@pytest.fixture
def client(make_app, learner):
    return TestClient(
        make_app(router, prefix="/payments", overrides={get_current_user: lambda: learner})
    )


def completed_payment(user_id: ObjectId) -> Mock:
    payment = Mock(spec=Payment)
    payment.id = ObjectId()
    payment.userId = user_id
    payment.subscriptionId = ObjectId()
    payment.pricingPlanId = ObjectId(PLAN_ID)
    payment.amount = 29900
    payment.currency = "INR"
    payment.status = PaymentStatus.COMPLETED
    payment.gateway = PaymentGatewayName.RAZORPAY
    payment.paymentMethod = "upi"
    payment.description = "Class 10 - 3 months"
    payment.gateway_order_id = "order_Nx12"
    payment.gateway_payment_id = "pay_Nx12"
    payment.failureReason = None
    payment.createdAt = datetime(2024, 3, 1)
    payment.updatedAt = datetime(2024, 3, 1)
    return payment


class TestPaymentEndpoints:
    @patch("app.api.endpoints.payment.PaymentService")
    def test_list_gateways(self, mock_payment_service_class, client):
        service = AsyncMock()
        service.available_gateways.return_value = {
            "gateways": [PaymentGatewayName.RAZORPAY],
            "defaultGateway": PaymentGatewayName.RAZORPAY,
        }
        mock_payment_service_class.return_value = service

        response = client.get("/payments/gateways")

        assert response.status_code == 200
        assert response.json()["data"] == {"gateways": ["RAZORPAY"], "defaultGateway": "RAZORPAY"}

    @patch("app.api.endpoints.payment.PaymentService")
    def test_create_order(self, mock_payment_service_class, client, learner):
        service = AsyncMock()
        service.create_order.return_value = {
            "paymentId": str(ObjectId()),
            "gateway": PaymentGatewayName.RAZORPAY,
            "orderId": "order_Nx12",
            "amount": 29900,
            "currency": "INR",
            "checkout": {"key": "rzp_test_key"},
        }
        mock_payment_service_class.return_value = service

        response = client.post("/payments/orders", json={"pricingPlanId": PLAN_ID})

        assert response.status_code == 200
        assert response.json()["data"]["orderId"] == "order_Nx12"
        service.create_order.assert_awaited_once_with(learner, ObjectId(PLAN_ID))

    def test_create_order_rejects_bad_plan_id(self, client):
        response = client.post("/payments/orders", json={"pricingPlanId": "plan-1"})

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "pricingPlanId"}

    @patch("app.api.endpoints.payment.PaymentService")
    def test_gateway_failure_is_reported(self, mock_payment_service_class, client):
        service = AsyncMock()
        service.create_order.side_effect = PaymentGatewayException(
            kind=PaymentErrorKind.TIMEOUT, message="Payment gateway timed out", gateway="razorpay"
        )
        mock_payment_service_class.return_value = service

        response = client.post("/payments/orders", json={"pricingPlanId": PLAN_ID})

        assert response.status_code == 504
        assert response.json()["message"] == "Payment gateway timed out"

    @patch("app.api.endpoints.payment.PaymentService")
    def test_verify(self, mock_payment_service_class, client, learner):
        service = AsyncMock()
        service.verify.return_value = completed_payment(learner.id)
        mock_payment_service_class.return_value = service

        response = client.post(
            "/payments/verify",
            json={
                "gateway": "RAZORPAY",
                "orderId": "order_Nx12",
                "paymentId": "pay_Nx12",
                "signature": "abc",
            },
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "COMPLETED"
        assert data["gatewayPaymentId"] == "pay_Nx12"
        service.verify.assert_awaited_once_with(
            learner, PaymentGatewayName.RAZORPAY, "order_Nx12", payment_id="pay_Nx12", signature="abc"
        )

    def test_verify_rejects_unknown_gateway(self, client):
        response = client.post("/payments/verify", json={"gateway": "PAYPAL", "orderId": "o1"})

        assert response.status_code == 422

    @patch("app.api.endpoints.payment.PaymentService")
    def test_webhook_passes_raw_body_and_signature(self, mock_payment_service_class, make_app):
        service = AsyncMock()
        service.handle_razorpay_webhook.return_value = {"handled": True, "event": "payment.captured"}
        mock_payment_service_class.return_value = service
        client = TestClient(make_app(router, prefix="/payments"))
        body = b'{"event":"payment.captured"}'

        response = client.post(
            "/payments/webhooks/razorpay",
            content=body,
            headers={"X-Razorpay-Signature": "sig", "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        service.handle_razorpay_webhook.assert_awaited_once_with(body, "sig")

    def test_orders_require_authentication(self, make_app):
        client = TestClient(make_app(router, prefix="/payments"))

        assert client.post("/payments/orders", json={"pricingPlanId": PLAN_ID}).status_code == 401


class TestMyPayments:
    @patch("app.api.endpoints.user.PaymentService")
    def test_lists_only_callers_payments(self, mock_payment_service_class, make_app, learner):
        service = AsyncMock()
        service.list_payments.return_value = ([completed_payment(learner.id)], 21)
        mock_payment_service_class.return_value = service
        client = TestClient(
            make_app(user_router, prefix="/user", overrides={get_current_user: lambda: learner})
        )

        response = client.get("/user/payments?page=2&limit=20")

        assert response.status_code == 200
        body = response.json()
        assert body["pagination"]["pages"] == 2
        assert body["pagination"]["has_prev"] is True
        assert body["data"][0]["userId"] == str(learner.id)
        service.list_payments.assert_awaited_once_with(page=2, size=20, user_id=learner.id)
