"""Test cases for payment statistics."""

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from app.api.endpoints.admin.payments import router
from app.core.auth_dependencies import require_admin
from app.models.payment import Payment, PaymentStatus
from app.services.payment_service import PaymentService


async def add_payment(amount, status):
    payment = Payment(userId=ObjectId(), amount=amount, status=status)
    await payment.insert()
    return payment


class TestPaymentStats:
    async def test_revenue_counts_only_completed_payments(self, beanie_db):
        await add_payment(9900, PaymentStatus.COMPLETED)
        await add_payment(4900, PaymentStatus.COMPLETED)
        await add_payment(9900, PaymentStatus.FAILED)
        await add_payment(2500, PaymentStatus.REFUNDED)
        await add_payment(9900, PaymentStatus.PENDING)
        await add_payment(9900, PaymentStatus.PENDING)

        stats = await PaymentService().stats()

        assert stats["totalRevenue"] == 14800
        assert stats["totalPayments"] == 6
        assert stats["successfulPayments"] == 2
        assert stats["failedPayments"] == 1
        assert stats["pendingPayments"] == 2
        assert stats["refundedPayments"] == 1
        assert stats["successRate"] == 33.33

    async def test_empty_collection(self, beanie_db):
        stats = await PaymentService().stats()

        assert stats["totalRevenue"] == 0
        assert stats["totalPayments"] == 0
        assert stats["successRate"] == 0.0


class TestPaymentStatsEndpoint:
    def test_returns_stats(self, beanie_db, make_app, admin_user):
        client = TestClient(
            make_app(router, prefix="/admin/payments", overrides={require_admin: lambda: admin_user})
        )

        response = client.get("/admin/payments/stats")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalPayments"] == 0
        assert data["successRate"] == 0.0
