"""Test cases for admin user management."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.api.endpoints.admin.users import router
from app.core.auth_dependencies import require_admin
from app.core.exceptions import ConflictException
from app.models.payment import Payment, PaymentStatus
from app.models.subscription import SubscriptionStatus
from app.models.user import User, UserRole
from app.schemas.user import UserCreateRequest
from app.services.user_service import UserService
from app.utils.password import verify_password


class TestUserService:
    @pytest.fixture
    def service(self, beanie_db):
        return UserService()

    async def test_create_user_normalizes_email_and_hashes_password(self, service):
        user = await service.create_user(
            UserCreateRequest(email="Asha@Example.com", name="Asha", password="correct-horse")
        )

        stored = await User.get(user.id)
        assert stored.email == "asha@example.com"
        assert verify_password("correct-horse", stored.passwordHash)

    async def test_duplicate_email_conflicts(self, service):
        await service.create_user(UserCreateRequest(email="asha@example.com", name="Asha"))

        with pytest.raises(ConflictException):
            await service.create_user(UserCreateRequest(email="ASHA@example.com", name="Asha 2"))

    async def test_stats(self, service, factory, now):
        user = await factory.user()
        await factory.subscription(user.id, now)
        await factory.subscription(user.id, now, status=SubscriptionStatus.EXPIRED)
        for amount, status in ((9900, PaymentStatus.COMPLETED), (4900, PaymentStatus.COMPLETED), (100, PaymentStatus.FAILED)):
            await Payment(userId=user.id, amount=amount, status=status).insert()

        stats = await service.user_stats([user.id])

        assert stats[user.id]["activeSubscriptions"] == 1
        assert stats[user.id]["totalPayments"] == 2
        assert stats[user.id]["totalSpent"] == 14800


class TestUserEndpoints:
    @pytest.fixture
    def client(self, make_app, admin_user):
        return TestClient(
            make_app(router, prefix="/admin/users", overrides={require_admin: lambda: admin_user})
        )

    @patch("app.api.endpoints.admin.users.UserService")
    def test_admin_cannot_demote_self(self, mock_service_class, client, admin_user):
        response = client.patch(f"/admin/users/{admin_user.id}", json={"role": "USER"})

        assert response.status_code == 400
        mock_service_class.assert_not_called()

    @patch("app.api.endpoints.admin.users.UserService")
    def test_admin_cannot_delete_self(self, mock_service_class, client, admin_user):
        response = client.delete(f"/admin/users/{admin_user.id}")

        assert response.status_code == 400
        mock_service_class.assert_not_called()

    @patch("app.api.endpoints.admin.users.UserService")
    def test_delete_other_user(self, mock_service_class, client):
        service = AsyncMock()
        mock_service_class.return_value = service

        response = client.delete("/admin/users/65a1b2c3d4e5f60718293a4b")

        assert response.status_code == 200
        service.delete_user.assert_awaited_once()

    def test_role_filter_must_be_known(self, client):
        response = client.get("/admin/users?role=OWNER")

        assert response.status_code == 422
