"""Test cases for the admin settings store."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.api.endpoints.admin.settings import router
from app.core.auth_dependencies import require_admin
from app.core.exceptions import BadRequestException
from app.models.admin_setting import AdminSetting, SettingCategory
from app.services.settings_service import (
    MASKED_VALUE,
    AdminSettingsService,
    SettingsCache,
    setting_category,
)


@pytest.fixture
def service(beanie_db):
    return AdminSettingsService(cache=SettingsCache(ttl_seconds=300))


class TestAdminSettingsService:
    async def test_values_are_stored_as_strings(self, service):
        written = await service.update({"maintenanceMode": True, "smtpPort": 465, "contactEmail": None})

        assert written == 3
        stored = await service.get_stored()
        assert stored == {"maintenanceMode": "true", "smtpPort": "465", "contactEmail": ""}

    async def test_categories_follow_key_names(self, service):
        await service.update({"razorpayKeyId": "rzp", "smtpHost": "smtp.test", "siteName": "X"})

        categories = {s.key: s.category for s in await AdminSetting.find_all().to_list()}
        assert categories == {
            "razorpayKeyId": SettingCategory.PAYMENT,
            "smtpHost": SettingCategory.EMAIL,
            "siteName": SettingCategory.GENERAL,
        }

    @pytest.mark.parametrize(
        "key,category",
        [
            ("payment_cashfree_app_id", SettingCategory.PAYMENT),
            ("supportEmail", SettingCategory.EMAIL),
            ("maintenanceMode", SettingCategory.GENERAL),
        ],
    )
    def test_setting_category(self, key, category):
        assert setting_category(key) == category

    async def test_secrets_are_masked_in_listing(self, service):
        await service.update({"razorpayKeySecret": "super-secret", "razorpayKeyId": "rzp_live"})

        values = await service.get_all_with_defaults()

        assert values["razorpayKeySecret"] == MASKED_VALUE
        assert values["razorpayKeyId"] == "rzp_live"
        assert values["smtpPass"] == ""

    async def test_unmasked_listing_for_internal_use(self, service):
        await service.update({"smtpPass": "mail-pass"})

        values = await service.get_all_with_defaults(mask_secrets=False)

        assert values["smtpPass"] == "mail-pass"

    async def test_masked_placeholder_does_not_overwrite_secret(self, service):
        await service.update({"razorpayKeySecret": "super-secret"})

        written = await service.update({"razorpayKeySecret": MASKED_VALUE, "siteName": "Classroom+"})

        assert written == 1
        assert await service.get_value("razorpayKeySecret") == "super-secret"

    async def test_choosing_gateway_enables_only_that_gateway(self, service):
        await service.update({"payment_default_gateway": "cashfree"})

        stored = await service.get_stored()
        assert stored["payment_default_gateway"] == "CASHFREE"
        assert stored["payment_cashfree_enabled"] == "true"
        assert stored["payment_razorpay_enabled"] == "false"

    async def test_unknown_gateway_is_rejected(self, service):
        with pytest.raises(BadRequestException):
            await service.update({"payment_default_gateway": "paypal"})

    async def test_empty_update_is_rejected(self, service):
        with pytest.raises(BadRequestException):
            await service.update({})

    async def test_update_invalidates_cache(self, service):
        await service.update({"siteName": "Before"})
        assert await service.get_value("siteName") == "Before"

        await service.update({"siteName": "After"})

        assert await service.get_value("siteName") == "After"

    async def test_cache_serves_reads_until_expiry(self, service):
        await service.update({"siteName": "Cached"})
        await service.get_stored()
        # Written behind the service's back
        await AdminSetting.find_one(AdminSetting.key == "siteName").set({AdminSetting.value: "Direct"})

        assert await service.get_value("siteName") == "Cached"
        service.cache.clear()
        assert await service.get_value("siteName") == "Direct"


class TestSettingsCache:
    def test_expired_cache_is_empty(self):
        cache = SettingsCache(ttl_seconds=0)
        cache.set({"a": "1"})

        assert cache.get() is None

    def test_fresh_cache_returns_values(self):
        cache = SettingsCache(ttl_seconds=60)
        cache.set({"a": "1"})

        assert cache.get() == {"a": "1"}


class TestSettingsEndpoints:
    @pytest.fixture
    def client(self, make_app, admin_user):
        return TestClient(
            make_app(router, prefix="/admin/settings", overrides={require_admin: lambda: admin_user})
        )

    @patch("app.api.endpoints.admin.settings.AdminSettingsService")
    def test_update_reports_count(self, mock_service_class, client):
        service = AsyncMock()
        service.update.return_value = 2
        mock_service_class.return_value = service

        response = client.put("/admin/settings", json={"siteName": "X", "maintenanceMode": False})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["updated"] == 2
        assert data["duration"] >= 0
        service.update.assert_awaited_once_with({"siteName": "X", "maintenanceMode": False})

    @patch("app.api.endpoints.admin.settings.AdminSettingsService")
    def test_list(self, mock_service_class, client):
        service = AsyncMock()
        service.get_all_with_defaults.return_value = {"siteName": "Classroom"}
        mock_service_class.return_value = service

        response = client.get("/admin/settings")

        assert response.status_code == 200
        assert response.json()["data"] == {"siteName": "Classroom"}
