"""Admin-managed key/value configuration with a short-lived in-process cache."""

import logging
import time
from typing import Any

from app.core.config import settings
from app.core.database import transaction
from app.core.exceptions import BadRequestException
from app.models.admin_setting import AdminSetting, SettingCategory
from app.models.payment import PaymentGatewayName

logger = logging.getLogger(__name__)

MASKED_VALUE = "********"

SETTING_DEFAULTS: dict[str, str] = {
    "siteName": "Classroom",
    "siteDescription": "Interactive Learning Platform",
    "siteUrl": settings.SITE_URL,
    "contactEmail": "",
    "supportEmail": "",
    "emailNotifications": "true",
    "maintenanceMode": "false",
    # Gateway selection
    "payment_default_gateway": PaymentGatewayName.RAZORPAY.value,
    # Razorpay
    "payment_razorpay_enabled": "true",
    "paymentMode": settings.PAYMENT_MODE,
    "razorpayKeyId": "",
    "razorpayTestKeyId": "",
    "razorpayKeySecret": "",
    "razorpayTestKeySecret": "",
    # Cashfree
    "payment_cashfree_enabled": "false",
    "payment_cashfree_app_id": "",
    "payment_cashfree_secret_key": "",
    "payment_cashfree_test_app_id": "",
    "payment_cashfree_test_secret_key": "",
    "payment_cashfree_environment": settings.CASHFREE_ENVIRONMENT,
    # SMTP
    "smtpHost": settings.SMTP_HOST,
    "smtpPort": str(settings.SMTP_PORT),
    "smtpUser": settings.SMTP_USER,
    "smtpPass": "",
    "smtpFrom": settings.SMTP_FROM,
    "smtpFromName": settings.SMTP_FROM_NAME,
}

SECRET_SETTING_KEYS = frozenset(
    {
        "razorpayKeySecret",
        "razorpayTestKeySecret",
        "payment_cashfree_secret_key",
        "payment_cashfree_test_secret_key",
        "smtpPass",
    }
)


def setting_category(key: str) -> SettingCategory:
    lowered = key.lower()
    if any(word in lowered for word in ("razorpay", "payment", "cashfree")):
        return SettingCategory.PAYMENT
    if any(word in lowered for word in ("smtp", "email", "mail")):
        return SettingCategory.EMAIL
    return SettingCategory.GENERAL


def to_setting_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def is_truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in ("true", "1", "yes", "on")


class SettingsCache:
    """Holds the whole settings map for ``ttl_seconds``."""

    def __init__(self, ttl_seconds: int):
        self.ttl_seconds = ttl_seconds
        self._values: dict[str, str] | None = None
        self._loaded_at = 0.0

    def get(self) -> dict[str, str] | None:
        if self._values is None:
            return None
        if time.monotonic() - self._loaded_at >= self.ttl_seconds:
            self._values = None
            return None
        return self._values

    def set(self, values: dict[str, str]) -> None:
        self._values = dict(values)
        self._loaded_at = time.monotonic()

    def clear(self) -> None:
        self._values = None
        self._loaded_at = 0.0


settings_cache = SettingsCache(settings.ADMIN_SETTINGS_CACHE_TTL_SECONDS)


class AdminSettingsService:
    def __init__(self, cache: SettingsCache | None = None):
        self.cache = cache or settings_cache

    async def get_stored(self) -> dict[str, str]:
        """Stored keys only, served from the cache while it is fresh."""
        cached = self.cache.get()
        if cached is not None:
            return dict(cached)

        documents = await AdminSetting.find_all().to_list()
        values = {document.key: document.value for document in documents}
        self.cache.set(values)
        logger.debug("Loaded admin settings", extra={"count": len(values)})
        return dict(values)

    async def get_value(self, key: str, default: str | None = None) -> str | None:
        stored = await self.get_stored()
        value = stored.get(key)
        if value in (None, ""):
            return default
        return value

    async def get_all_with_defaults(self, mask_secrets: bool = True) -> dict[str, str]:
        merged = {**SETTING_DEFAULTS, **await self.get_stored()}
        if mask_secrets:
            for key in SECRET_SETTING_KEYS:
                if merged.get(key):
                    merged[key] = MASKED_VALUE
        return merged

    def _normalize_updates(self, updates: dict[str, Any]) -> dict[str, str]:
        normalized = {
            key: to_setting_value(value)
            for key, value in updates.items()
            # The masked placeholder comes back when an admin saves without editing
            if not (key in SECRET_SETTING_KEYS and value == MASKED_VALUE)
        }

        if "payment_default_gateway" in normalized:
            gateway = normalized["payment_default_gateway"].upper()
            if gateway not in PaymentGatewayName.__members__:
                raise BadRequestException(
                    "Unknown payment gateway",
                    details={"payment_default_gateway": normalized["payment_default_gateway"]},
                )
            # Exactly one gateway is live at a time
            normalized["payment_default_gateway"] = gateway
            normalized["payment_razorpay_enabled"] = to_setting_value(
                gateway == PaymentGatewayName.RAZORPAY.value
            )
            normalized["payment_cashfree_enabled"] = to_setting_value(
                gateway == PaymentGatewayName.CASHFREE.value
            )
        return normalized

    async def update(self, updates: dict[str, Any]) -> int:
        """
        Upsert every key as a string and invalidate the cache.

        Returns:
            Number of keys written
        """
        if not updates:
            raise BadRequestException("No valid updates provided")

        normalized = self._normalize_updates(updates)
        async with transaction() as session:
            for key, value in normalized.items():
                existing = await AdminSetting.find_one(AdminSetting.key == key, session=session)
                if existing:
                    existing.value = value
                    await existing.save(session=session)
                else:
                    await AdminSetting(
                        key=key, value=value, category=setting_category(key)
                    ).insert(session=session)

        self.cache.clear()
        logger.info(
            "Admin settings updated",
            extra={"updated_keys": sorted(normalized), "count": len(normalized)},
        )
        return len(normalized)
