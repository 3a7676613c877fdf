"""Gateway credentials resolved from the admin settings store."""

from __future__ import annotations

from dataclasses import dataclass

from app.core.config import settings
from app.models.payment import PaymentGatewayName
from app.services.settings_service import AdminSettingsService, is_truthy

# Shorter values are placeholders, not real Cashfree credentials
MIN_CASHFREE_CREDENTIAL_LENGTH = 10


@dataclass
class RazorpayConfig:
    enabled: bool
    key_id: str
    key_secret: str
    webhook_secret: str
    mode: str

    @property
    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)


@dataclass
class CashfreeConfig:
    enabled: bool
    app_id: str
    secret_key: str
    environment: str
    api_version: str = settings.CASHFREE_API_VERSION

    @property
    def is_production(self) -> bool:
        return self.environment.upper() == "PRODUCTION"

    @property
    def base_url(self) -> str:
        return settings.CASHFREE_PRODUCTION_URL if self.is_production else settings.CASHFREE_SANDBOX_URL

    @property
    def is_configured(self) -> bool:
        return (
            len(self.app_id or "") >= MIN_CASHFREE_CREDENTIAL_LENGTH
            and len(self.secret_key or "") >= MIN_CASHFREE_CREDENTIAL_LENGTH
        )


@dataclass
class PaymentConfig:
    default_gateway: PaymentGatewayName
    razorpay: RazorpayConfig
    cashfree: CashfreeConfig
    site_url: str

    def is_enabled(self, gateway: PaymentGatewayName) -> bool:
        if gateway == PaymentGatewayName.CASHFREE:
            return self.cashfree.enabled
        return self.razorpay.enabled


async def load_payment_config(settings_service: AdminSettingsService) -> PaymentConfig:
    """Stored admin settings win; environment variables fill the gaps."""
    stored = await settings_service.get_stored()

    def value(key: str, fallback: str = "") -> str:
        return stored.get(key) or fallback

    default_name = value("payment_default_gateway", PaymentGatewayName.RAZORPAY.value).upper()
    default_gateway = (
        PaymentGatewayName(default_name)
        if default_name in PaymentGatewayName.__members__
        else PaymentGatewayName.RAZORPAY
    )

    mode = value("paymentMode", settings.PAYMENT_MODE).lower()
    if mode == "live":
        key_id = value("razorpayKeyId", settings.RAZORPAY_KEY_ID)
        key_secret = value("razorpayKeySecret", settings.RAZORPAY_KEY_SECRET)
    else:
        key_id = value("razorpayTestKeyId", settings.RAZORPAY_KEY_ID)
        key_secret = value("razorpayTestKeySecret", settings.RAZORPAY_KEY_SECRET)

    environment = value("payment_cashfree_environment", settings.CASHFREE_ENVIRONMENT).upper()
    if environment == "PRODUCTION":
        app_id = value("payment_cashfree_app_id", settings.CASHFREE_APP_ID)
        secret_key = value("payment_cashfree_secret_key", settings.CASHFREE_SECRET_KEY)
    else:
        app_id = value("payment_cashfree_test_app_id", settings.CASHFREE_APP_ID)
        secret_key = value("payment_cashfree_test_secret_key", settings.CASHFREE_SECRET_KEY)

    return PaymentConfig(
        default_gateway=default_gateway,
        razorpay=RazorpayConfig(
            enabled=is_truthy(value("payment_razorpay_enabled", "true")),
            key_id=key_id,
            key_secret=key_secret,
            webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET,
            mode=mode,
        ),
        cashfree=CashfreeConfig(
            enabled=is_truthy(value("payment_cashfree_enabled", "false")),
            app_id=app_id,
            secret_key=secret_key,
            environment=environment,
        ),
        site_url=value("siteUrl", settings.SITE_URL).rstrip("/"),
    )
