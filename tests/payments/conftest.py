"""Gateway configuration fixtures."""

import pytest

from app.models.payment import PaymentGatewayName
from app.services.integrations.payment.config import CashfreeConfig, PaymentConfig, RazorpayConfig
from tests.payments.gateway_helpers import (
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    RAZORPAY_WEBHOOK_SECRET,
)


@pytest.fixture
def razorpay_config():
    return RazorpayConfig(
        enabled=True,
        key_id=RAZORPAY_KEY_ID,
        key_secret=RAZORPAY_KEY_SECRET,
        webhook_secret=RAZORPAY_WEBHOOK_SECRET,
        mode="test",
    )


@pytest.fixture
def cashfree_config():
    return CashfreeConfig(
        enabled=False,
        app_id="TEST_CF_APP_ID_123",
        secret_key="cfsk_ma_test_secret_456",
        environment="SANDBOX",
    )


@pytest.fixture
def payment_config(razorpay_config, cashfree_config):
    return PaymentConfig(
        default_gateway=PaymentGatewayName.RAZORPAY,
        razorpay=razorpay_config,
        cashfree=cashfree_config,
        site_url="https://classroom.example.com",
    )
