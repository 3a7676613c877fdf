"""Builds the gateway adapters from the current payment configuration."""

from __future__ import annotations

import logging

from app.core.exceptions import PaymentErrorKind, PaymentGatewayException
from app.core.resilience import ResilientHttpClient
from app.models.payment import PaymentGatewayName
from app.services.integrations.payment.base import PaymentGateway
from app.services.integrations.payment.cashfree import CashfreeGateway
from app.services.integrations.payment.config import PaymentConfig, load_payment_config
from app.services.integrations.payment.razorpay import RazorpayGateway
from app.services.settings_service import AdminSettingsService

logger = logging.getLogger(__name__)

_http_client: ResilientHttpClient | None = None


def get_http_client() -> ResilientHttpClient:
    """Process-wide client so circuit state is shared between requests."""
    global _http_client
    if _http_client is None:
        _http_client = ResilientHttpClient()
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


class GatewayRegistry:
    def __init__(self, config: PaymentConfig, http_client: ResilientHttpClient | None = None):
        self.config = config
        client = http_client or get_http_client()
        self._gateways: dict[PaymentGatewayName, PaymentGateway] = {
            PaymentGatewayName.RAZORPAY: RazorpayGateway(config.razorpay, client),
            PaymentGatewayName.CASHFREE: CashfreeGateway(config.cashfree, client, config.site_url),
        }

    @classmethod
    async def from_settings(
        cls,
        settings_service: AdminSettingsService | None = None,
        http_client: ResilientHttpClient | None = None,
    ) -> GatewayRegistry:
        config = await load_payment_config(settings_service or AdminSettingsService())
        return cls(config, http_client)

    def get(
        self,
        name: PaymentGatewayName,
        require_enabled: bool = True,
        require_configured: bool = True,
    ) -> PaymentGateway:
        """
        Return the adapter for ``name``.

        Raises:
            PaymentGatewayException: DISABLED when the admin turned the gateway
                off, NOT_CONFIGURED when its credentials are missing
        """
        gateway = self._gateways[name]
        if require_enabled and not self.config.is_enabled(name):
            raise PaymentGatewayException(
                kind=PaymentErrorKind.DISABLED,
                message=f"{name.value.title()} is not enabled",
                gateway=name.value,
            )
        if require_configured:
            gateway.ensure_configured()
        return gateway

    def default(self) -> PaymentGateway:
        """The single gateway used for new charges."""
        return self.get(self.config.default_gateway)

    def available(self) -> list[PaymentGatewayName]:
        return [
            name
            for name, gateway in self._gateways.items()
            if self.config.is_enabled(name) and gateway.is_configured
        ]
