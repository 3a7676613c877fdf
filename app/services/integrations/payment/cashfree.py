from __future__ import annotations

import hashlib
import logging

from app.core.exceptions import PaymentErrorKind
from app.core.resilience import ResilientHttpClient
from app.models.payment import PaymentGatewayName
from app.services.integrations.payment.base import (
    DEFAULT_CUSTOMER_PHONE,
    CheckoutRequest,
    CheckoutSession,
    PaymentGateway,
    PaymentVerification,
    VerifiedPayment,
)
from app.services.integrations.payment.config import CashfreeConfig

logger = logging.getLogger(__name__)

MAX_ORDER_ID_LENGTH = 45


class CashfreeGateway(PaymentGateway):
    """Cashfree PG orders API; amounts go over the wire in rupees."""

    name = PaymentGatewayName.CASHFREE

    def __init__(self, config: CashfreeConfig, http_client: ResilientHttpClient, site_url: str):
        super().__init__(http_client)
        self.config = config
        self.site_url = site_url.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-client-id": self.config.app_id,
            "x-client-secret": self.config.secret_key,
            "x-api-version": self.config.api_version,
        }

    @staticmethod
    def order_id_for(reference: str) -> str:
        if len(reference) <= MAX_ORDER_ID_LENGTH:
            return reference
        return "cf_" + hashlib.sha1(reference.encode()).hexdigest()  # nosec B324

    def return_url(self) -> str:
        # Cashfree substitutes the braces itself
        return (
            f"{self.site_url}/dashboard/payments"
            "?gateway=cashfree&order_id={order_id}&status={order_status}"
        )

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        self.ensure_configured()
        order_id = self.order_id_for(request.reference)
        payload = {
            "order_id": order_id,
            "order_amount": round(request.amount / 100, 2),
            "order_currency": request.currency,
            "customer_details": {
                "customer_id": request.customer.customer_id,
                "customer_name": request.customer.name or "Customer",
                "customer_email": request.customer.email,
                "customer_phone": request.customer.phone or DEFAULT_CUSTOMER_PHONE,
            },
            "order_meta": {"return_url": self.return_url()},
            "order_note": request.description,
            "order_tags": request.notes or None,
        }
        logger.info(
            "Creating Cashfree order",
            extra={"order_id": order_id, "amount": request.amount},
        )
        order = await self._call(
            "POST",
            f"{self.config.base_url}/orders",
            json={k: v for k, v in payload.items() if v is not None},
            headers=self._headers(),
            circuit_key="cashfree_api",
        )
        session_id = order.get("payment_session_id")
        if not session_id:
            raise self.error(
                PaymentErrorKind.REJECTED, "Cashfree did not return a payment session"
            )

        return CheckoutSession(
            gateway=self.name,
            order_id=order.get("order_id", order_id),
            amount=request.amount,
            currency=request.currency,
            client_payload={
                "order_id": order.get("order_id", order_id),
                "cf_order_id": order.get("cf_order_id"),
                "payment_session_id": session_id,
                "environment": "production" if self.config.is_production else "sandbox",
            },
        )

    async def verify_payment(self, verification: PaymentVerification) -> VerifiedPayment:
        self.ensure_configured()
        order = await self._call(
            "GET",
            f"{self.config.base_url}/orders/{verification.order_id}",
            headers=self._headers(),
            circuit_key="cashfree_api",
        )
        status = order.get("order_status")
        if status != "PAID":
            raise self.error(
                PaymentErrorKind.NOT_PAID,
                f"Payment not completed. Status: {status}",
                details={"order_status": status},
            )

        cf_order_id = order.get("cf_order_id")
        return VerifiedPayment(
            gateway=self.name,
            order_id=verification.order_id,
            payment_id=str(cf_order_id) if cf_order_id is not None else verification.payment_id,
            payment_method="Online",
        )
