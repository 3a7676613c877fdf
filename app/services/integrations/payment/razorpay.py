from __future__ import annotations

import hashlib
import hmac
import logging

from app.core.config import settings
from app.core.exceptions import PaymentErrorKind
from app.core.resilience import ResilientHttpClient
from app.models.payment import PaymentGatewayName
from app.services.integrations.payment.base import (
    CheckoutRequest,
    CheckoutSession,
    PaymentGateway,
    PaymentVerification,
    VerifiedPayment,
)
from app.services.integrations.payment.config import RazorpayConfig

logger = logging.getLogger(__name__)


def hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class RazorpayGateway(PaymentGateway):
    """Razorpay Orders API. Checkout itself runs in Razorpay's browser SDK."""

    name = PaymentGatewayName.RAZORPAY

    def __init__(
        self,
        config: RazorpayConfig,
        http_client: ResilientHttpClient,
        base_url: str | None = None,
    ):
        super().__init__(http_client)
        self.config = config
        self.base_url = (base_url or settings.RAZORPAY_BASE_URL).rstrip("/")

    @property
    def is_configured(self) -> bool:
        return self.config.is_configured

    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession:
        self.ensure_configured()
        payload = {
            "amount": request.amount,
            "currency": request.currency,
            "receipt": request.reference[:40],
            "notes": request.notes,
        }
        logger.info(
            "Creating Razorpay order",
            extra={"reference": request.reference, "amount": request.amount},
        )
        order = await self._call(
            "POST",
            f"{self.base_url}/orders",
            json=payload,
            auth=(self.config.key_id, self.config.key_secret),
            circuit_key="razorpay_api",
        )
        order_id = order.get("id")
        if not order_id:
            raise self.error(PaymentErrorKind.REJECTED, "Razorpay did not return an order id")

        return CheckoutSession(
            gateway=self.name,
            order_id=order_id,
            amount=int(order.get("amount", request.amount)),
            currency=order.get("currency", request.currency),
            client_payload={
                "key_id": self.config.key_id,
                "order_id": order_id,
                "amount": order.get("amount", request.amount),
                "currency": order.get("currency", request.currency),
                "receipt": order.get("receipt"),
            },
        )

    def expected_signature(self, order_id: str, payment_id: str) -> str:
        return hmac_sha256_hex(self.config.key_secret, f"{order_id}|{payment_id}".encode())

    async def verify_payment(self, verification: PaymentVerification) -> VerifiedPayment:
        self.ensure_configured()
        if not verification.payment_id or not verification.signature:
            raise self.error(
                PaymentErrorKind.INVALID_SIGNATURE, "Payment id and signature are required"
            )

        expected = self.expected_signature(verification.order_id, verification.payment_id)
        if not hmac.compare_digest(expected, verification.signature):
            logger.warning(
                "Razorpay signature mismatch", extra={"order_id": verification.order_id}
            )
            raise self.error(PaymentErrorKind.INVALID_SIGNATURE, "Invalid payment signature")

        return VerifiedPayment(
            gateway=self.name,
            order_id=verification.order_id,
            payment_id=verification.payment_id,
            payment_method="razorpay",
        )

    def verify_webhook_signature(self, body: bytes, signature: str | None) -> bool:
        if not self.config.webhook_secret or not signature:
            return False
        expected = hmac_sha256_hex(self.config.webhook_secret, body)
        return hmac.compare_digest(expected, signature)
