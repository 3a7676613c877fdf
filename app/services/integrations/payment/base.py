"""Common contract for payment gateway adapters."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from app.core.exceptions import PaymentErrorKind, PaymentGatewayException
from app.core.resilience import CircuitOpenError, ResilientHttpClient
from app.models.payment import PaymentGatewayName
from app.utils.dates import epoch_millis

logger = logging.getLogger(__name__)

# Cashfree rejects orders without a phone number
DEFAULT_CUSTOMER_PHONE = "9999999999"


@dataclass
class CustomerInfo:
    customer_id: str
    email: str | None = None
    name: str | None = None
    phone: str | None = None


@dataclass
class CheckoutRequest:
    """An order to open with a gateway. ``amount`` is in paise."""

    reference: str
    amount: int
    currency: str
    customer: CustomerInfo
    description: str | None = None
    notes: dict[str, str] = field(default_factory=dict)


@dataclass
class CheckoutSession:
    """What the browser needs to complete payment with the gateway's SDK."""

    gateway: PaymentGatewayName
    order_id: str
    amount: int
    currency: str
    client_payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentVerification:
    order_id: str
    payment_id: str | None = None
    signature: str | None = None


@dataclass
class VerifiedPayment:
    gateway: PaymentGatewayName
    order_id: str
    payment_id: str | None
    payment_method: str | None = None


@dataclass
class RenewalCharge:
    gateway: PaymentGatewayName
    order_id: str
    payment_id: str


class PaymentGateway(ABC):
    """
    One payment processor.

    Adapters translate transport failures into ``PaymentGatewayException``
    so callers branch on ``PaymentErrorKind`` rather than on messages.
    """

    name: PaymentGatewayName

    def __init__(self, http_client: ResilientHttpClient):
        self.http_client = http_client

    @property
    @abstractmethod
    def is_configured(self) -> bool: ...

    @abstractmethod
    async def create_checkout(self, request: CheckoutRequest) -> CheckoutSession: ...

    @abstractmethod
    async def verify_payment(self, verification: PaymentVerification) -> VerifiedPayment: ...

    async def charge_renewal(
        self, *, user_id: str, amount: int, currency: str, description: str
    ) -> RenewalCharge:
        """Open a server-side order for an automatic renewal."""
        if amount <= 0:
            raise self.error(PaymentErrorKind.INVALID_AMOUNT, "Invalid subscription amount")

        timestamp = epoch_millis()
        session = await self.create_checkout(
            CheckoutRequest(
                reference=f"auto_renewal_{user_id}_{timestamp}",
                amount=amount,
                currency=currency,
                customer=CustomerInfo(customer_id=user_id),
                description=description,
                notes={"userId": user_id, "type": "auto_renewal", "description": description},
            )
        )
        logger.info(
            "Auto-renewal order created",
            extra={"gateway": self.name.value, "order_id": session.order_id, "user_id": user_id},
        )
        return RenewalCharge(
            gateway=self.name,
            order_id=session.order_id,
            payment_id=f"auto_{session.order_id}_{timestamp}",
        )

    def error(
        self, kind: PaymentErrorKind, message: str, details: dict[str, Any] | None = None
    ) -> PaymentGatewayException:
        return PaymentGatewayException(
            kind=kind, message=message, gateway=self.name.value, details=details
        )

    def ensure_configured(self) -> None:
        if not self.is_configured:
            raise self.error(
                PaymentErrorKind.NOT_CONFIGURED,
                f"{self.name.value.title()} credentials are not configured",
            )

    async def _call(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """Perform one gateway API call and return its JSON body."""
        try:
            response = await self.http_client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise self.error(PaymentErrorKind.TIMEOUT, "Payment gateway timed out") from e
        except httpx.HTTPStatusError as e:
            raise self.error(
                PaymentErrorKind.REJECTED,
                "Payment gateway rejected the request",
                details={"status": e.response.status_code, "body": _error_body(e.response)},
            ) from e
        except (CircuitOpenError, httpx.RequestError) as e:
            raise self.error(PaymentErrorKind.NETWORK, "Payment gateway unreachable") from e

        try:
            return response.json()
        except ValueError as e:
            raise self.error(
                PaymentErrorKind.REJECTED, "Payment gateway returned an invalid response"
            ) from e


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:256]
