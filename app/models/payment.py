from __future__ import annotations

from datetime import datetime
from enum import Enum

from beanie import Document, Insert, Replace, Save, before_event
from pydantic import Field

from app.utils.dates import utc_now
from app.utils.validators import PyObjectId


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentGatewayName(str, Enum):
    RAZORPAY = "RAZORPAY"
    CASHFREE = "CASHFREE"


class Payment(Document):
    """Audit record of a charge attempt. Amounts are in paise."""

    userId: PyObjectId
    subscriptionId: PyObjectId | None = None
    classId: PyObjectId | None = None
    subjectId: PyObjectId | None = None
    pricingPlanId: PyObjectId | None = None
    amount: int
    currency: str = "INR"
    status: PaymentStatus = PaymentStatus.PENDING
    gateway: PaymentGatewayName | None = None
    paymentMethod: str | None = None
    description: str | None = None
    razorpayOrderId: str | None = None
    razorpayPaymentId: str | None = None
    razorpaySignature: str | None = None
    cashfreeOrderId: str | None = None
    cashfreePaymentId: str | None = None
    failureReason: str | None = None
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @before_event([Insert, Replace, Save])
    def set_timestamps(self):
        self.updatedAt = utc_now()

    def set_gateway_references(
        self, gateway: PaymentGatewayName, order_id: str | None, payment_id: str | None
    ) -> None:
        self.gateway = gateway
        if gateway == PaymentGatewayName.CASHFREE:
            self.cashfreeOrderId = order_id or self.cashfreeOrderId
            self.cashfreePaymentId = payment_id or self.cashfreePaymentId
        else:
            self.razorpayOrderId = order_id or self.razorpayOrderId
            self.razorpayPaymentId = payment_id or self.razorpayPaymentId

    @property
    def gateway_order_id(self) -> str | None:
        if self.gateway == PaymentGatewayName.CASHFREE:
            return self.cashfreeOrderId
        return self.razorpayOrderId

    @property
    def gateway_payment_id(self) -> str | None:
        if self.gateway == PaymentGatewayName.CASHFREE:
            return self.cashfreePaymentId
        return self.razorpayPaymentId

    class Settings:
        name = "payments"
        indexes = [
            [("userId", 1), ("createdAt", -1)],
            [("razorpayOrderId", 1)],
            [("cashfreeOrderId", 1)],
        ]
