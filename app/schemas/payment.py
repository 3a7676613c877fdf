from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.models.payment import Payment, PaymentGatewayName, PaymentStatus


class PaymentOrderRequest(BaseModel):
    """Schema for opening a checkout."""

    pricingPlanId: str = Field(..., description="Pricing plan ID")


class PaymentOrderResponse(BaseModel):
    paymentId: str
    gateway: PaymentGatewayName
    orderId: str
    amount: int = Field(..., description="Amount in paise")
    currency: str
    checkout: dict[str, Any] = Field(
        default_factory=dict, description="Payload for the gateway's browser SDK"
    )


class PaymentVerifyRequest(BaseModel):
    gateway: PaymentGatewayName
    orderId: str = Field(..., min_length=1)
    paymentId: str | None = None
    signature: str | None = None


class GatewayListResponse(BaseModel):
    gateways: list[PaymentGatewayName]
    defaultGateway: PaymentGatewayName


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    id: str
    userId: str
    subscriptionId: str | None = None
    pricingPlanId: str | None = None
    amount: int
    currency: str
    status: PaymentStatus
    gateway: PaymentGatewayName | None = None
    paymentMethod: str | None = None
    description: str | None = None
    orderId: str | None = None
    gatewayPaymentId: str | None = None
    failureReason: str | None = None
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_document(cls, payment: Payment) -> PaymentResponse:
        return cls(
            id=str(payment.id),
            userId=str(payment.userId),
            subscriptionId=str(payment.subscriptionId) if payment.subscriptionId else None,
            pricingPlanId=str(payment.pricingPlanId) if payment.pricingPlanId else None,
            amount=payment.amount,
            currency=payment.currency,
            status=payment.status,
            gateway=payment.gateway,
            paymentMethod=payment.paymentMethod,
            description=payment.description,
            orderId=payment.gateway_order_id,
            gatewayPaymentId=payment.gateway_payment_id,
            failureReason=payment.failureReason,
            createdAt=payment.createdAt,
            updatedAt=payment.updatedAt,
        )


class PaymentStats(BaseModel):
    totalRevenue: int = Field(..., description="Sum of completed payments in paise")
    totalPayments: int
    successfulPayments: int
    failedPayments: int
    pendingPayments: int
    refundedPayments: int
    successRate: float = Field(..., description="Completed share of all payments, in percent")
