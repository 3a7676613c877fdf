"""Payment API endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, Request

from app.core.auth_dependencies import get_current_user
from app.models.user import User
from app.schemas.payment import (
    GatewayListResponse,
    PaymentOrderRequest,
    PaymentOrderResponse,
    PaymentResponse,
    PaymentVerifyRequest,
)
from app.schemas.response import SuccessResponse
from app.services.payment_service import PaymentService
from app.utils.validators import parse_object_id

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/gateways", response_model=SuccessResponse[GatewayListResponse])
async def list_gateways(current_user: User = Depends(get_current_user)):
    """Gateways that are enabled and configured, plus the one used for new orders."""
    result = await PaymentService().available_gateways()
    return SuccessResponse(message="Payment gateways retrieved", data=GatewayListResponse(**result))


@router.post("/orders", response_model=SuccessResponse[PaymentOrderResponse])
async def create_order(
    order_request: PaymentOrderRequest,
    current_user: User = Depends(get_current_user),
):
    """Open a checkout for a pricing plan with the default gateway."""
    result = await PaymentService().create_order(
        current_user, parse_object_id(order_request.pricingPlanId, "pricingPlanId")
    )
    logger.info(
        "Payment order created",
        extra={"user_id": str(current_user.id), "order_id": result["orderId"]},
    )
    return SuccessResponse(message="Payment order created", data=PaymentOrderResponse(**result))


@router.post("/verify", response_model=SuccessResponse[PaymentResponse])
async def verify_payment(
    verify_request: PaymentVerifyRequest,
    current_user: User = Depends(get_current_user),
):
    """Confirm a completed checkout with the gateway that created it."""
    payment = await PaymentService().verify(
        current_user,
        verify_request.gateway,
        verify_request.orderId,
        payment_id=verify_request.paymentId,
        signature=verify_request.signature,
    )
    return SuccessResponse(
        message="Payment verified successfully", data=PaymentResponse.from_document(payment)
    )


@router.post("/webhooks/razorpay", response_model=SuccessResponse[dict])
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str | None = Header(None, alias="X-Razorpay-Signature"),
):
    """Razorpay event callback; the signature covers the raw body."""
    body = await request.body()
    result = await PaymentService().handle_razorpay_webhook(body, x_razorpay_signature)
    return SuccessResponse(message="Webhook processed", data=result)
