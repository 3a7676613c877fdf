"""Endpoints for the signed-in learner's own billing records."""

from fastapi import APIRouter, Depends, Query

from app.core.auth_dependencies import get_current_user
from app.models.user import User
from app.schemas.payment import PaymentResponse
from app.schemas.response import PaginatedResponse, PaginationMeta
from app.schemas.subscription import SubscriptionResponse
from app.services.payment_service import PaymentService
from app.services.subscription_service import SubscriptionService

router = APIRouter()


@router.get("/subscriptions", response_model=PaginatedResponse[SubscriptionResponse])
async def my_subscriptions(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    current_user: User = Depends(get_current_user),
):
    subscriptions, total = await SubscriptionService().list_subscriptions(
        page=page, size=limit, user_id=current_user.id
    )
    return PaginatedResponse(
        message="Subscriptions retrieved successfully",
        data=[SubscriptionResponse.from_document(s) for s in subscriptions],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get("/payments", response_model=PaginatedResponse[PaymentResponse])
async def my_payments(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    current_user: User = Depends(get_current_user),
):
    payments, total = await PaymentService().list_payments(
        page=page, size=limit, user_id=current_user.id
    )
    return PaginatedResponse(
        message="Payments retrieved successfully",
        data=[PaymentResponse.from_document(p) for p in payments],
        pagination=PaginationMeta.build(page, limit, total),
    )
