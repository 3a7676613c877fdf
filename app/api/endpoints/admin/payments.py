"""Admin payment history."""

from fastapi import APIRouter, Depends, Query

from app.core.auth_dependencies import require_admin
from app.models.payment import PaymentGatewayName, PaymentStatus
from app.models.user import User
from app.schemas.payment import PaymentResponse, PaymentStats
from app.schemas.response import PaginatedResponse, PaginationMeta, SuccessResponse
from app.services.payment_service import PaymentService
from app.utils.validators import parse_object_id

router = APIRouter()


@router.get("", response_model=PaginatedResponse[PaymentResponse])
async def list_payments(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    status: PaymentStatus | None = Query(None, description="Filter by status"),
    gateway: PaymentGatewayName | None = Query(None, description="Filter by gateway"),
    userId: str | None = Query(None, description="Filter by user"),
    admin_user: User = Depends(require_admin),
):
    user_id = parse_object_id(userId, "userId") if userId else None
    payments, total = await PaymentService().list_payments(
        page=page, size=limit, status=status, gateway=gateway, user_id=user_id
    )
    return PaginatedResponse(
        message="Payments retrieved successfully",
        data=[PaymentResponse.from_document(p) for p in payments],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get("/stats", response_model=SuccessResponse[PaymentStats])
async def payment_stats(admin_user: User = Depends(require_admin)):
    stats = await PaymentService().stats()
    return SuccessResponse(message="Payment statistics", data=PaymentStats(**stats))
