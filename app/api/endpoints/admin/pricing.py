"""Admin endpoints for pricing plans."""

from fastapi import APIRouter, Depends, Query

from app.core.auth_dependencies import require_admin
from app.models.user import User
from app.schemas.pricing import (
    PricingPlanCreateRequest,
    PricingPlanResponse,
    PricingPlanUpdateRequest,
)
from app.schemas.response import PaginatedResponse, PaginationMeta, SuccessResponse
from app.services.pricing_service import PricingService
from app.utils.validators import parse_object_id

router = APIRouter()


@router.get("", response_model=PaginatedResponse[PricingPlanResponse])
async def list_pricing_plans(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(50, ge=1, le=100, description="Page size"),
    classId: str | None = Query(None, description="Filter by class"),
    admin_user: User = Depends(require_admin),
):
    class_id = parse_object_id(classId, "classId") if classId else None
    plans, total = await PricingService().list_plans(page=page, size=limit, class_id=class_id)
    return PaginatedResponse(
        message="Pricing plans retrieved successfully",
        data=[PricingPlanResponse.from_document(plan) for plan in plans],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.post("", response_model=SuccessResponse[PricingPlanResponse])
async def create_pricing_plan(
    request: PricingPlanCreateRequest,
    admin_user: User = Depends(require_admin),
):
    plan = await PricingService().create_plan(request)
    return SuccessResponse(
        message="Pricing plan created successfully",
        data=PricingPlanResponse.from_document(plan),
    )


@router.put("/{plan_id}", response_model=SuccessResponse[PricingPlanResponse])
async def update_pricing_plan(
    plan_id: str,
    request: PricingPlanUpdateRequest,
    admin_user: User = Depends(require_admin),
):
    plan = await PricingService().update_plan(parse_object_id(plan_id, "planId"), request)
    return SuccessResponse(
        message="Pricing plan updated successfully",
        data=PricingPlanResponse.from_document(plan),
    )


@router.delete("/{plan_id}", response_model=SuccessResponse[dict])
async def delete_pricing_plan(
    plan_id: str,
    admin_user: User = Depends(require_admin),
):
    await PricingService().delete_plan(parse_object_id(plan_id, "planId"))
    return SuccessResponse(message="Pricing plan deleted successfully", data={"id": plan_id})
