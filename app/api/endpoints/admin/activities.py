from fastapi import APIRouter, Depends, Query

from app.core.auth_dependencies import require_admin
from app.models.user import User
from app.schemas.admin import ActivityResponse, ActivityStats
from app.schemas.response import PaginatedResponse, PaginationMeta, SuccessResponse
from app.services.activity_service import ActivityService
from app.utils.validators import parse_object_id

router = APIRouter()


@router.get("", response_model=PaginatedResponse[ActivityResponse])
async def list_activities(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(50, ge=1, le=200, description="Page size"),
    action: str | None = Query(None, description="Action filter, ALL for every action"),
    userId: str | None = Query(None, description="Filter by user"),
    search: str | None = Query(None, description="Match description, user name or email"),
    admin_user: User = Depends(require_admin),
):
    user_id = parse_object_id(userId, "userId") if userId else None
    activities, total = await ActivityService().list_activities(
        page=page, size=limit, action=action, user_id=user_id, search=search
    )
    return PaginatedResponse(
        message="Activities retrieved successfully",
        data=[ActivityResponse.from_document(a) for a in activities],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get("/stats", response_model=SuccessResponse[ActivityStats])
async def activity_stats(admin_user: User = Depends(require_admin)):
    stats = await ActivityService().stats()
    return SuccessResponse(message="Activity statistics", data=ActivityStats(**stats))
