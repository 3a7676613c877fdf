from fastapi import APIRouter, Depends, Query

from app.core.auth_dependencies import require_admin
from app.models.announcement import AnnouncementType
from app.models.user import User
from app.schemas.admin import (
    AnnouncementCreateRequest,
    AnnouncementResponse,
    AnnouncementStats,
    AnnouncementUpdateRequest,
)
from app.schemas.response import PaginatedResponse, PaginationMeta, SuccessResponse
from app.services.announcement_service import AnnouncementService
from app.utils.validators import parse_object_id

router = APIRouter()


@router.get("", response_model=PaginatedResponse[AnnouncementResponse])
async def list_announcements(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    type: AnnouncementType | None = Query(None, description="Filter by type"),
    isActive: bool | None = Query(None, description="Filter by active flag"),
    search: str | None = Query(None, description="Match title or content"),
    admin_user: User = Depends(require_admin),
):
    announcements, total = await AnnouncementService().list_announcements(
        page=page, size=limit, announcement_type=type, is_active=isActive, search=search
    )
    return PaginatedResponse(
        message="Announcements retrieved successfully",
        data=[AnnouncementResponse.from_document(a) for a in announcements],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.post("", response_model=SuccessResponse[AnnouncementResponse])
async def create_announcement(
    request: AnnouncementCreateRequest,
    admin_user: User = Depends(require_admin),
):
    announcement = await AnnouncementService().create_announcement(request)
    return SuccessResponse(
        message="Announcement created successfully",
        data=AnnouncementResponse.from_document(announcement),
    )


@router.put("/{announcement_id}", response_model=SuccessResponse[AnnouncementResponse])
async def update_announcement(
    announcement_id: str,
    request: AnnouncementUpdateRequest,
    admin_user: User = Depends(require_admin),
):
    announcement = await AnnouncementService().update_announcement(
        parse_object_id(announcement_id, "announcementId"), request
    )
    return SuccessResponse(
        message="Announcement updated successfully",
        data=AnnouncementResponse.from_document(announcement),
    )


@router.delete("/{announcement_id}", response_model=SuccessResponse[dict])
async def delete_announcement(
    announcement_id: str,
    admin_user: User = Depends(require_admin),
):
    await AnnouncementService().delete_announcement(
        parse_object_id(announcement_id, "announcementId")
    )
    return SuccessResponse(message="Announcement deleted successfully", data={"id": announcement_id})


@router.get("/stats", response_model=SuccessResponse[AnnouncementStats])
async def announcement_stats(admin_user: User = Depends(require_admin)):
    stats = await AnnouncementService().stats()
    return SuccessResponse(message="Announcement statistics", data=AnnouncementStats(**stats))
