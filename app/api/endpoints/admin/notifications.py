"""Admin inbox plus the notification queue drain."""

import logging

from fastapi import APIRouter, Depends, Query

from app.core.auth_dependencies import CallerContext, require_admin, verify_admin_or_cron
from app.models.notification import NotificationCategory, NotificationPriority
from app.models.user import User
from app.schemas.admin import (
    NotificationCreateRequest,
    NotificationReadRequest,
    NotificationResponse,
    NotificationStats,
    QueueDrainResponse,
)
from app.schemas.response import PaginatedResponse, PaginationMeta, SuccessResponse
from app.services.notification_queue_service import NotificationQueueService
from app.services.notification_service import NotificationService
from app.utils.validators import parse_object_id

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/process", response_model=SuccessResponse[QueueDrainResponse])
async def process_notification_queue(caller: CallerContext = Depends(verify_admin_or_cron)):
    """Deliver every due entry of the notification queue."""
    logger.info("Notification drain requested", extra={"caller": caller.label})
    summary = await NotificationQueueService().process_due()
    return SuccessResponse(message="Notification queue processed", data=QueueDrainResponse(**summary))


@router.get("", response_model=PaginatedResponse[NotificationResponse])
async def list_notifications(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    type: NotificationCategory | None = Query(None, description="Filter by category"),
    priority: NotificationPriority | None = Query(None, description="Filter by priority"),
    isRead: bool | None = Query(None, description="Filter by read state"),
    search: str | None = Query(None, description="Match title or message"),
    admin_user: User = Depends(require_admin),
):
    notifications, total = await NotificationService().list_notifications(
        page=page,
        size=limit,
        category=type,
        priority=priority,
        is_read=isRead,
        search=search,
    )
    return PaginatedResponse(
        message="Notifications retrieved successfully",
        data=[NotificationResponse.from_document(n) for n in notifications],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.post("", response_model=SuccessResponse[NotificationResponse])
async def create_notification(
    request: NotificationCreateRequest,
    admin_user: User = Depends(require_admin),
):
    notification = await NotificationService().create_notification(request)
    return SuccessResponse(
        message="Notification created successfully",
        data=NotificationResponse.from_document(notification),
    )


@router.patch("/{notification_id}", response_model=SuccessResponse[NotificationResponse])
async def mark_notification(
    notification_id: str,
    request: NotificationReadRequest,
    admin_user: User = Depends(require_admin),
):
    notification = await NotificationService().mark_read(
        parse_object_id(notification_id, "notificationId"), request.isRead
    )
    return SuccessResponse(
        message="Notification updated successfully",
        data=NotificationResponse.from_document(notification),
    )


@router.delete("/{notification_id}", response_model=SuccessResponse[dict])
async def delete_notification(
    notification_id: str,
    admin_user: User = Depends(require_admin),
):
    await NotificationService().delete_notification(
        parse_object_id(notification_id, "notificationId")
    )
    return SuccessResponse(message="Notification deleted successfully", data={"id": notification_id})


@router.get("/stats", response_model=SuccessResponse[NotificationStats])
async def notification_stats(admin_user: User = Depends(require_admin)):
    stats = await NotificationService().stats()
    return SuccessResponse(message="Notification statistics", data=NotificationStats(**stats))
