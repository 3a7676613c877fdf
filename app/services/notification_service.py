"""Admin inbox notifications."""

from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Any

from bson import ObjectId

from app.core.exceptions import NotFoundException
from app.models.notification import Notification, NotificationCategory, NotificationPriority
from app.schemas.admin import NotificationCreateRequest
from app.utils.dates import utc_now
from app.utils.validators import parse_object_id

logger = logging.getLogger(__name__)


class NotificationService:
    async def get_notification(self, notification_id: ObjectId) -> Notification:
        notification = await Notification.get(notification_id)
        if not notification:
            raise NotFoundException(resource="Notification", resource_id=str(notification_id))
        return notification

    async def list_notifications(
        self,
        *,
        page: int = 1,
        size: int = 20,
        category: NotificationCategory | None = None,
        priority: NotificationPriority | None = None,
        is_read: bool | None = None,
        search: str | None = None,
    ) -> tuple[list[Notification], int]:
        query: dict[str, Any] = {}
        if category:
            query["type"] = category.value
        if priority:
            query["priority"] = priority.value
        if is_read is not None:
            query["isRead"] = is_read
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{"title": pattern}, {"message": pattern}]

        skip = max(0, (page - 1) * size)
        cursor = Notification.find(query).sort("-createdAt")
        total = await cursor.count()
        items = await cursor.skip(skip).limit(size).to_list()
        return items, total

    async def create_notification(self, request: NotificationCreateRequest) -> Notification:
        notification = Notification(
            title=request.title,
            message=request.message,
            type=request.type,
            priority=request.priority,
            userId=parse_object_id(request.userId, "userId") if request.userId else None,
        )
        await notification.insert()
        return notification

    async def mark_read(self, notification_id: ObjectId, is_read: bool = True) -> Notification:
        notification = await self.get_notification(notification_id)
        notification.isRead = is_read
        notification.readAt = utc_now() if is_read else None
        await notification.save()
        return notification

    async def delete_notification(self, notification_id: ObjectId) -> None:
        notification = await self.get_notification(notification_id)
        await notification.delete()
        logger.info("Notification deleted", extra={"notification_id": str(notification_id)})

    async def stats(self) -> dict[str, Any]:
        total = await Notification.count()
        unread = await Notification.find(Notification.isRead == False).count()  # noqa: E712

        by_type: dict[str, int] = {}
        for category in NotificationCategory:
            count = await Notification.find(Notification.type == category).count()
            if count:
                by_type[category.value] = count

        by_priority: dict[str, int] = {}
        for priority in NotificationPriority:
            count = await Notification.find(Notification.priority == priority).count()
            if count:
                by_priority[priority.value] = count

        since = utc_now() - timedelta(hours=24)
        recent = await Notification.find(Notification.createdAt >= since).count()

        return {
            "totalNotifications": total,
            "unreadNotifications": unread,
            "readPercentage": round((total - unread) / total * 100, 1) if total else 0.0,
            "notificationsByType": by_type,
            "notificationsByPriority": by_priority,
            "last24Hours": recent,
        }
