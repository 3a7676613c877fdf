from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Any

from bson import ObjectId

from app.core.exceptions import BadRequestException, NotFoundException
from app.models.announcement import Announcement, AnnouncementType
from app.schemas.admin import AnnouncementCreateRequest, AnnouncementUpdateRequest
from app.utils.dates import utc_now

logger = logging.getLogger(__name__)


class AnnouncementService:
    async def get_announcement(self, announcement_id: ObjectId) -> Announcement:
        announcement = await Announcement.get(announcement_id)
        if not announcement:
            raise NotFoundException(resource="Announcement", resource_id=str(announcement_id))
        return announcement

    async def list_announcements(
        self,
        *,
        page: int = 1,
        size: int = 20,
        announcement_type: AnnouncementType | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> tuple[list[Announcement], int]:
        query: dict[str, Any] = {}
        if announcement_type:
            query["type"] = announcement_type.value
        if is_active is not None:
            query["isActive"] = is_active
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{"title": pattern}, {"content": pattern}]

        skip = max(0, (page - 1) * size)
        cursor = Announcement.find(query).sort("-createdAt")
        total = await cursor.count()
        items = await cursor.skip(skip).limit(size).to_list()
        return items, total

    async def create_announcement(self, request: AnnouncementCreateRequest) -> Announcement:
        if request.startDate and request.endDate and request.endDate <= request.startDate:
            raise BadRequestException("endDate must be after startDate")
        announcement = Announcement(**request.model_dump())
        await announcement.insert()
        logger.info("Announcement created", extra={"announcement_id": str(announcement.id)})
        return announcement

    async def update_announcement(
        self, announcement_id: ObjectId, request: AnnouncementUpdateRequest
    ) -> Announcement:
        announcement = await self.get_announcement(announcement_id)
        for field, value in request.model_dump(exclude_unset=True).items():
            setattr(announcement, field, value)
        await announcement.save()
        return announcement

    async def delete_announcement(self, announcement_id: ObjectId) -> None:
        announcement = await self.get_announcement(announcement_id)
        await announcement.delete()
        logger.info("Announcement deleted", extra={"announcement_id": str(announcement_id)})

    async def stats(self) -> dict[str, Any]:
        now = utc_now()
        total = await Announcement.count()
        active = await Announcement.find(Announcement.isActive == True).count()  # noqa: E712

        by_type: dict[str, int] = {}
        for announcement_type in AnnouncementType:
            count = await Announcement.find(Announcement.type == announcement_type).count()
            if count:
                by_type[announcement_type.value] = count

        scheduled = await Announcement.find(
            Announcement.isActive == False, Announcement.startDate >= now  # noqa: E712
        ).count()
        expired = await Announcement.find(
            Announcement.isActive == True, Announcement.endDate < now  # noqa: E712
        ).count()
        recent = await Announcement.find(
            Announcement.createdAt >= now - timedelta(hours=24)
        ).count()

        return {
            "totalAnnouncements": total,
            "activeCount": active,
            "inactiveCount": total - active,
            "activePercentage": round(active / total * 100, 1) if total else 0.0,
            "announcementsByType": by_type,
            "scheduledCount": scheduled,
            "expiredCount": expired,
            "last24Hours": recent,
        }
