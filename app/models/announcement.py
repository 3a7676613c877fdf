from __future__ import annotations

from datetime import datetime
from enum import Enum

from beanie import Document, Insert, Replace, Save, before_event
from pydantic import Field

from app.utils.dates import utc_now


class AnnouncementType(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    MAINTENANCE = "MAINTENANCE"


class Announcement(Document):
    title: str
    content: str
    type: AnnouncementType = AnnouncementType.INFO
    isActive: bool = True
    targetUsers: list[str] = Field(default_factory=list)
    startDate: datetime | None = None
    endDate: datetime | None = None
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @before_event([Insert, Replace, Save])
    def set_timestamps(self):
        self.updatedAt = utc_now()

    class Settings:
        name = "announcements"
