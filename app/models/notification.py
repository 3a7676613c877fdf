from __future__ import annotations

from datetime import datetime
from enum import Enum

from beanie import Document, Insert, Replace, Save, before_event
from pydantic import Field

from app.utils.dates import utc_now
from app.utils.validators import PyObjectId


class NotificationCategory(str, Enum):
    SYSTEM = "SYSTEM"
    USER = "USER"
    PAYMENT = "PAYMENT"
    SUBSCRIPTION = "SUBSCRIPTION"
    SECURITY = "SECURITY"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class Notification(Document):
    """Admin inbox item."""

    title: str
    message: str
    type: NotificationCategory
    priority: NotificationPriority = NotificationPriority.MEDIUM
    userId: PyObjectId | None = None
    isRead: bool = False
    readAt: datetime | None = None
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @before_event([Insert, Replace, Save])
    def set_timestamps(self):
        self.updatedAt = utc_now()

    class Settings:
        name = "notifications"
