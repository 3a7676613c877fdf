from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from beanie import Document
from pydantic import Field

from app.utils.dates import utc_now
from app.utils.validators import PyObjectId


class ActivityType(str, Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    SUBSCRIPTION_CREATED = "SUBSCRIPTION_CREATED"
    SUBSCRIPTION_RENEWED = "SUBSCRIPTION_RENEWED"
    SUBSCRIPTION_UPDATED = "SUBSCRIPTION_UPDATED"
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PROFILE_UPDATED = "PROFILE_UPDATED"


class UserActivity(Document):
    userId: PyObjectId
    action: ActivityType
    description: str
    metadata: dict[str, Any] | None = None
    ipAddress: str | None = None
    userAgent: str | None = None
    createdAt: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "user_activities"
        indexes = [[("userId", 1), ("createdAt", -1)], [("action", 1)]]
