from __future__ import annotations

from datetime import datetime
from enum import Enum

from beanie import Document, Indexed, Insert, Replace, Save, before_event
from pydantic import Field

from app.utils.dates import utc_now


class SettingCategory(str, Enum):
    PAYMENT = "payment"
    EMAIL = "email"
    GENERAL = "general"
    SYSTEM = "system"


class AdminSetting(Document):
    """One key of the admin-managed configuration store. Values are strings."""

    key: Indexed(str, unique=True)
    value: str
    category: SettingCategory = SettingCategory.GENERAL
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @before_event([Insert, Replace, Save])
    def set_timestamps(self):
        self.updatedAt = utc_now()

    class Settings:
        name = "admin_settings"
