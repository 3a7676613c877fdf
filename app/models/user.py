from __future__ import annotations

from datetime import datetime
from enum import Enum

from beanie import Document, Indexed, Insert, Replace, Save, before_event
from pydantic import EmailStr, Field

from app.utils.dates import utc_now
from app.utils.validators import email_local_part


class UserRole(str, Enum):
    """User role enumeration."""

    ADMIN = "ADMIN"
    USER = "USER"


class User(Document):
    """Learner or administrator account."""

    email: Indexed(EmailStr, unique=True)
    name: str | None = None
    image: str | None = None
    phone: str | None = None
    role: UserRole = UserRole.USER
    passwordHash: str | None = None
    isActive: bool = True
    lastLoginAt: datetime | None = None
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @before_event([Insert, Replace, Save])
    def set_timestamps(self):
        self.updatedAt = utc_now()

    @property
    def display_name(self) -> str:
        return self.name or email_local_part(self.email) or "User"

    class Settings:
        name = "users"
