from __future__ import annotations

from datetime import datetime

from beanie import Document, Insert, Replace, Save, before_event
from pydantic import Field

from app.utils.dates import utc_now
from app.utils.validators import PyObjectId


class SchoolClass(Document):
    """A class (grade) learners subscribe to. Prices are in paise."""

    name: str
    description: str | None = None
    price: int | None = None
    isActive: bool = True
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @before_event([Insert, Replace, Save])
    def set_timestamps(self):
        self.updatedAt = utc_now()

    class Settings:
        name = "classes"


class Subject(Document):
    """A subject taught within a class, sold on its own or with the class."""

    classId: PyObjectId
    name: str
    price: int | None = None
    isActive: bool = True
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @before_event([Insert, Replace, Save])
    def set_timestamps(self):
        self.updatedAt = utc_now()

    class Settings:
        name = "subjects"
        indexes = [[("classId", 1)]]
