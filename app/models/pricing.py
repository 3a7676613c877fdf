from __future__ import annotations

from datetime import datetime

from beanie import Document, Insert, Replace, Save, before_event
from pydantic import Field
from pymongo import ASCENDING, IndexModel

from app.utils.dates import utc_now
from app.utils.validators import PyObjectId


class PricingPlan(Document):
    """Purchasable duration option for a class. Amounts are in paise."""

    classId: PyObjectId
    name: str
    description: str | None = None
    durationMonths: int
    price: int
    originalPrice: int | None = None
    discount: int | None = None
    isActive: bool = True
    isPopular: bool = False
    features: list[str] = Field(default_factory=list)
    sortOrder: int = 0
    workbookPrice: int | None = None
    workbookNote: str | None = None
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @before_event([Insert, Replace, Save])
    def set_timestamps(self):
        self.updatedAt = utc_now()

    class Settings:
        name = "pricing_plans"
        indexes = [
            IndexModel(
                [("classId", ASCENDING), ("durationMonths", ASCENDING)],
                unique=True,
                name="class_duration_unique",
            ),
            [("classId", 1), ("sortOrder", 1)],
        ]
