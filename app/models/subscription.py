from __future__ import annotations

from datetime import datetime
from enum import Enum

from beanie import Document, Insert, Replace, Save, before_event
from pydantic import Field

from app.utils.dates import utc_now
from app.utils.validators import PyObjectId


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle states."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    PENDING_RENEWAL = "PENDING_RENEWAL"
    GRACE_PERIOD = "GRACE_PERIOD"
    EXPIRED = "EXPIRED"


class RenewalPeriod(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class Subscription(Document):
    """A user's paid access to a class or subject. Amounts are in paise."""

    userId: PyObjectId
    classId: PyObjectId | None = None
    subjectId: PyObjectId | None = None
    planType: str | None = None
    amount: int | None = None
    currency: str = "INR"
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    startDate: datetime = Field(default_factory=utc_now)
    endDate: datetime | None = None
    autoRenew: bool = False
    # End date a renewal run has already claimed, guards against overlapping runs
    renewalClaimedFor: datetime | None = None
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @before_event([Insert, Replace, Save])
    def set_timestamps(self):
        self.updatedAt = utc_now()

    class Settings:
        name = "subscriptions"
        indexes = [
            [("userId", 1)],
            [("autoRenew", 1), ("status", 1), ("endDate", 1)],
        ]
