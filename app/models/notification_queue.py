from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from beanie import Document, Insert, Replace, Save, before_event
from pydantic import Field

from app.utils.dates import utc_now
from app.utils.validators import PyObjectId


class NotificationType(str, Enum):
    """Kinds of user-facing notifications produced by billing jobs."""

    AUTO_RENEWAL_ATTEMPT = "auto_renewal_attempt"
    SUBSCRIPTION_RENEWED = "subscription_renewed"
    AUTO_RENEWAL_FAILED = "auto_renewal_failed"
    RENEWAL_REMINDER = "renewal_reminder"
    EXPIRY_WARNING = "expiry_warning"
    GRACE_PERIOD = "grace_period"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    PAYMENT_SUCCESS = "payment_success"


class QueueStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SENT = "SENT"
    FAILED = "FAILED"


MAX_DELIVERY_ATTEMPTS = 3


class NotificationQueueEntry(Document):
    """A notification waiting to be delivered by email."""

    userId: PyObjectId
    type: NotificationType
    data: dict[str, Any] = Field(default_factory=dict)
    status: QueueStatus = QueueStatus.PENDING
    scheduledFor: datetime = Field(default_factory=utc_now)
    retryCount: int = 0
    processedAt: datetime | None = None
    error: str | None = None
    createdAt: datetime = Field(default_factory=utc_now)
    updatedAt: datetime = Field(default_factory=utc_now)

    @before_event([Insert, Replace, Save])
    def set_timestamps(self):
        self.updatedAt = utc_now()

    class Settings:
        name = "notification_queue"
        indexes = [[("status", 1), ("scheduledFor", 1)]]
