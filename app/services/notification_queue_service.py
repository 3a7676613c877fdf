"""Persistent queue of user notifications and the worker that drains it."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from bson import ObjectId

from app.models.notification_queue import (
    MAX_DELIVERY_ATTEMPTS,
    NotificationQueueEntry,
    NotificationType,
    QueueStatus,
)
from app.models.user import User
from app.services.email_service import EmailService, EmailTemplate
from app.utils.dates import utc_now

logger = logging.getLogger(__name__)

DRAIN_BATCH_SIZE = 50


class NotificationQueueService:
    def __init__(self, email_service: EmailService | None = None):
        self.email_service = email_service or EmailService()

    async def enqueue(
        self,
        user_id: ObjectId,
        notification_type: NotificationType,
        data: dict[str, Any],
        scheduled_for: datetime | None = None,
        session=None,
    ) -> NotificationQueueEntry:
        entry = NotificationQueueEntry(
            userId=user_id,
            type=notification_type,
            data=data,
            status=QueueStatus.PENDING,
            scheduledFor=scheduled_for or utc_now(),
        )
        await entry.insert(session=session)
        logger.info(
            "Notification queued",
            extra={
                "notification_id": str(entry.id),
                "notification_type": notification_type.value,
                "scheduled_for": entry.scheduledFor.isoformat(),
            },
        )
        return entry

    async def due_entries(
        self, now: datetime | None = None, limit: int = DRAIN_BATCH_SIZE
    ) -> list[NotificationQueueEntry]:
        """Pending entries plus failed ones with attempts left, oldest first."""
        now = now or utc_now()
        return (
            await NotificationQueueEntry.find(
                {
                    "scheduledFor": {"$lte": now},
                    "$or": [
                        {"status": QueueStatus.PENDING.value},
                        {
                            "status": QueueStatus.FAILED.value,
                            "retryCount": {"$lt": MAX_DELIVERY_ATTEMPTS},
                        },
                    ],
                }
            )
            .sort("scheduledFor")
            .limit(limit)
            .to_list()
        )

    async def _recipient(self, entry: NotificationQueueEntry) -> tuple[str, str | None]:
        email = entry.data.get("userEmail")
        name = entry.data.get("userName")
        if not email:
            user = await User.get(entry.userId)
            if user:
                email, name = user.email, name or user.display_name
        if not email:
            raise ValueError("No email address for user")
        return email, name

    async def deliver(self, entry: NotificationQueueEntry) -> None:
        email, name = await self._recipient(entry)
        context = {"userName": name or "User", **entry.data}
        await self.email_service.send_template(email, EmailTemplate(entry.type.value), context)

    async def process_due(
        self, now: datetime | None = None, limit: int = DRAIN_BATCH_SIZE
    ) -> dict[str, Any]:
        """
        Deliver every due entry once.

        Each entry moves PENDING/FAILED -> PROCESSING -> SENT, or back to
        FAILED with ``retryCount`` incremented and the error recorded.
        """
        entries = await self.due_entries(now, limit)
        summary: dict[str, Any] = {
            "processedCount": 0,
            "sentCount": 0,
            "failedCount": 0,
            "errors": [],
        }

        for entry in entries:
            summary["processedCount"] += 1
            entry.status = QueueStatus.PROCESSING
            await entry.save()
            try:
                await self.deliver(entry)
            except Exception as e:
                entry.status = QueueStatus.FAILED
                entry.retryCount += 1
                entry.error = str(e)
                await entry.save()
                summary["failedCount"] += 1
                summary["errors"].append(f"Notification {entry.id}: {e}")
                logger.warning(
                    "Notification delivery failed",
                    extra={
                        "notification_id": str(entry.id),
                        "retry_count": entry.retryCount,
                        "error": str(e),
                    },
                )
                continue

            entry.status = QueueStatus.SENT
            entry.processedAt = utc_now()
            entry.error = None
            await entry.save()
            summary["sentCount"] += 1

        if entries:
            logger.info(
                "Notification queue drained",
                extra={k: v for k, v in summary.items() if k != "errors"},
            )
        return summary
