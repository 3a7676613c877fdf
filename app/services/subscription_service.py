from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from bson import ObjectId

from app.core.exceptions import BadRequestException, NotFoundException
from app.models.activity import ActivityType
from app.models.catalog import SchoolClass, Subject
from app.models.notification_queue import NotificationType
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.user import User
from app.schemas.subscription import SubscriptionCreateRequest, SubscriptionUpdateRequest
from app.services.activity_service import log_activity
from app.services.notification_queue_service import NotificationQueueService
from app.utils.dates import add_months, days_until, utc_now
from app.utils.validators import parse_object_id

logger = logging.getLogger(__name__)

GRACE_PERIOD = timedelta(days=7)
WARNING_HORIZON = timedelta(days=7)
WARNING_DAYS = (7, 3, 1)
DEFAULT_GRANT_MONTHS = 12


class SubscriptionService:
    """Service for subscription management."""

    def __init__(self, notifications: NotificationQueueService | None = None):
        self.notifications = notifications or NotificationQueueService()

    async def get_subscription(self, subscription_id: ObjectId) -> Subscription:
        subscription = await Subscription.get(subscription_id)
        if not subscription:
            raise NotFoundException(resource="Subscription", resource_id=str(subscription_id))
        return subscription

    async def list_subscriptions(
        self,
        *,
        page: int = 1,
        size: int = 20,
        status: SubscriptionStatus | None = None,
        user_id: ObjectId | None = None,
    ) -> tuple[list[Subscription], int]:
        query: dict[str, Any] = {}
        if status:
            query["status"] = status.value
        if user_id:
            query["userId"] = user_id

        skip = max(0, (page - 1) * size)
        cursor = Subscription.find(query).sort("-createdAt")
        total = await cursor.count()
        items = await cursor.skip(skip).limit(size).to_list()
        return items, total

    async def create_subscription(self, request: SubscriptionCreateRequest) -> Subscription:
        """Grant a subscription by hand; without an end date it runs for a year."""
        user_id = parse_object_id(request.userId, "userId")
        if not await User.get(user_id):
            raise NotFoundException(resource="User", resource_id=request.userId)

        class_id = parse_object_id(request.classId, "classId") if request.classId else None
        subject_id = parse_object_id(request.subjectId, "subjectId") if request.subjectId else None
        if not class_id and not subject_id:
            raise BadRequestException("Either classId or subjectId is required")

        start = request.startDate or utc_now()
        end = request.endDate or add_months(start, DEFAULT_GRANT_MONTHS)
        if end <= start:
            raise BadRequestException("endDate must be after startDate")

        subscription = Subscription(
            userId=user_id,
            classId=class_id,
            subjectId=subject_id,
            planType=request.planType,
            amount=request.amount,
            currency="INR",
            status=request.status,
            startDate=start,
            endDate=end,
            autoRenew=request.autoRenew,
        )
        await subscription.insert()

        logger.info(
            "Subscription created",
            extra={"subscription_id": str(subscription.id), "user_id": str(user_id)},
        )
        await log_activity(
            user_id,
            ActivityType.SUBSCRIPTION_CREATED,
            "Subscription granted by admin",
            metadata={"subscriptionId": str(subscription.id)},
        )
        return subscription

    async def update_subscription(
        self, subscription_id: ObjectId, request: SubscriptionUpdateRequest
    ) -> Subscription:
        if request.status is None and request.autoRenew is None:
            raise BadRequestException("No valid updates provided")

        subscription = await self.get_subscription(subscription_id)
        if request.status is not None:
            subscription.status = request.status
            # a status change by an admin starts a fresh renewal cycle
            subscription.renewalClaimedFor = None
        if request.autoRenew is not None:
            subscription.autoRenew = request.autoRenew
        await subscription.save()

        await log_activity(
            subscription.userId,
            ActivityType.SUBSCRIPTION_UPDATED,
            "Subscription updated by admin",
            metadata={
                "subscriptionId": str(subscription.id),
                "status": subscription.status.value,
                "autoRenew": subscription.autoRenew,
            },
        )
        return subscription

    async def delete_subscription(self, subscription_id: ObjectId) -> None:
        subscription = await self.get_subscription(subscription_id)
        await subscription.delete()
        logger.info("Subscription deleted", extra={"subscription_id": str(subscription_id)})

    async def _notify(
        self,
        subscription: Subscription,
        notification_type: NotificationType,
        extra: dict[str, Any],
    ) -> bool:
        """Queue a lifecycle email; users without an address are skipped."""
        user = await User.get(subscription.userId)
        if not user or not user.email:
            return False

        school_class = await SchoolClass.get(subscription.classId) if subscription.classId else None
        subject = await Subject.get(subscription.subjectId) if subscription.subjectId else None
        await self.notifications.enqueue(
            subscription.userId,
            notification_type,
            {
                "subscriptionId": str(subscription.id),
                "userEmail": user.email,
                "userName": user.display_name,
                "className": school_class.name if school_class else "Unknown Class",
                "subjectName": subject.name if subject else "Unknown Subject",
                **extra,
            },
        )
        return True

    async def _expire(self, subscription: Subscription, now: datetime) -> bool:
        await subscription.set(
            {Subscription.status: SubscriptionStatus.EXPIRED, Subscription.updatedAt: now}
        )
        return await self._notify(
            subscription,
            NotificationType.SUBSCRIPTION_EXPIRED,
            {"endDate": subscription.endDate.isoformat() if subscription.endDate else None},
        )

    async def process_expiring(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Move subscriptions through warning, grace period and expiry.

        Active subscriptions ending within a week get warnings on days 7, 3
        and 1. Once lapsed they get a 7 day grace period, and are expired when
        they lapsed longer ago or the grace period ran out.
        """
        now = now or utc_now()
        summary: dict[str, Any] = {
            "processedCount": 0,
            "expiredCount": 0,
            "graceExtended": 0,
            "notificationsScheduled": 0,
            "errors": [],
        }

        expiring = await Subscription.find(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.endDate != None,  # noqa: E711
            Subscription.endDate <= now + WARNING_HORIZON,
        ).to_list()

        for subscription in expiring:
            summary["processedCount"] += 1
            try:
                if subscription.endDate <= now:
                    if now - subscription.endDate <= GRACE_PERIOD:
                        grace_end = subscription.endDate + GRACE_PERIOD
                        await subscription.set(
                            {
                                Subscription.status: SubscriptionStatus.GRACE_PERIOD,
                                Subscription.endDate: grace_end,
                                Subscription.updatedAt: now,
                            }
                        )
                        summary["graceExtended"] += 1
                        if await self._notify(
                            subscription,
                            NotificationType.GRACE_PERIOD,
                            {"graceEndDate": grace_end.isoformat(), "daysLeft": days_until(grace_end, now)},
                        ):
                            summary["notificationsScheduled"] += 1
                    else:
                        notified = await self._expire(subscription, now)
                        summary["expiredCount"] += 1
                        if notified:
                            summary["notificationsScheduled"] += 1
                else:
                    days_left = days_until(subscription.endDate, now)
                    if days_left in WARNING_DAYS and await self._notify(
                        subscription,
                        NotificationType.EXPIRY_WARNING,
                        {"daysLeft": days_left, "endDate": subscription.endDate.isoformat()},
                    ):
                        summary["notificationsScheduled"] += 1
            except Exception as e:
                summary["errors"].append(f"Subscription {subscription.id}: {e}")
                logger.error(
                    "Failed to process expiring subscription",
                    extra={"subscription_id": str(subscription.id)},
                    exc_info=True,
                )

        lapsed_grace = await Subscription.find(
            Subscription.status == SubscriptionStatus.GRACE_PERIOD,
            Subscription.endDate < now,
        ).to_list()
        for subscription in lapsed_grace:
            summary["processedCount"] += 1
            try:
                notified = await self._expire(subscription, now)
                summary["expiredCount"] += 1
                if notified:
                    summary["notificationsScheduled"] += 1
            except Exception as e:
                summary["errors"].append(f"Subscription {subscription.id}: {e}")
                logger.error(
                    "Failed to expire grace period subscription",
                    extra={"subscription_id": str(subscription.id)},
                    exc_info=True,
                )

        logger.info(
            "Expiry run finished",
            extra={k: v for k, v in summary.items() if k != "errors"},
        )
        return summary
