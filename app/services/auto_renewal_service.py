"""Automatic renewal of subscriptions that are about to lapse."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Any

from bson import ObjectId

from app.core.config import settings
from app.core.database import transaction, with_timeout
from app.core.exceptions import BadRequestException, NotFoundException
from app.models.activity import ActivityType
from app.models.catalog import SchoolClass, Subject
from app.models.notification_queue import NotificationType
from app.models.payment import Payment, PaymentStatus
from app.models.subscription import RenewalPeriod, Subscription, SubscriptionStatus
from app.models.user import User
from app.services.activity_service import log_activity
from app.services.admin_notifier import AdminNotifier
from app.services.notification_queue_service import NotificationQueueService
from app.services.payment_service import PaymentService
from app.utils.dates import add_months, days_until, epoch_millis, utc_now

logger = logging.getLogger(__name__)

DEFAULT_BATCH_LIMIT = 100
MAX_BATCH_LIMIT = 1000
RENEWAL_WINDOW = timedelta(hours=24)
RENEWAL_MONTHS = 1
ATTEMPT_NOTICE_DAYS = 7

CONFIGURABLE_STATUSES = (
    SubscriptionStatus.ACTIVE,
    SubscriptionStatus.INACTIVE,
    SubscriptionStatus.PENDING_RENEWAL,
)

FAILURE_REASON = "Auto-renewal payment failed"
RETRY_INFO = "We will retry in 24 hours. Please ensure your payment method is valid."


class RenewalClaimError(Exception):
    """Another run already owns the renewal of this subscription period."""


def clamp_limit(limit: int | None) -> int:
    if limit is None:
        return DEFAULT_BATCH_LIMIT
    return max(1, min(limit, MAX_BATCH_LIMIT))


class AutoRenewalService:
    def __init__(
        self,
        payments: PaymentService | None = None,
        notifications: NotificationQueueService | None = None,
        admin_notifier: AdminNotifier | None = None,
    ):
        self.notifications = notifications or NotificationQueueService()
        self.admin_notifier = admin_notifier or AdminNotifier()
        self.payments = payments or PaymentService(
            notifications=self.notifications, admin_notifier=self.admin_notifier
        )

    async def _describe(self, subscription: Subscription) -> dict[str, Any]:
        """Names of the class, subject and owner used in notification payloads."""
        school_class = await SchoolClass.get(subscription.classId) if subscription.classId else None
        subject = await Subject.get(subscription.subjectId) if subscription.subjectId else None
        user = await User.get(subscription.userId)
        return {
            "class": school_class,
            "subject": subject,
            "user": user,
            "className": school_class.name if school_class else "Unknown Class",
            "subjectName": subject.name if subject else "Unknown Subject",
            "userEmail": user.email if user else None,
            "userName": user.display_name if user else "User",
        }

    async def set_auto_renewal(
        self,
        subscription_id: ObjectId,
        auto_renew: bool,
        renewal_period: RenewalPeriod = RenewalPeriod.MONTHLY,
    ) -> Subscription:
        """
        Turn automatic renewal on or off for one subscription.

        Enabling it on an active subscription that ends within a week queues
        an ``auto_renewal_attempt`` notice that is due immediately.

        Raises:
            RequestTimeoutException: If the lookup exceeds the query timeout
            NotFoundException: If the subscription does not exist
            BadRequestException: If the subscription cannot be renewed
        """
        subscription = await with_timeout(
            Subscription.get(subscription_id), operation="subscription lookup"
        )
        if not subscription:
            raise NotFoundException(resource="Subscription", resource_id=str(subscription_id))
        if subscription.status not in CONFIGURABLE_STATUSES:
            raise BadRequestException(
                "Invalid subscription status for auto-renewal",
                details={"status": subscription.status.value},
            )

        subscription.autoRenew = auto_renew
        await subscription.save()

        logger.info(
            "Auto-renewal updated",
            extra={
                "subscription_id": str(subscription.id),
                "auto_renew": auto_renew,
                "renewal_period": renewal_period.value,
            },
        )

        if (
            auto_renew
            and subscription.status == SubscriptionStatus.ACTIVE
            and subscription.endDate is not None
        ):
            now = utc_now()
            days_left = days_until(subscription.endDate, now)
            if days_left <= ATTEMPT_NOTICE_DAYS:
                names = await self._describe(subscription)
                await self.notifications.enqueue(
                    subscription.userId,
                    NotificationType.AUTO_RENEWAL_ATTEMPT,
                    {
                        "subscriptionId": str(subscription.id),
                        "renewalPeriod": renewal_period.value,
                        "className": names["className"],
                        "subjectName": names["subjectName"],
                        "userEmail": names["userEmail"],
                        "userName": names["userName"],
                        "amount": subscription.amount,
                        "daysLeft": days_left,
                        "endDate": subscription.endDate.isoformat(),
                    },
                    scheduled_for=now - timedelta(days=1),
                )

        return subscription

    async def find_due_subscriptions(
        self, now: datetime | None = None, limit: int = DEFAULT_BATCH_LIMIT
    ) -> list[Subscription]:
        now = now or utc_now()
        return (
            await Subscription.find(
                Subscription.autoRenew == True,  # noqa: E712
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.endDate >= now,
                Subscription.endDate <= now + RENEWAL_WINDOW,
            )
            .sort("endDate")
            .limit(limit)
            .to_list()
        )

    async def claim_for_renewal(self, subscription: Subscription) -> bool:
        """
        Atomically mark the current period as being renewed.

        Only one caller can move ``renewalClaimedFor`` to the current end
        date, so overlapping runs never charge the same period twice.
        """
        result = await Subscription.get_motor_collection().update_one(
            {
                "_id": subscription.id,
                "renewalClaimedFor": {"$ne": subscription.endDate},
            },
            {"$set": {"renewalClaimedFor": subscription.endDate}},
        )
        return result.modified_count == 1

    @staticmethod
    def renewal_amount(subscription: Subscription, names: dict[str, Any]) -> int:
        for candidate in (
            subscription.amount,
            names["class"].price if names["class"] else None,
            names["subject"].price if names["subject"] else None,
        ):
            if candidate:
                return candidate
        return settings.DEFAULT_RENEWAL_AMOUNT

    async def renew_subscription(self, subscription: Subscription) -> Payment:
        """
        Charge and extend one subscription.

        The charge happens before any write; the subscription, payment and
        notification are then written together in one transaction.
        """
        if subscription.endDate is None:
            raise ValueError("Subscription end date is not defined")
        if not await self.claim_for_renewal(subscription):
            raise RenewalClaimError("Subscription is already being renewed")

        names = await self._describe(subscription)
        amount = self.renewal_amount(subscription, names)
        if amount <= 0:
            raise ValueError("Invalid subscription amount")

        item = names["class"] or names["subject"]
        description = f"Auto-renewal: {item.name if item else 'Subscription'}"
        charge = await self.payments.charge_renewal(
            user_id=subscription.userId,
            amount=amount,
            currency=subscription.currency,
            description=description,
        )

        new_end_date = add_months(subscription.endDate, RENEWAL_MONTHS)
        timestamp = epoch_millis()
        now = utc_now()

        async with transaction() as session:
            await subscription.set(
                {
                    Subscription.endDate: new_end_date,
                    Subscription.status: SubscriptionStatus.ACTIVE,
                    Subscription.updatedAt: now,
                },
                session=session,
            )
            payment = Payment(
                userId=subscription.userId,
                subscriptionId=subscription.id,
                classId=subscription.classId,
                subjectId=subscription.subjectId,
                amount=amount,
                currency=subscription.currency,
                status=PaymentStatus.COMPLETED,
                paymentMethod="auto_renewal",
                description=description,
            )
            payment.set_gateway_references(
                charge.gateway,
                charge.order_id or f"order_{subscription.id}_{timestamp}",
                charge.payment_id or f"auto_{subscription.id}_{timestamp}",
            )
            await payment.insert(session=session)
            await self.notifications.enqueue(
                subscription.userId,
                NotificationType.SUBSCRIPTION_RENEWED,
                {
                    "subscriptionId": str(subscription.id),
                    "className": names["className"],
                    "subjectName": names["subjectName"],
                    "userEmail": names["userEmail"],
                    "userName": names["userName"],
                    "amount": amount,
                    "paymentId": payment.gateway_payment_id,
                    "newEndDate": new_end_date.isoformat(),
                },
                session=session,
            )

        await log_activity(
            subscription.userId,
            ActivityType.SUBSCRIPTION_RENEWED,
            description,
            metadata={"subscriptionId": str(subscription.id), "paymentId": str(payment.id)},
        )
        return payment

    async def _record_renewal_failure(self, subscription: Subscription, reason: str) -> None:
        now = utc_now()
        await subscription.set(
            {
                Subscription.status: SubscriptionStatus.PENDING_RENEWAL,
                Subscription.renewalClaimedFor: None,
                Subscription.updatedAt: now,
            }
        )

        names = await self._describe(subscription)
        base = {
            "subscriptionId": str(subscription.id),
            "className": names["className"],
            "subjectName": names["subjectName"],
            "userEmail": names["userEmail"],
            "userName": names["userName"],
            "amount": subscription.amount,
            "endDate": subscription.endDate.isoformat() if subscription.endDate else None,
        }
        await self.notifications.enqueue(
            subscription.userId,
            NotificationType.AUTO_RENEWAL_FAILED,
            {**base, "daysLeft": 0, "failureReason": FAILURE_REASON, "retryInfo": RETRY_INFO},
            scheduled_for=now,
        )
        await self.notifications.enqueue(
            subscription.userId,
            NotificationType.RENEWAL_REMINDER,
            {**base, "daysLeft": -1, "retryAttempt": 1},
            scheduled_for=now + timedelta(days=1),
        )
        await self.notifications.enqueue(
            subscription.userId,
            NotificationType.RENEWAL_REMINDER,
            {**base, "daysLeft": -2, "retryAttempt": 2, "finalWarning": True},
            scheduled_for=now + timedelta(days=2),
        )

        await self.admin_notifier.payment_failed(
            user_email=names["userEmail"],
            amount=subscription.amount,
            reason=reason,
            reference=str(subscription.id),
        )

    async def process_auto_renewals(
        self, dry_run: bool = False, limit: int | None = DEFAULT_BATCH_LIMIT
    ) -> dict[str, Any]:
        """
        Renew every subscription that lapses within the next 24 hours.

        Subscriptions are handled one at a time; a failure is recorded
        against that subscription and the batch moves on.
        """
        started = time.perf_counter()
        limit = clamp_limit(limit)
        due = await self.find_due_subscriptions(limit=limit)
        results: dict[str, Any] = {
            "processed": 0,
            "successful": 0,
            "failed": 0,
            "errors": [],
            "dryRun": dry_run,
            "totalFound": len(due),
        }

        logger.info(
            "Auto-renewal run started",
            extra={"due_count": len(due), "dry_run": dry_run, "limit": limit},
        )

        for subscription in due:
            results["processed"] += 1
            if dry_run:
                results["successful"] += 1
                continue

            try:
                await self.renew_subscription(subscription)
                results["successful"] += 1
            except RenewalClaimError as e:
                results["failed"] += 1
                results["errors"].append(f"Subscription {subscription.id}: {e}")
                logger.warning(
                    "Auto-renewal skipped, period already claimed",
                    extra={"subscription_id": str(subscription.id)},
                )
            except Exception as e:
                results["failed"] += 1
                results["errors"].append(f"Subscription {subscription.id}: {e}")
                logger.error(
                    "Auto-renewal failed",
                    extra={"subscription_id": str(subscription.id), "error": str(e)},
                    exc_info=True,
                )
                try:
                    await self._record_renewal_failure(subscription, str(e))
                except Exception as notify_error:
                    results["errors"].append(
                        f"Notification error for {subscription.id}: {notify_error}"
                    )
                    logger.error(
                        "Failed to record auto-renewal failure",
                        extra={"subscription_id": str(subscription.id)},
                        exc_info=True,
                    )

        results["processingTimeMs"] = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Auto-renewal run finished",
            extra={k: v for k, v in results.items() if k != "errors"},
        )
        return results
