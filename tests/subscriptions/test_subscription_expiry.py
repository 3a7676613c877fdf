"""Test cases for expiry warnings, grace periods and expiry."""

from datetime import timedelta

import pytest
from bson import ObjectId

from app.models.notification_queue import NotificationQueueEntry, NotificationType
from app.models.subscription import Subscription, SubscriptionStatus
from app.services.notification_queue_service import NotificationQueueService
from app.services.subscription_service import GRACE_PERIOD, SubscriptionService


@pytest.fixture
def service(mock_email_service):
    return SubscriptionService(
        notifications=NotificationQueueService(email_service=mock_email_service)
    )


async def queued_types() -> list[NotificationType]:
    return [entry.type for entry in await NotificationQueueEntry.find_all().to_list()]


class TestProcessExpiring:
    async def test_recently_lapsed_subscription_enters_grace_period(
        self, beanie_db, factory, service, now
    ):
        user = await factory.user()
        ended = now - timedelta(days=2)
        subscription = await factory.subscription(user.id, now, endDate=ended, autoRenew=False)

        summary = await service.process_expiring(now)

        stored = await Subscription.get(subscription.id)
        assert stored.status == SubscriptionStatus.GRACE_PERIOD
        assert stored.endDate == ended + GRACE_PERIOD
        assert summary["graceExtended"] == 1
        assert summary["expiredCount"] == 0
        assert summary["notificationsScheduled"] == 1
        assert await queued_types() == [NotificationType.GRACE_PERIOD]

    async def test_long_lapsed_subscription_expires(self, beanie_db, factory, service, now):
        user = await factory.user()
        subscription = await factory.subscription(
            user.id, now, endDate=now - timedelta(days=10), autoRenew=False
        )

        summary = await service.process_expiring(now)

        assert (await Subscription.get(subscription.id)).status == SubscriptionStatus.EXPIRED
        assert summary["expiredCount"] == 1
        assert await queued_types() == [NotificationType.SUBSCRIPTION_EXPIRED]

    async def test_grace_period_that_ran_out_expires(self, beanie_db, factory, service, now):
        user = await factory.user()
        subscription = await factory.subscription(
            user.id,
            now,
            status=SubscriptionStatus.GRACE_PERIOD,
            endDate=now - timedelta(hours=1),
            autoRenew=False,
        )

        summary = await service.process_expiring(now)

        assert (await Subscription.get(subscription.id)).status == SubscriptionStatus.EXPIRED
        assert summary["expiredCount"] == 1
        assert summary["graceExtended"] == 0

    async def test_grace_extension_is_not_expired_in_same_run(
        self, beanie_db, factory, service, now
    ):
        user = await factory.user()
        subscription = await factory.subscription(
            user.id, now, endDate=now - timedelta(hours=3), autoRenew=False
        )

        summary = await service.process_expiring(now)

        assert (await Subscription.get(subscription.id)).status == SubscriptionStatus.GRACE_PERIOD
        assert summary["processedCount"] == 1

    @pytest.mark.parametrize("days_left", [7, 3, 1])
    async def test_warning_on_warning_days(self, beanie_db, factory, service, now, days_left):
        user = await factory.user()
        await factory.subscription(
            user.id, now, endDate=now + timedelta(days=days_left), autoRenew=False
        )

        summary = await service.process_expiring(now)

        entries = await NotificationQueueEntry.find_all().to_list()
        assert [e.type for e in entries] == [NotificationType.EXPIRY_WARNING]
        assert entries[0].data["daysLeft"] == days_left
        assert summary["notificationsScheduled"] == 1

    @pytest.mark.parametrize("days_left", [2, 5, 6])
    async def test_no_warning_between_warning_days(self, beanie_db, factory, service, now, days_left):
        user = await factory.user()
        subscription = await factory.subscription(
            user.id, now, endDate=now + timedelta(days=days_left), autoRenew=False
        )

        summary = await service.process_expiring(now)

        assert summary["notificationsScheduled"] == 0
        assert (await Subscription.get(subscription.id)).status == SubscriptionStatus.ACTIVE

    async def test_far_future_subscriptions_are_ignored(self, beanie_db, factory, service, now):
        user = await factory.user()
        await factory.subscription(user.id, now, endDate=now + timedelta(days=30))

        summary = await service.process_expiring(now)

        assert summary["processedCount"] == 0

    async def test_missing_user_is_processed_without_notification(
        self, beanie_db, factory, service, now
    ):
        subscription = await factory.subscription(
            ObjectId(), now, endDate=now - timedelta(days=20), autoRenew=False
        )

        summary = await service.process_expiring(now)

        assert (await Subscription.get(subscription.id)).status == SubscriptionStatus.EXPIRED
        assert summary["expiredCount"] == 1
        assert summary["notificationsScheduled"] == 0
        assert await NotificationQueueEntry.count() == 0

    async def test_queue_failure_is_reported_and_run_continues(
        self, beanie_db, factory, service, now
    ):
        user = await factory.user()
        await factory.subscription(user.id, now, endDate=now - timedelta(days=1), autoRenew=False)
        await factory.subscription(user.id, now, endDate=now - timedelta(days=12), autoRenew=False)
        original_enqueue = service.notifications.enqueue
        calls = []

        async def flaky_enqueue(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise RuntimeError("queue unavailable")
            return await original_enqueue(*args, **kwargs)

        service.notifications.enqueue = flaky_enqueue

        summary = await service.process_expiring(now)

        assert summary["processedCount"] == 2
        assert len(summary["errors"]) == 1
        assert "queue unavailable" in summary["errors"][0]
        assert len(calls) == 2
