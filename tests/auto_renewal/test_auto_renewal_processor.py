"""Test cases for the auto-renewal batch processor."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.exceptions import PaymentErrorKind, PaymentGatewayException
from app.models.notification_queue import NotificationQueueEntry, NotificationType
from app.models.payment import Payment, PaymentGatewayName, PaymentStatus
from app.models.subscription import RenewalPeriod, Subscription, SubscriptionStatus
from app.schemas.subscription import SubscriptionUpdateRequest
from app.services.auto_renewal_service import AutoRenewalService, clamp_limit
from app.services.integrations.payment.base import RenewalCharge
from app.services.notification_queue_service import NotificationQueueService
from app.services.subscription_service import SubscriptionService
from app.utils.dates import add_months


@pytest.fixture
def mock_payments():
    payments = MagicMock()
    payments.charge_renewal = AsyncMock(
        return_value=RenewalCharge(
            gateway=PaymentGatewayName.RAZORPAY,
            order_id="order_Renew123",
            payment_id="auto_order_Renew123_1700000000000",
        )
    )
    return payments


@pytest.fixture
def service(mock_payments, mock_email_service, mock_admin_notifier):
    return AutoRenewalService(
        payments=mock_payments,
        notifications=NotificationQueueService(email_service=mock_email_service),
        admin_notifier=mock_admin_notifier,
    )


class TestCandidateSelection:
    """Only active, auto-renewing subscriptions ending within 24 hours are touched."""

    async def test_ineligible_subscriptions_are_untouched(self, beanie_db, factory, service, now):
        user = await factory.user()
        manual = await factory.subscription(user.id, now, autoRenew=False)
        inactive = await factory.subscription(user.id, now, status=SubscriptionStatus.INACTIVE)
        pending = await factory.subscription(
            user.id, now, status=SubscriptionStatus.PENDING_RENEWAL
        )
        far_out = await factory.subscription(user.id, now, endDate=now + timedelta(days=3))
        already_ended = await factory.subscription(user.id, now, endDate=now - timedelta(hours=1))

        results = await service.process_auto_renewals()

        assert results["totalFound"] == 0
        assert results["processed"] == 0
        for original in (manual, inactive, pending, far_out, already_ended):
            stored = await Subscription.get(original.id)
            assert stored.status == original.status
            assert stored.endDate == original.endDate
        assert await Payment.count() == 0
        assert await NotificationQueueEntry.count() == 0

    async def test_due_subscriptions_are_ordered_by_end_date(self, beanie_db, factory, service, now):
        user = await factory.user()
        later = await factory.subscription(user.id, now, endDate=now + timedelta(hours=20))
        sooner = await factory.subscription(user.id, now, endDate=now + timedelta(hours=1))

        due = await service.find_due_subscriptions(limit=10)

        assert [s.id for s in due] == [sooner.id, later.id]


class TestSuccessfulRenewal:
    async def test_success_creates_one_payment_and_extends_one_month(
        self, beanie_db, factory, service, mock_payments, now
    ):
        user = await factory.user()
        subscription = await factory.subscription(user.id, now, amount=7500)
        original_end = subscription.endDate

        results = await service.process_auto_renewals()

        assert results["processed"] == 1
        assert results["successful"] == 1
        assert results["failed"] == 0
        assert results["errors"] == []

        stored = await Subscription.get(subscription.id)
        assert stored.status == SubscriptionStatus.ACTIVE
        assert stored.endDate == add_months(original_end, 1)

        payments = await Payment.find(Payment.subscriptionId == subscription.id).to_list()
        assert len(payments) == 1
        assert payments[0].amount == 7500
        assert payments[0].status == PaymentStatus.COMPLETED
        assert payments[0].paymentMethod == "auto_renewal"
        assert payments[0].razorpayOrderId == "order_Renew123"

        renewed = await NotificationQueueEntry.find(
            NotificationQueueEntry.type == NotificationType.SUBSCRIPTION_RENEWED
        ).to_list()
        assert len(renewed) == 1
        mock_payments.charge_renewal.assert_awaited_once()
        assert mock_payments.charge_renewal.await_args.kwargs["amount"] == 7500

    async def test_renewal_adds_one_calendar_month_clamped_to_month_end(
        self, beanie_db, factory, service, now
    ):
        user = await factory.user()
        subscription = await factory.subscription(
            user.id, now, endDate=datetime(2025, 1, 31, 10, 0)
        )

        await service.renew_subscription(subscription)

        stored = await Subscription.get(subscription.id)
        assert stored.endDate == datetime(2025, 2, 28, 10, 0)

    async def test_quarterly_notice_still_renews_one_month(
        self, beanie_db, factory, service, mock_payments, now
    ):
        user = await factory.user()
        subscription = await factory.subscription(user.id, now, autoRenew=False)
        await service.set_auto_renewal(subscription.id, True, RenewalPeriod.QUARTERLY)

        await service.process_auto_renewals()

        stored = await Subscription.get(subscription.id)
        assert stored.endDate == add_months(subscription.endDate, 1)
        assert mock_payments.charge_renewal.await_args.kwargs["amount"] == 7500

    async def test_zero_amount_falls_back_to_class_price(
        self, beanie_db, factory, service, mock_payments, now
    ):
        user = await factory.user()
        school_class = await factory.school_class(price=12000)
        subscription = await factory.subscription(user.id, now, amount=0, classId=school_class.id)

        results = await service.process_auto_renewals()

        assert results["successful"] == 1
        assert mock_payments.charge_renewal.await_args.kwargs["amount"] == 12000
        payment = await Payment.find_one(Payment.subscriptionId == subscription.id)
        assert payment.amount == 12000

    async def test_description_names_class_then_subject(
        self, beanie_db, factory, service, mock_payments, now
    ):
        user = await factory.user()
        school_class = await factory.school_class()
        subject = await factory.subject(school_class.id)
        with_class = await factory.subscription(
            user.id, now, classId=school_class.id, subjectId=subject.id
        )
        subject_only = await factory.subscription(user.id, now, subjectId=subject.id)
        bare = await factory.subscription(user.id, now)

        for subscription in (with_class, subject_only, bare):
            await service.renew_subscription(subscription)

        descriptions = [
            call.kwargs["description"] for call in mock_payments.charge_renewal.await_args_list
        ]
        assert descriptions == [
            "Auto-renewal: Class 10",
            "Auto-renewal: Physics",
            "Auto-renewal: Subscription",
        ]

    async def test_amount_falls_back_to_class_then_subject_then_default(
        self, beanie_db, factory, service, mock_payments, now
    ):
        user = await factory.user()
        school_class = await factory.school_class(price=12000)
        priced_subject = await factory.subject(school_class.id, price=4900)
        unpriced_class = await factory.school_class(price=None)

        await factory.subscription(user.id, now, amount=None, classId=school_class.id)
        await factory.subscription(
            user.id,
            now,
            amount=None,
            classId=unpriced_class.id,
            subjectId=priced_subject.id,
            endDate=now + timedelta(hours=3),
        )
        await factory.subscription(user.id, now, amount=None, endDate=now + timedelta(hours=4))

        await service.process_auto_renewals()

        charged = [call.kwargs["amount"] for call in mock_payments.charge_renewal.await_args_list]
        assert charged == [12000, 4900, 7500]

    async def test_payment_references_fall_back_when_gateway_returns_none(
        self, beanie_db, factory, service, mock_payments, now
    ):
        mock_payments.charge_renewal.return_value = RenewalCharge(
            gateway=PaymentGatewayName.RAZORPAY, order_id="", payment_id=""
        )
        user = await factory.user()
        subscription = await factory.subscription(user.id, now)

        await service.process_auto_renewals()

        payment = await Payment.find_one(Payment.subscriptionId == subscription.id)
        assert payment.razorpayOrderId.startswith(f"order_{subscription.id}_")
        assert payment.razorpayPaymentId.startswith(f"auto_{subscription.id}_")


class TestFailedRenewal:
    async def test_failure_marks_pending_and_queues_three_notifications(
        self, beanie_db, factory, service, mock_payments, mock_admin_notifier, now
    ):
        mock_payments.charge_renewal.side_effect = PaymentGatewayException(
            kind=PaymentErrorKind.REJECTED,
            message="Payment gateway rejected the request",
            gateway="RAZORPAY",
        )
        user = await factory.user()
        subscription = await factory.subscription(user.id, now)

        results = await service.process_auto_renewals()

        assert results["failed"] == 1
        assert results["successful"] == 0
        assert results["errors"] == [
            f"Subscription {subscription.id}: Payment gateway rejected the request"
        ]

        stored = await Subscription.get(subscription.id)
        assert stored.status == SubscriptionStatus.PENDING_RENEWAL
        assert stored.endDate == subscription.endDate
        assert await Payment.count() == 0

        entries = await NotificationQueueEntry.find_all().sort("scheduledFor").to_list()
        assert [e.type for e in entries] == [
            NotificationType.AUTO_RENEWAL_FAILED,
            NotificationType.RENEWAL_REMINDER,
            NotificationType.RENEWAL_REMINDER,
        ]
        first, second, third = entries
        assert abs((first.scheduledFor - now).total_seconds()) < 60
        assert second.scheduledFor - first.scheduledFor == timedelta(days=1)
        assert third.scheduledFor - first.scheduledFor == timedelta(days=2)
        assert first.data["daysLeft"] == 0
        assert first.data["failureReason"] == "Auto-renewal payment failed"
        assert second.data["retryAttempt"] == 1
        assert third.data["finalWarning"] is True
        mock_admin_notifier.payment_failed.assert_awaited_once()

    async def test_one_failure_does_not_abort_the_batch(
        self, beanie_db, factory, service, mock_payments, now
    ):
        user = await factory.user()
        failing = await factory.subscription(user.id, now, endDate=now + timedelta(hours=1))
        healthy = await factory.subscription(user.id, now, endDate=now + timedelta(hours=5))
        mock_payments.charge_renewal.side_effect = [
            PaymentGatewayException(kind=PaymentErrorKind.TIMEOUT, message="Payment gateway timed out"),
            RenewalCharge(gateway=PaymentGatewayName.RAZORPAY, order_id="order_2", payment_id="pay_2"),
        ]

        results = await service.process_auto_renewals()

        assert results["processed"] == 2
        assert results["successful"] == 1
        assert results["failed"] == 1
        assert (await Subscription.get(failing.id)).status == SubscriptionStatus.PENDING_RENEWAL
        assert (await Subscription.get(healthy.id)).status == SubscriptionStatus.ACTIVE

    async def test_negative_amount_is_rejected_without_charging(
        self, beanie_db, factory, service, mock_payments, now
    ):
        user = await factory.user()
        await factory.subscription(user.id, now, amount=-100)

        results = await service.process_auto_renewals()

        assert results["failed"] == 1
        assert "Invalid subscription amount" in results["errors"][0]
        mock_payments.charge_renewal.assert_not_awaited()

    async def test_notification_errors_are_reported_and_batch_continues(
        self, beanie_db, factory, service, mock_payments, mock_admin_notifier, now
    ):
        mock_payments.charge_renewal.side_effect = PaymentGatewayException(
            kind=PaymentErrorKind.NETWORK, message="Payment gateway unreachable"
        )
        service.notifications.enqueue = AsyncMock(side_effect=RuntimeError("queue down"))
        user = await factory.user()
        subscription = await factory.subscription(user.id, now)

        results = await service.process_auto_renewals()

        assert results["failed"] == 1
        assert f"Notification error for {subscription.id}: queue down" in results["errors"]


class TestDryRunAndLimit:
    async def test_dry_run_counts_like_real_run_but_writes_nothing(
        self, beanie_db, factory, service, mock_payments, now
    ):
        user = await factory.user()
        subscriptions = [
            await factory.subscription(user.id, now, endDate=now + timedelta(hours=h))
            for h in (1, 2, 3)
        ]

        results = await service.process_auto_renewals(dry_run=True)

        assert results["dryRun"] is True
        assert results["processed"] == 3
        assert results["successful"] == 3
        assert await Payment.count() == 0
        assert await NotificationQueueEntry.count() == 0
        for original in subscriptions:
            stored = await Subscription.get(original.id)
            assert stored.endDate == original.endDate
            assert stored.renewalClaimedFor is None
        mock_payments.charge_renewal.assert_not_awaited()

    async def test_limit_caps_the_batch(self, beanie_db, factory, service, now):
        user = await factory.user()
        for hours in range(1, 6):
            await factory.subscription(user.id, now, endDate=now + timedelta(hours=hours))

        results = await service.process_auto_renewals(limit=1)

        assert results["totalFound"] == 1
        assert results["processed"] == 1
        assert await Payment.count() == 1

    @pytest.mark.parametrize(
        "requested,expected",
        [(None, 100), (0, 1), (-5, 1), (50, 50), (1000, 1000), (5000, 1000)],
    )
    def test_clamp_limit(self, requested, expected):
        assert clamp_limit(requested) == expected


class TestDoubleProcessingGuard:
    async def test_second_claim_for_same_period_is_refused(self, beanie_db, factory, service, now):
        user = await factory.user()
        subscription = await factory.subscription(user.id, now)

        assert await service.claim_for_renewal(subscription) is True
        assert await service.claim_for_renewal(subscription) is False

    async def test_overlapping_run_does_not_charge_twice(
        self, beanie_db, factory, service, mock_payments, now
    ):
        user = await factory.user()
        subscription = await factory.subscription(user.id, now)
        # Another run already claimed this period
        await service.claim_for_renewal(subscription)

        results = await service.process_auto_renewals()

        assert results["failed"] == 1
        assert "already being renewed" in results["errors"][0]
        mock_payments.charge_renewal.assert_not_awaited()
        stored = await Subscription.get(subscription.id)
        assert stored.status == SubscriptionStatus.ACTIVE
        assert await NotificationQueueEntry.count() == 0

    async def test_failed_charge_releases_the_claim(
        self, beanie_db, factory, service, mock_payments, now
    ):
        mock_payments.charge_renewal.side_effect = PaymentGatewayException(
            kind=PaymentErrorKind.TIMEOUT, message="Payment gateway timed out"
        )
        user = await factory.user()
        subscription = await factory.subscription(user.id, now)

        await service.process_auto_renewals()

        stored = await Subscription.get(subscription.id)
        assert stored.status == SubscriptionStatus.PENDING_RENEWAL
        assert stored.renewalClaimedFor is None

    async def test_reactivated_subscription_renews_after_failed_charge(
        self, beanie_db, factory, service, mock_payments, now
    ):
        mock_payments.charge_renewal.side_effect = [
            PaymentGatewayException(kind=PaymentErrorKind.TIMEOUT, message="Payment gateway timed out"),
            RenewalCharge(gateway=PaymentGatewayName.RAZORPAY, order_id="order_2", payment_id="pay_2"),
        ]
        user = await factory.user()
        subscription = await factory.subscription(user.id, now)

        first = await service.process_auto_renewals()
        await SubscriptionService().update_subscription(
            subscription.id, SubscriptionUpdateRequest(status=SubscriptionStatus.ACTIVE)
        )
        second = await service.process_auto_renewals()

        assert first["failed"] == 1
        assert second["successful"] == 1
        assert second["errors"] == []
        assert mock_payments.charge_renewal.await_count == 2
        stored = await Subscription.get(subscription.id)
        assert stored.status == SubscriptionStatus.ACTIVE
        assert stored.endDate == add_months(subscription.endDate, 1)

    async def test_admin_status_change_clears_a_stale_claim(self, beanie_db, factory, service, now):
        user = await factory.user()
        subscription = await factory.subscription(user.id, now)
        await service.claim_for_renewal(subscription)

        await SubscriptionService().update_subscription(
            subscription.id, SubscriptionUpdateRequest(status=SubscriptionStatus.ACTIVE)
        )

        assert (await Subscription.get(subscription.id)).renewalClaimedFor is None
        assert await service.claim_for_renewal(subscription) is True


class TestExampleScenario:
    async def test_two_hours_left_renews_for_7500(self, beanie_db, factory, service, now):
        user = await factory.user()
        end_date = now + timedelta(hours=2)
        subscription = await factory.subscription(user.id, now, endDate=end_date, amount=7500)

        await service.process_auto_renewals()

        stored = await Subscription.get(subscription.id)
        assert stored.endDate == add_months(end_date, 1)
        payment = await Payment.find_one(Payment.subscriptionId == subscription.id)
        assert payment.amount == 7500
        assert payment.status == PaymentStatus.COMPLETED
