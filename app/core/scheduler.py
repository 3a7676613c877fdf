"""Billing jobs scheduled with APScheduler."""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.services.admin_notifier import AdminNotifier
from app.services.auto_renewal_service import AutoRenewalService
from app.services.notification_queue_service import NotificationQueueService
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


class BillingScheduler:
    """Runs auto-renewal and expiry daily and drains the notification queue."""

    def __init__(self):
        self.scheduler: AsyncIOScheduler | None = None

    def start(self):
        """Start the scheduler."""
        if not settings.SCHEDULER_ENABLED:
            logger.info("Billing scheduler is disabled")
            return

        try:
            self.scheduler = AsyncIOScheduler()

            self.scheduler.add_job(
                func=self.auto_renewal_task,
                trigger=CronTrigger(
                    hour=settings.AUTO_RENEWAL_SCHEDULE_HOUR,
                    minute=settings.AUTO_RENEWAL_SCHEDULE_MINUTE,
                    timezone="UTC",
                ),
                id="auto_renewal_daily",
                name="Renew expiring subscriptions daily",
                replace_existing=True,
                max_instances=1,
            )
            self.scheduler.add_job(
                func=self.expiry_task,
                trigger=CronTrigger(
                    hour=settings.EXPIRY_SCHEDULE_HOUR,
                    minute=settings.EXPIRY_SCHEDULE_MINUTE,
                    timezone="UTC",
                ),
                id="subscription_expiry_daily",
                name="Process expiring subscriptions daily",
                replace_existing=True,
                max_instances=1,
            )
            self.scheduler.add_job(
                func=self.notification_drain_task,
                trigger=IntervalTrigger(minutes=settings.NOTIFICATION_DRAIN_INTERVAL_MINUTES),
                id="notification_queue_drain",
                name="Deliver queued notifications",
                replace_existing=True,
                max_instances=1,
            )

            self.scheduler.start()
            logger.info(
                "Billing scheduler started",
                extra={
                    "auto_renewal_hour": settings.AUTO_RENEWAL_SCHEDULE_HOUR,
                    "expiry_hour": settings.EXPIRY_SCHEDULE_HOUR,
                    "drain_interval_minutes": settings.NOTIFICATION_DRAIN_INTERVAL_MINUTES,
                },
            )

        except Exception as e:
            logger.error(
                "Failed to start billing scheduler",
                extra={"error": str(e)},
                exc_info=True,
            )

    def shutdown(self):
        """Shutdown the scheduler."""
        if self.scheduler:
            try:
                self.scheduler.shutdown()
                logger.info("Billing scheduler shut down")
            except Exception as e:
                logger.error(
                    "Error shutting down billing scheduler",
                    extra={"error": str(e)},
                    exc_info=True,
                )

    async def _report_failure(self, job: str, error: Exception) -> None:
        logger.error(f"Error in {job} task", extra={"error": str(error)}, exc_info=True)
        await AdminNotifier().system_error(source=f"scheduler:{job}", message=str(error))

    async def auto_renewal_task(self):
        try:
            logger.info("Starting auto-renewal task")
            results = await AutoRenewalService().process_auto_renewals()
            logger.info(
                "Auto-renewal task completed",
                extra={
                    "processed": results["processed"],
                    "successful": results["successful"],
                    "failed": results["failed"],
                },
            )
        except Exception as e:
            await self._report_failure("auto_renewal", e)

    async def expiry_task(self):
        try:
            logger.info("Starting subscription expiry task")
            summary = await SubscriptionService().process_expiring()
            logger.info(
                "Subscription expiry task completed",
                extra={
                    "expired_count": summary["expiredCount"],
                    "grace_extended": summary["graceExtended"],
                },
            )
        except Exception as e:
            await self._report_failure("subscription_expiry", e)

    async def notification_drain_task(self):
        try:
            await NotificationQueueService().process_due()
        except Exception as e:
            await self._report_failure("notification_drain", e)


# Global scheduler instance
billing_scheduler = BillingScheduler()
