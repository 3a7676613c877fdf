"""Operational alerts to the site administrator.

Alerts are best effort: every failure is logged and swallowed so the flow
that raised the alert is never affected.
"""

import logging
from typing import Any

from app.core.config import settings
from app.services.email_service import EmailService, EmailTemplate

logger = logging.getLogger(__name__)


class AdminNotifier:
    def __init__(self, email_service: EmailService | None = None, admin_email: str | None = None):
        self.email_service = email_service or EmailService()
        self.admin_email = admin_email if admin_email is not None else settings.ADMIN_EMAIL

    async def _send(self, template: EmailTemplate, context: dict[str, Any]) -> bool:
        if not self.admin_email:
            logger.debug("ADMIN_EMAIL not set, skipping admin alert", extra={"template": template.value})
            return False
        try:
            await self.email_service.send_template(self.admin_email, template, context)
            return True
        except Exception:
            logger.error("Failed to send admin alert", extra={"template": template.value}, exc_info=True)
            return False

    async def new_subscription(
        self,
        *,
        subscription_id: str,
        user_email: str | None,
        user_name: str,
        plan_name: str,
        amount: int | None,
    ) -> bool:
        return await self._send(
            EmailTemplate.ADMIN_NEW_SUBSCRIPTION,
            {
                "subscriptionId": subscription_id,
                "userEmail": user_email,
                "userName": user_name,
                "planName": plan_name,
                "amount": amount,
            },
        )

    async def payment_failed(
        self, *, user_email: str | None, amount: int | None, reason: str, reference: str
    ) -> bool:
        return await self._send(
            EmailTemplate.ADMIN_PAYMENT_FAILED,
            {"userEmail": user_email, "amount": amount, "reason": reason, "reference": reference},
        )

    async def system_error(self, *, source: str, message: str) -> bool:
        return await self._send(
            EmailTemplate.ADMIN_SYSTEM_ERROR, {"source": source, "message": message}
        )
