from __future__ import annotations

import json
import logging
from typing import Any

from bson import ObjectId

from app.core.database import transaction
from app.core.exceptions import (
    BadRequestException,
    NotFoundException,
    PaymentErrorKind,
    PaymentGatewayException,
)
from app.models.activity import ActivityType
from app.models.catalog import SchoolClass
from app.models.notification_queue import NotificationType
from app.models.payment import Payment, PaymentGatewayName, PaymentStatus
from app.models.pricing import PricingPlan
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.user import User
from app.services.activity_service import log_activity
from app.services.admin_notifier import AdminNotifier
from app.services.integrations.payment.base import (
    CheckoutRequest,
    CustomerInfo,
    PaymentVerification,
    RenewalCharge,
)
from app.services.integrations.payment.razorpay import RazorpayGateway
from app.services.integrations.payment.registry import GatewayRegistry
from app.services.notification_queue_service import NotificationQueueService
from app.utils.dates import add_months, utc_now

logger = logging.getLogger(__name__)

RAZORPAY_CAPTURE_EVENTS = ("payment.captured", "order.paid")
RAZORPAY_FAILURE_EVENT = "payment.failed"


class PaymentService:
    """Checkout, verification and webhook handling for one-off purchases."""

    def __init__(
        self,
        gateways: GatewayRegistry | None = None,
        notifications: NotificationQueueService | None = None,
        admin_notifier: AdminNotifier | None = None,
    ):
        self._gateways = gateways
        self.notifications = notifications or NotificationQueueService()
        self.admin_notifier = admin_notifier or AdminNotifier()

    async def _registry(self) -> GatewayRegistry:
        # Built lazily so admin setting changes apply to the next request
        if self._gateways is None:
            self._gateways = await GatewayRegistry.from_settings()
        return self._gateways

    async def available_gateways(self) -> dict[str, Any]:
        registry = await self._registry()
        return {
            "gateways": [name.value for name in registry.available()],
            "defaultGateway": registry.config.default_gateway.value,
        }

    async def create_order(self, user: User, pricing_plan_id: ObjectId) -> dict[str, Any]:
        """
        Open a checkout with the default gateway for a pricing plan.

        A PENDING payment is written before the gateway is called so every
        attempt leaves an audit record, including the ones the gateway rejects.
        """
        plan = await PricingPlan.get(pricing_plan_id)
        if not plan:
            raise NotFoundException(resource="Pricing plan", resource_id=str(pricing_plan_id))
        if not plan.isActive:
            raise BadRequestException("Pricing plan is not active")

        registry = await self._registry()
        gateway = registry.default()

        payment = Payment(
            userId=user.id,
            classId=plan.classId,
            pricingPlanId=plan.id,
            amount=plan.price,
            currency="INR",
            status=PaymentStatus.PENDING,
            gateway=gateway.name,
            description=f"Subscription: {plan.name}",
        )
        await payment.insert()

        try:
            session = await gateway.create_checkout(
                CheckoutRequest(
                    reference=str(payment.id),
                    amount=plan.price,
                    currency=payment.currency,
                    customer=CustomerInfo(
                        customer_id=str(user.id),
                        email=user.email,
                        name=user.display_name,
                        phone=user.phone,
                    ),
                    description=payment.description,
                    notes={"userId": str(user.id), "pricingPlanId": str(plan.id)},
                )
            )
        except PaymentGatewayException as e:
            payment.status = PaymentStatus.FAILED
            payment.failureReason = e.message
            await payment.save()
            logger.warning(
                "Checkout creation failed",
                extra={"payment_id": str(payment.id), "kind": e.kind.value, "gateway": e.gateway},
            )
            await self.admin_notifier.payment_failed(
                user_email=user.email,
                amount=payment.amount,
                reason=e.message,
                reference=str(payment.id),
            )
            raise

        payment.set_gateway_references(gateway.name, session.order_id, None)
        await payment.save()

        logger.info(
            "Checkout created",
            extra={
                "payment_id": str(payment.id),
                "gateway": gateway.name.value,
                "order_id": session.order_id,
            },
        )
        return {
            "paymentId": str(payment.id),
            "gateway": gateway.name.value,
            "orderId": session.order_id,
            "amount": session.amount,
            "currency": session.currency,
            "checkout": session.client_payload,
        }

    async def _find_by_order(self, gateway: PaymentGatewayName, order_id: str) -> Payment | None:
        if gateway == PaymentGatewayName.CASHFREE:
            return await Payment.find_one(Payment.cashfreeOrderId == order_id)
        return await Payment.find_one(Payment.razorpayOrderId == order_id)

    async def verify(
        self,
        user: User,
        gateway_name: PaymentGatewayName,
        order_id: str,
        payment_id: str | None = None,
        signature: str | None = None,
    ) -> Payment:
        """Confirm a browser-reported payment with the gateway and fulfil it."""
        payment = await self._find_by_order(gateway_name, order_id)
        if not payment or payment.userId != user.id:
            raise NotFoundException(resource="Payment", resource_id=order_id)
        if payment.status == PaymentStatus.COMPLETED:
            return payment

        registry = await self._registry()
        # Verification must still work for orders opened before a gateway switch
        gateway = registry.get(gateway_name, require_enabled=False)
        verified = await gateway.verify_payment(
            PaymentVerification(order_id=order_id, payment_id=payment_id, signature=signature)
        )
        return await self.complete_payment(
            payment, verified.payment_id, verified.payment_method, signature
        )

    async def _activate_subscription(
        self, payment: Payment, plan: PricingPlan | None, session=None
    ) -> Subscription:
        months = plan.durationMonths if plan and plan.durationMonths > 0 else 1
        now = utc_now()

        subscription = await Subscription.find_one(
            {
                "userId": payment.userId,
                "classId": payment.classId,
                "subjectId": None,
                "status": {"$ne": SubscriptionStatus.EXPIRED.value},
            },
            session=session,
        )
        if subscription:
            base = subscription.endDate if subscription.endDate and subscription.endDate > now else now
            subscription.endDate = add_months(base, months)
            subscription.status = SubscriptionStatus.ACTIVE
            subscription.amount = payment.amount
            subscription.planType = plan.name if plan else subscription.planType
            await subscription.save(session=session)
        else:
            subscription = Subscription(
                userId=payment.userId,
                classId=payment.classId,
                planType=plan.name if plan else None,
                amount=payment.amount,
                currency=payment.currency,
                status=SubscriptionStatus.ACTIVE,
                startDate=now,
                endDate=add_months(now, months),
            )
            await subscription.insert(session=session)
        return subscription

    async def complete_payment(
        self,
        payment: Payment,
        gateway_payment_id: str | None,
        payment_method: str | None = None,
        signature: str | None = None,
    ) -> Payment:
        """Mark a payment COMPLETED and grant or extend the subscription it paid for."""
        if payment.status == PaymentStatus.COMPLETED:
            return payment

        plan = await PricingPlan.get(payment.pricingPlanId) if payment.pricingPlanId else None
        user = await User.get(payment.userId)

        async with transaction() as session:
            subscription = await self._activate_subscription(payment, plan, session=session)

            payment.status = PaymentStatus.COMPLETED
            payment.subscriptionId = subscription.id
            payment.paymentMethod = payment_method or payment.paymentMethod
            payment.failureReason = None
            payment.set_gateway_references(payment.gateway, None, gateway_payment_id)
            if signature and payment.gateway == PaymentGatewayName.RAZORPAY:
                payment.razorpaySignature = signature
            await payment.save(session=session)

            school_class = await SchoolClass.get(payment.classId) if payment.classId else None
            await self.notifications.enqueue(
                payment.userId,
                NotificationType.PAYMENT_SUCCESS,
                {
                    "subscriptionId": str(subscription.id),
                    "paymentId": gateway_payment_id,
                    "orderId": payment.gateway_order_id,
                    "amount": payment.amount,
                    "className": school_class.name if school_class else "Unknown Class",
                    "endDate": subscription.endDate.isoformat() if subscription.endDate else None,
                    "userEmail": user.email if user else None,
                    "userName": user.display_name if user else None,
                },
                session=session,
            )

        logger.info(
            "Payment completed",
            extra={
                "payment_id": str(payment.id),
                "subscription_id": str(subscription.id),
                "gateway": payment.gateway.value if payment.gateway else None,
            },
        )
        await log_activity(
            payment.userId,
            ActivityType.PAYMENT_COMPLETED,
            f"Payment of {payment.amount} paise completed",
            metadata={"paymentId": str(payment.id), "subscriptionId": str(subscription.id)},
        )
        await self.admin_notifier.new_subscription(
            subscription_id=str(subscription.id),
            user_email=user.email if user else None,
            user_name=user.display_name if user else "User",
            plan_name=plan.name if plan else "Subscription",
            amount=payment.amount,
        )
        return payment

    async def mark_failed(self, payment: Payment, reason: str) -> Payment:
        if payment.status == PaymentStatus.COMPLETED:
            return payment
        payment.status = PaymentStatus.FAILED
        payment.failureReason = reason
        await payment.save()
        await log_activity(
            payment.userId,
            ActivityType.PAYMENT_FAILED,
            f"Payment failed: {reason}",
            metadata={"paymentId": str(payment.id)},
        )
        return payment

    async def handle_razorpay_webhook(self, body: bytes, signature: str | None) -> dict[str, Any]:
        """
        Apply a Razorpay webhook event.

        Raises:
            PaymentGatewayException: INVALID_SIGNATURE when the body is not signed
                with the webhook secret
            BadRequestException: If the body is not JSON
        """
        registry = await self._registry()
        gateway = registry.get(
            PaymentGatewayName.RAZORPAY, require_enabled=False, require_configured=False
        )
        if not isinstance(gateway, RazorpayGateway) or not gateway.verify_webhook_signature(
            body, signature
        ):
            raise PaymentGatewayException(
                kind=PaymentErrorKind.INVALID_SIGNATURE,
                message="Invalid webhook signature",
                gateway=PaymentGatewayName.RAZORPAY.value,
            )

        try:
            event = json.loads(body)
        except ValueError as e:
            raise BadRequestException("Webhook body is not valid JSON") from e

        event_type = event.get("event")
        payload = event.get("payload") or {}
        payment_entity = (payload.get("payment") or {}).get("entity") or {}
        order_entity = (payload.get("order") or {}).get("entity") or {}
        order_id = payment_entity.get("order_id") or order_entity.get("id")

        logger.info("Razorpay webhook received", extra={"event": event_type, "order_id": order_id})

        if not order_id or event_type not in (*RAZORPAY_CAPTURE_EVENTS, RAZORPAY_FAILURE_EVENT):
            return {"event": event_type, "handled": False}

        payment = await self._find_by_order(PaymentGatewayName.RAZORPAY, order_id)
        if not payment:
            logger.warning("Webhook for unknown order", extra={"order_id": order_id})
            return {"event": event_type, "handled": False}

        if event_type in RAZORPAY_CAPTURE_EVENTS:
            await self.complete_payment(
                payment, payment_entity.get("id"), payment_entity.get("method")
            )
        else:
            await self.mark_failed(
                payment, payment_entity.get("error_description") or "Payment failed"
            )
        return {"event": event_type, "handled": True, "status": payment.status.value}

    async def charge_renewal(
        self, *, user_id: ObjectId, amount: int, currency: str, description: str
    ) -> RenewalCharge:
        """Charge a renewal through whichever gateway is currently the default."""
        registry = await self._registry()
        return await registry.default().charge_renewal(
            user_id=str(user_id), amount=amount, currency=currency, description=description
        )

    async def list_payments(
        self,
        *,
        page: int = 1,
        size: int = 20,
        status: PaymentStatus | None = None,
        gateway: PaymentGatewayName | None = None,
        user_id: ObjectId | None = None,
    ) -> tuple[list[Payment], int]:
        query: dict[str, Any] = {}
        if status:
            query["status"] = status.value
        if gateway:
            query["gateway"] = gateway.value
        if user_id:
            query["userId"] = user_id

        skip = max(0, (page - 1) * size)
        cursor = Payment.find(query).sort("-createdAt")
        total = await cursor.count()
        items = await cursor.skip(skip).limit(size).to_list()
        return items, total

    async def stats(self) -> dict[str, Any]:
        by_status: dict[PaymentStatus, int] = {}
        for status in PaymentStatus:
            by_status[status] = await Payment.find(Payment.status == status).count()
        total = await Payment.count()

        revenue_rows = await Payment.aggregate(
            [
                {"$match": {"status": PaymentStatus.COMPLETED.value}},
                {"$group": {"_id": None, "total": {"$sum": "$amount"}}},
            ]
        ).to_list()
        revenue = revenue_rows[0]["total"] if revenue_rows else 0

        completed = by_status[PaymentStatus.COMPLETED]
        return {
            "totalRevenue": revenue,
            "totalPayments": total,
            "successfulPayments": completed,
            "failedPayments": by_status[PaymentStatus.FAILED],
            "pendingPayments": by_status[PaymentStatus.PENDING],
            "refundedPayments": by_status[PaymentStatus.REFUNDED],
            "successRate": round(completed / total * 100, 2) if total else 0.0,
        }
