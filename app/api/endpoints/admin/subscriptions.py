"""Admin endpoints for subscriptions, auto-renewal and expiry."""

import logging

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError

from app.core.auth_dependencies import CallerContext, require_admin, verify_admin_or_cron
from app.core.config import settings
from app.core.exceptions import BadRequestException
from app.core.security import rate_limit
from app.models.subscription import SubscriptionStatus
from app.models.user import User
from app.schemas.response import PaginatedResponse, PaginationMeta, SuccessResponse
from app.schemas.subscription import (
    AutoRenewalRequest,
    AutoRenewalResponse,
    AutoRenewalResults,
    AutoRenewalRunResponse,
    AutoRenewalSubscription,
    ExpiryRunResponse,
    SubscriptionCreateRequest,
    SubscriptionResponse,
    SubscriptionUpdateRequest,
)
from app.services.auto_renewal_service import DEFAULT_BATCH_LIMIT, AutoRenewalService
from app.services.subscription_service import SubscriptionService
from app.utils.validators import parse_object_id

router = APIRouter()
logger = logging.getLogger(__name__)

auto_renewal_rate_limit = rate_limit(
    "auto_renewal", settings.RATE_LIMIT_AUTO_RENEWAL_PER_MINUTE, 60
)


def _validation_details(error: ValidationError) -> dict:
    return {
        "errors": [
            {"field": ".".join(str(part) for part in item["loc"]), "message": item["msg"]}
            for item in error.errors()
        ]
    }


@router.post(
    "/auto-renewal",
    response_model=AutoRenewalResponse,
    dependencies=[Depends(auto_renewal_rate_limit)],
)
async def update_auto_renewal(
    request: Request,
    admin_user: User = Depends(require_admin),
):
    """
    Enable or disable automatic renewal for a subscription.

    Malformed bodies are answered with 400 rather than 422.
    """
    try:
        body = await request.json()
    except ValueError as e:
        raise BadRequestException("Invalid JSON body") from e

    try:
        payload = AutoRenewalRequest.model_validate(body)
    except ValidationError as e:
        raise BadRequestException("Invalid request data", details=_validation_details(e)) from e

    subscription_id = parse_object_id(payload.subscriptionId, "subscriptionId")
    subscription = await AutoRenewalService().set_auto_renewal(
        subscription_id, payload.autoRenew, payload.renewalPeriod
    )

    logger.info(
        "Auto-renewal toggled by admin",
        extra={
            "admin_id": str(admin_user.id),
            "subscription_id": str(subscription.id),
            "auto_renew": payload.autoRenew,
        },
    )
    return AutoRenewalResponse(
        subscription=AutoRenewalSubscription(
            id=str(subscription.id),
            autoRenew=subscription.autoRenew,
            status=subscription.status,
            endDate=subscription.endDate,
        ),
        message=(
            "Auto-renewal enabled successfully"
            if payload.autoRenew
            else "Auto-renewal disabled successfully"
        ),
    )


@router.get("/auto-renewal", response_model=AutoRenewalRunResponse)
async def run_auto_renewal(
    dryRun: str | None = Query(None, description="'true' to simulate without writes"),
    limit: str | None = Query(None, description="Maximum subscriptions to process (1-1000)"),
    caller: CallerContext = Depends(verify_admin_or_cron),
):
    """Renew subscriptions that lapse within the next 24 hours."""
    dry_run = dryRun == "true"
    try:
        batch_limit = int(limit) if limit is not None else DEFAULT_BATCH_LIMIT
    except ValueError:
        batch_limit = DEFAULT_BATCH_LIMIT

    logger.info(
        "Auto-renewal run requested",
        extra={"caller": caller.label, "dry_run": dry_run, "limit": batch_limit},
    )
    results = await AutoRenewalService().process_auto_renewals(dry_run=dry_run, limit=batch_limit)
    return AutoRenewalRunResponse(results=AutoRenewalResults(**results))


@router.post("/expire", response_model=SuccessResponse[ExpiryRunResponse])
async def run_expiry(caller: CallerContext = Depends(verify_admin_or_cron)):
    """Send expiry warnings and move lapsed subscriptions to grace period or expired."""
    logger.info("Expiry run requested", extra={"caller": caller.label})
    summary = await SubscriptionService().process_expiring()
    return SuccessResponse(
        message="Expiring subscriptions processed",
        data=ExpiryRunResponse(**summary),
    )


@router.get("", response_model=PaginatedResponse[SubscriptionResponse])
async def list_subscriptions(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    status: SubscriptionStatus | None = Query(None, description="Filter by status"),
    userId: str | None = Query(None, description="Filter by user"),
    admin_user: User = Depends(require_admin),
):
    """List subscriptions, newest first"""
    user_id = parse_object_id(userId, "userId") if userId else None
    subscriptions, total = await SubscriptionService().list_subscriptions(
        page=page, size=limit, status=status, user_id=user_id
    )
    return PaginatedResponse(
        message="Subscriptions retrieved successfully",
        data=[SubscriptionResponse.from_document(s) for s in subscriptions],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.post("", response_model=SuccessResponse[SubscriptionResponse])
async def create_subscription(
    request: SubscriptionCreateRequest,
    admin_user: User = Depends(require_admin),
):
    subscription = await SubscriptionService().create_subscription(request)
    return SuccessResponse(
        message="Subscription created successfully",
        data=SubscriptionResponse.from_document(subscription),
    )


@router.patch("/{subscription_id}", response_model=SuccessResponse[SubscriptionResponse])
async def update_subscription(
    subscription_id: str,
    request: SubscriptionUpdateRequest,
    admin_user: User = Depends(require_admin),
):
    subscription = await SubscriptionService().update_subscription(
        parse_object_id(subscription_id, "subscriptionId"), request
    )
    return SuccessResponse(
        message="Subscription updated successfully",
        data=SubscriptionResponse.from_document(subscription),
    )


@router.delete("/{subscription_id}", response_model=SuccessResponse[dict])
async def delete_subscription(
    subscription_id: str,
    admin_user: User = Depends(require_admin),
):
    await SubscriptionService().delete_subscription(
        parse_object_id(subscription_id, "subscriptionId")
    )
    return SuccessResponse(
        message="Subscription deleted successfully", data={"id": subscription_id}
    )
