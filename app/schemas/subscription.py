from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, StrictBool, field_validator

from app.models.subscription import RenewalPeriod, Subscription, SubscriptionStatus
from app.utils.dates import to_naive_utc


class SubscriptionCreateRequest(BaseModel):
    """Manual grant of a subscription by an admin."""

    userId: str = Field(..., description="User ID")
    classId: str | None = Field(None, description="Class ID")
    subjectId: str | None = Field(None, description="Subject ID")
    planType: str | None = Field(None, max_length=100)
    amount: int | None = Field(None, ge=0, description="Amount in paise")
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    startDate: datetime | None = None
    endDate: datetime | None = None
    autoRenew: bool = False

    @field_validator("startDate", "endDate")
    @classmethod
    def normalize_dates(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v) if v else v


class SubscriptionUpdateRequest(BaseModel):
    status: SubscriptionStatus | None = None
    autoRenew: bool | None = None


class AutoRenewalRequest(BaseModel):
    """Toggle automatic renewal for one subscription."""

    subscriptionId: str = Field(..., min_length=1, description="Subscription ID")
    autoRenew: StrictBool = Field(..., description="Whether the subscription renews itself")
    renewalPeriod: RenewalPeriod = Field(RenewalPeriod.MONTHLY, description="Renewal period")


class AutoRenewalSubscription(BaseModel):
    id: str
    autoRenew: bool
    status: SubscriptionStatus
    endDate: datetime | None = None


class AutoRenewalResponse(BaseModel):
    success: bool = True
    subscription: AutoRenewalSubscription
    message: str


class AutoRenewalResults(BaseModel):
    processed: int
    successful: int
    failed: int
    errors: list[str]
    processingTimeMs: int
    dryRun: bool
    totalFound: int


class AutoRenewalRunResponse(BaseModel):
    success: bool = True
    results: AutoRenewalResults


class ExpiryRunResponse(BaseModel):
    processedCount: int
    expiredCount: int
    graceExtended: int
    notificationsScheduled: int
    errors: list[str]


class SubscriptionResponse(BaseModel):
    """Schema for subscription response."""

    id: str
    userId: str
    classId: str | None = None
    subjectId: str | None = None
    planType: str | None = None
    amount: int | None = None
    currency: str
    status: SubscriptionStatus
    startDate: datetime
    endDate: datetime | None = None
    autoRenew: bool
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_document(cls, subscription: Subscription) -> SubscriptionResponse:
        return cls(
            id=str(subscription.id),
            userId=str(subscription.userId),
            classId=str(subscription.classId) if subscription.classId else None,
            subjectId=str(subscription.subjectId) if subscription.subjectId else None,
            planType=subscription.planType,
            amount=subscription.amount,
            currency=subscription.currency,
            status=subscription.status,
            startDate=subscription.startDate,
            endDate=subscription.endDate,
            autoRenew=subscription.autoRenew,
            createdAt=subscription.createdAt,
            updatedAt=subscription.updatedAt,
        )
