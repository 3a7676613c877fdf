from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.models.pricing import PricingPlan


class PricingPlanCreateRequest(BaseModel):
    classId: str = Field(..., description="Class ID")
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    durationMonths: int = Field(..., ge=1, le=36)
    price: int = Field(..., ge=0, description="Price in paise")
    originalPrice: int | None = Field(None, ge=0)
    discount: int | None = Field(None, ge=0, le=100)
    isActive: bool = True
    isPopular: bool = False
    features: list[str] = Field(default_factory=list)
    sortOrder: int = 0
    workbookPrice: int | None = Field(None, ge=0)
    workbookNote: str | None = None


class PricingPlanUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    durationMonths: int | None = Field(None, ge=1, le=36)
    price: int | None = Field(None, ge=0)
    originalPrice: int | None = Field(None, ge=0)
    discount: int | None = Field(None, ge=0, le=100)
    isActive: bool | None = None
    isPopular: bool | None = None
    features: list[str] | None = None
    sortOrder: int | None = None
    workbookPrice: int | None = Field(None, ge=0)
    workbookNote: str | None = None


class PricingPlanResponse(BaseModel):
    id: str
    classId: str
    name: str
    description: str | None = None
    durationMonths: int
    price: int
    originalPrice: int | None = None
    discount: int | None = None
    isActive: bool
    isPopular: bool
    features: list[str]
    sortOrder: int
    workbookPrice: int | None = None
    workbookNote: str | None = None
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_document(cls, plan: PricingPlan) -> PricingPlanResponse:
        return cls(
            id=str(plan.id),
            classId=str(plan.classId),
            name=plan.name,
            description=plan.description,
            durationMonths=plan.durationMonths,
            price=plan.price,
            originalPrice=plan.originalPrice,
            discount=plan.discount,
            isActive=plan.isActive,
            isPopular=plan.isPopular,
            features=plan.features,
            sortOrder=plan.sortOrder,
            workbookPrice=plan.workbookPrice,
            workbookNote=plan.workbookNote,
            createdAt=plan.createdAt,
            updatedAt=plan.updatedAt,
        )
