from __future__ import annotations

import logging

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import ConflictException, NotFoundException
from app.models.catalog import SchoolClass
from app.models.pricing import PricingPlan
from app.schemas.pricing import PricingPlanCreateRequest, PricingPlanUpdateRequest
from app.utils.validators import parse_object_id

logger = logging.getLogger(__name__)


class PricingService:
    """Duration-based pricing plans per class."""

    async def get_plan(self, plan_id: ObjectId) -> PricingPlan:
        plan = await PricingPlan.get(plan_id)
        if not plan:
            raise NotFoundException(resource="Pricing plan", resource_id=str(plan_id))
        return plan

    async def list_plans(
        self, *, page: int = 1, size: int = 50, class_id: ObjectId | None = None
    ) -> tuple[list[PricingPlan], int]:
        query = {"classId": class_id} if class_id else {}
        skip = max(0, (page - 1) * size)
        cursor = PricingPlan.find(query).sort("classId", "sortOrder")
        total = await cursor.count()
        items = await cursor.skip(skip).limit(size).to_list()
        return items, total

    async def _ensure_unique(
        self, class_id: ObjectId, duration_months: int, exclude: ObjectId | None = None
    ) -> None:
        existing = await PricingPlan.find_one(
            PricingPlan.classId == class_id,
            PricingPlan.durationMonths == duration_months,
        )
        if existing and existing.id != exclude:
            raise ConflictException(
                "A pricing plan with this duration already exists for this class",
                details={"classId": str(class_id), "durationMonths": duration_months},
            )

    async def create_plan(self, request: PricingPlanCreateRequest) -> PricingPlan:
        class_id = parse_object_id(request.classId, "classId")
        if not await SchoolClass.get(class_id):
            raise NotFoundException(resource="Class", resource_id=request.classId)
        await self._ensure_unique(class_id, request.durationMonths)

        plan = PricingPlan(**request.model_dump(exclude={"classId"}), classId=class_id)
        try:
            await plan.insert()
        except DuplicateKeyError as e:
            raise ConflictException(
                "A pricing plan with this duration already exists for this class"
            ) from e

        logger.info(
            "Pricing plan created",
            extra={"plan_id": str(plan.id), "class_id": str(class_id)},
        )
        return plan

    async def update_plan(self, plan_id: ObjectId, request: PricingPlanUpdateRequest) -> PricingPlan:
        plan = await self.get_plan(plan_id)
        updates = request.model_dump(exclude_unset=True)
        if updates.get("durationMonths") not in (None, plan.durationMonths):
            await self._ensure_unique(plan.classId, updates["durationMonths"], exclude=plan.id)

        for field, value in updates.items():
            setattr(plan, field, value)
        await plan.save()
        logger.info("Pricing plan updated", extra={"plan_id": str(plan.id)})
        return plan

    async def delete_plan(self, plan_id: ObjectId) -> None:
        plan = await self.get_plan(plan_id)
        await plan.delete()
        logger.info("Pricing plan deleted", extra={"plan_id": str(plan_id)})
