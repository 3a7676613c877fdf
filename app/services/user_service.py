from __future__ import annotations

import logging
import re
from typing import Any

from bson import ObjectId

from app.core.exceptions import ConflictException, NotFoundException
from app.models.payment import Payment, PaymentStatus
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.user import User, UserRole
from app.schemas.user import UserCreateRequest, UserUpdateRequest
from app.utils.password import hash_password

logger = logging.getLogger(__name__)


class UserService:
    """Admin management of user accounts."""

    async def get_user(self, user_id: ObjectId) -> User:
        user = await User.get(user_id)
        if not user:
            raise NotFoundException(resource="User", resource_id=str(user_id))
        return user

    async def list_users(
        self,
        *,
        page: int = 1,
        size: int = 20,
        search: str | None = None,
        role: UserRole | None = None,
    ) -> tuple[list[User], int]:
        query: dict[str, Any] = {}
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{"name": pattern}, {"email": pattern}]
        if role:
            query["role"] = role.value

        skip = max(0, (page - 1) * size)
        cursor = User.find(query).sort("-createdAt")
        total = await cursor.count()
        users = await cursor.skip(skip).limit(size).to_list()
        return users, total

    async def user_stats(self, user_ids: list[ObjectId]) -> dict[ObjectId, dict[str, int]]:
        """Active subscription count and completed payment totals per user."""
        stats: dict[ObjectId, dict[str, int]] = {
            user_id: {"activeSubscriptions": 0, "totalPayments": 0, "totalSpent": 0}
            for user_id in user_ids
        }
        if not user_ids:
            return stats

        subscriptions = await Subscription.find(
            {"userId": {"$in": user_ids}, "status": SubscriptionStatus.ACTIVE.value}
        ).to_list()
        for subscription in subscriptions:
            stats[subscription.userId]["activeSubscriptions"] += 1

        payments = await Payment.find(
            {"userId": {"$in": user_ids}, "status": PaymentStatus.COMPLETED.value}
        ).to_list()
        for payment in payments:
            stats[payment.userId]["totalPayments"] += 1
            stats[payment.userId]["totalSpent"] += payment.amount
        return stats

    async def create_user(self, request: UserCreateRequest) -> User:
        email = request.email.lower()
        if await User.find_one(User.email == email):
            raise ConflictException("User with this email already exists", details={"email": email})

        user = User(
            email=email,
            name=request.name,
            phone=request.phone,
            role=request.role,
            passwordHash=hash_password(request.password) if request.password else None,
        )
        await user.insert()
        logger.info("User created", extra={"user_id": str(user.id), "role": user.role.value})
        return user

    async def update_user(self, user_id: ObjectId, request: UserUpdateRequest) -> User:
        user = await self.get_user(user_id)
        for field, value in request.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(user, field, value)
        await user.save()
        logger.info("User updated", extra={"user_id": str(user.id)})
        return user

    async def delete_user(self, user_id: ObjectId) -> None:
        user = await self.get_user(user_id)
        await user.delete()
        logger.info("User deleted", extra={"user_id": str(user_id)})
