from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Any

from beanie.operators import In
from bson import ObjectId

from app.core.exceptions import BadRequestException
from app.models.activity import ActivityType, UserActivity
from app.models.user import User
from app.utils.dates import utc_now

logger = logging.getLogger(__name__)

TOP_USERS = 5


async def log_activity(
    user_id: ObjectId,
    action: ActivityType,
    description: str,
    metadata: dict[str, Any] | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> UserActivity | None:
    """Record a user activity. Never raises."""
    try:
        activity = UserActivity(
            userId=user_id,
            action=action,
            description=description,
            metadata=metadata,
            ipAddress=ip_address,
            userAgent=user_agent,
        )
        await activity.insert()
        return activity
    except Exception:
        logger.error(
            "Failed to log activity",
            extra={"user_id": str(user_id), "action": action.value},
            exc_info=True,
        )
        return None


class ActivityService:
    async def list_activities(
        self,
        *,
        page: int = 1,
        size: int = 50,
        action: str | None = None,
        user_id: ObjectId | None = None,
        search: str | None = None,
    ) -> tuple[list[UserActivity], int]:
        query: dict[str, Any] = {}
        if action and action != "ALL":
            if action not in ActivityType.__members__:
                raise BadRequestException("Unknown activity action", details={"action": action})
            query["action"] = action
        if user_id:
            query["userId"] = user_id
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            matching_users = await User.find(
                {"$or": [{"name": pattern}, {"email": pattern}]}
            ).to_list()
            query["$or"] = [
                {"description": pattern},
                {"userId": {"$in": [user.id for user in matching_users]}},
            ]

        skip = max(0, (page - 1) * size)
        cursor = UserActivity.find(query).sort("-createdAt")
        total = await cursor.count()
        items = await cursor.skip(skip).limit(size).to_list()
        return items, total

    async def stats(self) -> dict[str, Any]:
        """Totals per action, distinct users, the last day and the five busiest users."""
        total = await UserActivity.count()

        by_action: dict[str, int] = {}
        for action in ActivityType:
            count = await UserActivity.find(UserActivity.action == action).count()
            if count:
                by_action[action.value] = count

        user_rows = await UserActivity.aggregate(
            [
                {"$group": {"_id": "$userId", "count": {"$sum": 1}}},
                {"$sort": {"count": -1}},
            ]
        ).to_list()
        top_rows = user_rows[:TOP_USERS]
        users = await User.find(In(User.id, [row["_id"] for row in top_rows])).to_list()
        names = {user.id: user.name or user.email for user in users}

        since = utc_now() - timedelta(hours=24)
        recent = await UserActivity.find(UserActivity.createdAt >= since).count()

        return {
            "totalActivities": total,
            "uniqueUsers": len(user_rows),
            "activitiesByAction": by_action,
            "last24Hours": recent,
            "topUsers": [
                {
                    "userId": str(row["_id"]),
                    "userName": names.get(row["_id"], "Unknown User"),
                    "count": row["count"],
                }
                for row in top_rows
            ],
        }
