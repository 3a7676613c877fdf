from __future__ import annotations

import logging
import re
import traceback
from datetime import timedelta
from typing import Any

from app.core.exceptions import BadRequestException
from app.models.error_log import ErrorLevel, ErrorLog
from app.utils.dates import utc_now

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


async def record_error(
    message: str,
    source: str,
    *,
    level: ErrorLevel = ErrorLevel.ERROR,
    exc: BaseException | None = None,
    url: str | None = None,
    user_agent: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> ErrorLog | None:
    """Persist an error for the admin error log. Never raises."""
    try:
        stack = None
        if exc is not None:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        entry = ErrorLog(
            level=level,
            message=message[:2000],
            source=source,
            stack=stack,
            url=url,
            userAgent=user_agent,
            metadata=metadata or {},
        )
        await entry.insert()
        return entry
    except Exception:
        logger.error("Failed to persist error log", extra={"source": source}, exc_info=True)
        return None


class ErrorLogService:
    async def list_logs(
        self,
        *,
        page: int = 1,
        size: int = 50,
        level: str | None = None,
        source: str | None = None,
        search: str | None = None,
    ) -> tuple[list[ErrorLog], int]:
        query: dict[str, Any] = {}
        if level and level != "ALL":
            if level not in ErrorLevel.__members__:
                raise BadRequestException("Unknown error level", details={"level": level})
            query["level"] = level
        if source and source != "ALL":
            query["source"] = source
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{"message": pattern}, {"source": pattern}]

        skip = max(0, (page - 1) * size)
        cursor = ErrorLog.find(query).sort("-timestamp")
        total = await cursor.count()
        items = await cursor.skip(skip).limit(size).to_list()
        return items, total

    async def stats(self) -> dict[str, Any]:
        total = await ErrorLog.count()
        critical = await ErrorLog.find(ErrorLog.level == ErrorLevel.CRITICAL).count()

        by_level: dict[str, int] = {}
        for level in ErrorLevel:
            count = await ErrorLog.find(ErrorLog.level == level).count()
            if count:
                by_level[level.value] = count

        source_rows = await ErrorLog.aggregate(
            [
                {"$group": {"_id": "$source", "count": {"$sum": 1}}},
                {"$sort": {"count": -1}},
                {"$limit": 10},
            ]
        ).to_list()
        by_source = {row["_id"]: row["count"] for row in source_rows}

        since = utc_now() - timedelta(hours=24)
        recent = await ErrorLog.find(ErrorLog.timestamp >= since).count()

        return {
            "totalErrors": total,
            "criticalErrors": critical,
            "errorsByLevel": by_level,
            "errorsBySource": by_source,
            "last24Hours": recent,
        }

    async def cleanup(self, older_than_days: int = DEFAULT_RETENTION_DAYS) -> int:
        cutoff = utc_now() - timedelta(days=older_than_days)
        result = await ErrorLog.find(ErrorLog.timestamp < cutoff).delete()
        deleted = result.deleted_count if result else 0
        logger.info(
            "Old error logs cleaned up",
            extra={"deleted_count": deleted, "older_than_days": older_than_days},
        )
        return deleted

    async def create(self, **fields: Any) -> ErrorLog:
        entry = ErrorLog(**fields)
        await entry.insert()
        return entry
