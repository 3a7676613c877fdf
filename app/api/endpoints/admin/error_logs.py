"""Admin error log browser."""

import logging

from fastapi import APIRouter, Depends, Query, Request

from app.core.auth_dependencies import get_current_user, require_admin
from app.models.user import User
from app.schemas.admin import (
    ErrorLogCleanupResponse,
    ErrorLogCreateRequest,
    ErrorLogResponse,
    ErrorLogStats,
)
from app.schemas.response import PaginatedResponse, PaginationMeta, SuccessResponse
from app.services.error_log_service import DEFAULT_RETENTION_DAYS, ErrorLogService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=PaginatedResponse[ErrorLogResponse])
async def list_error_logs(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(50, ge=1, le=200, description="Page size"),
    level: str | None = Query(None, description="Level filter, ALL for every level"),
    source: str | None = Query(None, description="Source filter, ALL for every source"),
    search: str | None = Query(None, description="Match message or source"),
    admin_user: User = Depends(require_admin),
):
    logs, total = await ErrorLogService().list_logs(
        page=page, size=limit, level=level, source=source, search=search
    )
    return PaginatedResponse(
        message="Error logs retrieved successfully",
        data=[ErrorLogResponse.from_document(entry) for entry in logs],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.get("/stats", response_model=SuccessResponse[ErrorLogStats])
async def error_log_stats(admin_user: User = Depends(require_admin)):
    stats = await ErrorLogService().stats()
    return SuccessResponse(message="Error log statistics", data=ErrorLogStats(**stats))


@router.delete("/cleanup", response_model=SuccessResponse[ErrorLogCleanupResponse])
async def cleanup_error_logs(
    days: int = Query(DEFAULT_RETENTION_DAYS, ge=1, description="Delete entries older than this"),
    admin_user: User = Depends(require_admin),
):
    deleted = await ErrorLogService().cleanup(days)
    logger.info(
        "Error logs cleaned up by admin",
        extra={"admin_id": str(admin_user.id), "deleted_count": deleted},
    )
    return SuccessResponse(
        message="Old error logs deleted",
        data=ErrorLogCleanupResponse(deletedCount=deleted, olderThanDays=days),
    )


@router.post("", response_model=SuccessResponse[ErrorLogResponse])
async def ingest_error_log(
    payload: ErrorLogCreateRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    """Store an error reported by a signed-in client."""
    entry = await ErrorLogService().create(
        **payload.model_dump(exclude={"userAgent"}),
        userAgent=payload.userAgent or request.headers.get("user-agent"),
        userId=current_user.id,
    )
    return SuccessResponse(message="Error logged", data=ErrorLogResponse.from_document(entry))
