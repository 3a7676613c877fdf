"""Admin key/value settings."""

import logging
import time
from typing import Any

from fastapi import APIRouter, Body, Depends

from app.core.auth_dependencies import require_admin
from app.models.user import User
from app.schemas.admin import SettingsUpdateResponse
from app.schemas.response import SuccessResponse
from app.services.settings_service import AdminSettingsService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=SuccessResponse[dict[str, str]])
async def get_settings(admin_user: User = Depends(require_admin)):
    """All settings merged over their defaults. Secret values are masked."""
    values = await AdminSettingsService().get_all_with_defaults()
    return SuccessResponse(message="Settings retrieved successfully", data=values)


@router.put("", response_model=SuccessResponse[SettingsUpdateResponse])
async def update_settings(
    updates: dict[str, Any] = Body(..., description="Setting keys and their new values"),
    admin_user: User = Depends(require_admin),
):
    started = time.perf_counter()
    updated = await AdminSettingsService().update(updates)
    duration = int((time.perf_counter() - started) * 1000)

    logger.info(
        "Settings updated by admin",
        extra={"admin_id": str(admin_user.id), "updated": updated},
    )
    return SuccessResponse(
        message="Settings updated successfully",
        data=SettingsUpdateResponse(updated=updated, duration=duration),
    )
