"""Admin endpoints for user management."""

import logging

from fastapi import APIRouter, Depends, Query

from app.core.auth_dependencies import require_admin
from app.core.exceptions import BadRequestException
from app.models.user import User, UserRole
from app.schemas.response import PaginatedResponse, PaginationMeta, SuccessResponse
from app.schemas.user import UserCreateRequest, UserResponse, UserUpdateRequest
from app.services.user_service import UserService
from app.utils.validators import parse_object_id

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=PaginatedResponse[UserResponse])
async def list_users(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    search: str | None = Query(None, description="Match name or email"),
    role: UserRole | None = Query(None, description="Filter by role"),
    admin_user: User = Depends(require_admin),
):
    """List users with subscription and payment totals"""
    user_service = UserService()
    users, total = await user_service.list_users(page=page, size=limit, search=search, role=role)
    stats = await user_service.user_stats([user.id for user in users])

    return PaginatedResponse(
        message="Users retrieved successfully",
        data=[UserResponse.from_document(user, stats.get(user.id)) for user in users],
        pagination=PaginationMeta.build(page, limit, total),
    )


@router.post("", response_model=SuccessResponse[UserResponse])
async def create_user(
    request: UserCreateRequest,
    admin_user: User = Depends(require_admin),
):
    user = await UserService().create_user(request)
    logger.info(
        "User created by admin",
        extra={"admin_id": str(admin_user.id), "user_id": str(user.id)},
    )
    return SuccessResponse(message="User created successfully", data=UserResponse.from_document(user))


@router.patch("/{user_id}", response_model=SuccessResponse[UserResponse])
async def update_user(
    user_id: str,
    request: UserUpdateRequest,
    admin_user: User = Depends(require_admin),
):
    target_id = parse_object_id(user_id, "userId")
    if target_id == admin_user.id and (request.role == UserRole.USER or request.isActive is False):
        raise BadRequestException("Admins cannot demote or deactivate themselves")

    user = await UserService().update_user(target_id, request)
    return SuccessResponse(message="User updated successfully", data=UserResponse.from_document(user))


@router.delete("/{user_id}", response_model=SuccessResponse[dict])
async def delete_user(
    user_id: str,
    admin_user: User = Depends(require_admin),
):
    target_id = parse_object_id(user_id, "userId")
    if target_id == admin_user.id:
        raise BadRequestException("Admins cannot delete themselves")

    await UserService().delete_user(target_id)
    logger.info(
        "User deleted by admin",
        extra={"admin_id": str(admin_user.id), "user_id": user_id},
    )
    return SuccessResponse(message="User deleted successfully", data={"id": user_id})
