"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, Request

from app.core.auth_dependencies import get_current_user
from app.core.config import settings
from app.core.security import get_client_ip, rate_limit
from app.models.user import User
from app.schemas.auth import LoginRequest, LoginResponse, ProfileResponse
from app.schemas.response import SuccessResponse
from app.services.auth_service import AuthService

router = APIRouter()
logger = logging.getLogger(__name__)

login_rate_limit = rate_limit("login", settings.RATE_LIMIT_LOGIN_PER_MINUTE, 60)


@router.post(
    "/login",
    response_model=SuccessResponse[LoginResponse],
    dependencies=[Depends(login_rate_limit)],
)
async def login(login_request: LoginRequest, request: Request):
    """
    Authenticate user and return a JWT access token.

    Args:
        login_request: Login credentials
        request: Incoming request, used for the activity record

    Returns:
        Login response with the access token
    """
    login_response = await AuthService().login(
        login_request,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return SuccessResponse(message="Login successful", data=login_response)


@router.get("/me", response_model=SuccessResponse[ProfileResponse])
async def get_me(current_user: User = Depends(get_current_user)):
    """Get the profile behind the bearer token"""
    return SuccessResponse(
        message="Profile retrieved successfully",
        data=ProfileResponse.from_document(current_user),
    )
