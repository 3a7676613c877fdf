"""Authentication dependencies."""

import hmac
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from bson import ObjectId
from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWTError

from app.core.config import settings
from app.core.exceptions import AuthorizationException, UnauthorizedException
from app.models.user import User, UserRole
from app.utils.jwt import verify_access_token

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


@dataclass
class TokenData:
    """Claims of a verified access token."""

    user_id: str
    email: str
    role: str
    expires_at: datetime


@dataclass
class CallerContext:
    """Who invoked an endpoint that accepts both schedulers and admins."""

    is_cron: bool
    user: User | None = None

    @property
    def label(self) -> str:
        if self.is_cron:
            return "cron"
        return str(self.user.id) if self.user else "unknown"


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    if not credentials or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials or None


def decode_token(token: str) -> TokenData:
    try:
        payload = verify_access_token(token)
    except PyJWTError as e:
        raise UnauthorizedException(f"Authentication failed: {str(e)}") from e

    user_id = payload.get("sub")
    email = payload.get("email")
    exp_timestamp = payload.get("exp")
    if not all([user_id, email, exp_timestamp]):
        raise UnauthorizedException("Invalid token payload")

    return TokenData(
        user_id=user_id,
        email=email,
        role=payload.get("role", UserRole.USER.value),
        expires_at=datetime.fromtimestamp(exp_timestamp, tz=UTC),
    )


async def get_current_user_token(
    token: str | None = Depends(get_bearer_token),
) -> TokenData:
    if not token:
        raise UnauthorizedException("Authorization header missing")
    return decode_token(token)


async def load_user(token_data: TokenData) -> User:
    if not ObjectId.is_valid(token_data.user_id):
        raise UnauthorizedException("Invalid token subject")

    user = await User.get(ObjectId(token_data.user_id))
    if not user or not user.isActive:
        raise UnauthorizedException("User not found")
    return user


async def get_current_user(
    token_data: TokenData = Depends(get_current_user_token),
) -> User:
    """Load the user document behind the bearer token."""
    return await load_user(token_data)


async def require_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Require admin role for access.

    Raises:
        AuthorizationException: If the caller is authenticated but not an admin
    """
    if current_user.role != UserRole.ADMIN:
        raise AuthorizationException("Admin access required")
    return current_user


def is_cron_secret(candidate: str | None) -> bool:
    """Constant-time comparison against CRON_SECRET; an unset secret never matches."""
    if not candidate or not settings.CRON_SECRET:
        return False
    return hmac.compare_digest(candidate.encode(), settings.CRON_SECRET.encode())


async def verify_admin_or_cron(
    token: str | None = Depends(get_bearer_token),
    secret: str | None = Query(None, description="Shared cron secret"),
) -> CallerContext:
    """
    Admit a scheduler presenting CRON_SECRET or an authenticated admin.

    The secret is accepted as a bearer token or as the ``secret`` query
    parameter. Anything else is answered with 401.
    """
    if is_cron_secret(token) or is_cron_secret(secret):
        return CallerContext(is_cron=True)

    if token:
        try:
            user = await load_user(decode_token(token))
        except UnauthorizedException:
            user = None
        if user and user.role == UserRole.ADMIN:
            return CallerContext(is_cron=False, user=user)

    logger.warning("Rejected cron/admin request")
    raise UnauthorizedException("Unauthorized")
