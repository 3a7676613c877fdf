"""Authentication service for user login operations."""

import logging

from app.core.config import settings
from app.core.exceptions import UnauthorizedException
from app.models.activity import ActivityType
from app.models.user import User
from app.schemas.auth import LoginRequest, LoginResponse
from app.services.activity_service import log_activity
from app.utils.dates import utc_now
from app.utils.jwt import create_access_token
from app.utils.password import verify_password

logger = logging.getLogger(__name__)


class AuthService:
    """Authentication service for user operations."""

    async def authenticate_user(self, email: str, password: str) -> User | None:
        """
        Authenticate user with email and password.

        Returns:
            User object if authentication successful, None otherwise
        """
        user = await self._find_user_by_email(email)
        if not user or not user.isActive:
            return None
        if not verify_password(password, user.passwordHash):
            return None
        return user

    async def _find_user_by_email(self, email: str) -> User | None:
        return await User.find_one(User.email == email.lower())

    async def login(
        self,
        login_request: LoginRequest,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResponse:
        """
        Authenticate user and issue an access token.

        Raises:
            UnauthorizedException: If authentication fails
        """
        user = await self.authenticate_user(login_request.email, login_request.password)
        if not user:
            logger.warning("Failed login attempt", extra={"email": login_request.email})
            raise UnauthorizedException("Invalid email or password")

        user.lastLoginAt = utc_now()
        await user.save()

        access_token = create_access_token(
            user_id=str(user.id), email=user.email, role=user.role.value
        )
        await log_activity(
            user.id,
            ActivityType.LOGIN,
            "User logged in",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        logger.info("User logged in", extra={"user_id": str(user.id)})

        return LoginResponse(
            access_token=access_token,
            token_type="bearer",
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user_id=str(user.id),
            email=user.email,
            role=user.role,
        )
