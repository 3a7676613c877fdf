"""JWT token utilities."""

import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import PyJWTError

from app.core.config import settings


class JWTManager:
    """Issues and verifies signed access tokens."""

    ACCESS_TOKEN_TYPE = "access"

    def __init__(self):
        self.secret_key = settings.SECRET_KEY
        self.algorithm = settings.ALGORITHM
        self.issuer = "classroom-billing"
        self.audience = "classroom-users"

    def create_access_token(
        self,
        user_id: str,
        email: str,
        role: str,
        expires_delta: timedelta | None = None,
    ) -> str:
        """
        Create access token for API authentication.

        Args:
            user_id: User's unique identifier
            email: User's email address
            role: User role, checked by the admin dependencies
            expires_delta: Custom expiration time

        Returns:
            Encoded JWT access token
        """
        now = datetime.now(UTC)
        payload = {
            "iat": now,
            "nbf": now,
            "exp": now
            + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)),
            "iss": self.issuer,
            "aud": self.audience,
            "sub": user_id,
            "type": self.ACCESS_TOKEN_TYPE,
            "email": email,
            "role": role,
            "jti": secrets.token_urlsafe(32),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict[str, Any]:
        """
        Verify and decode an access token.

        Raises:
            PyJWTError: If token is invalid, expired, or malformed
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
            )
        except PyJWTError as e:
            raise PyJWTError(f"Token verification failed: {str(e)}") from e

        if payload.get("type") != self.ACCESS_TOKEN_TYPE:
            raise PyJWTError(f"Invalid token type. Expected: {self.ACCESS_TOKEN_TYPE}")
        return payload


# Global JWT manager instance
jwt_manager = JWTManager()


def create_access_token(
    user_id: str, email: str, role: str, expires_delta: timedelta | None = None
) -> str:
    return jwt_manager.create_access_token(user_id, email, role, expires_delta)


def verify_access_token(token: str) -> dict[str, Any]:
    return jwt_manager.verify_token(token)
