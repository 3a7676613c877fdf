"""Authentication schemas for requests and responses."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.user import User, UserRole


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, description="User password")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        """Validate password is not empty."""
        if not v or not v.strip():
            raise ValueError("Password cannot be empty")
        return v.strip()


class LoginResponse(BaseModel):
    """Login response schema."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration time in seconds")
    user_id: str = Field(..., description="User ID")
    email: str = Field(..., description="User email")
    role: UserRole = Field(..., description="User role")


class ProfileResponse(BaseModel):
    """The authenticated caller."""

    id: str
    email: str
    name: str | None = None
    image: str | None = None
    role: UserRole
    isActive: bool
    lastLoginAt: datetime | None = None
    createdAt: datetime

    @classmethod
    def from_document(cls, user: User) -> "ProfileResponse":
        return cls(
            id=str(user.id),
            email=user.email,
            name=user.name,
            image=user.image,
            role=user.role,
            isActive=user.isActive,
            lastLoginAt=user.lastLoginAt,
            createdAt=user.createdAt,
        )
