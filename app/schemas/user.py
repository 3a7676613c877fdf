from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.models.user import User, UserRole


class UserCreateRequest(BaseModel):
    """Request schema for admin user creation"""

    email: EmailStr
    name: str | None = Field(None, max_length=100)
    password: str | None = Field(None, min_length=8, max_length=100)
    role: UserRole = UserRole.USER
    phone: str | None = Field(None, max_length=20)


class UserUpdateRequest(BaseModel):
    """Request schema for user updates - all fields optional"""

    name: str | None = Field(None, max_length=100)
    role: UserRole | None = None
    isActive: bool | None = None


class UserResponse(BaseModel):
    """Response schema for user data"""

    id: str
    email: str
    name: str | None = None
    image: str | None = None
    phone: str | None = None
    role: UserRole
    isActive: bool
    lastLoginAt: datetime | None = None
    createdAt: datetime
    updatedAt: datetime
    activeSubscriptions: int = 0
    totalPayments: int = 0
    totalSpent: int = 0

    @classmethod
    def from_document(cls, user: User, stats: dict | None = None) -> UserResponse:
        stats = stats or {}
        return cls(
            id=str(user.id),
            email=user.email,
            name=user.name,
            image=user.image,
            phone=user.phone,
            role=user.role,
            isActive=user.isActive,
            lastLoginAt=user.lastLoginAt,
            createdAt=user.createdAt,
            updatedAt=user.updatedAt,
            activeSubscriptions=stats.get("activeSubscriptions", 0),
            totalPayments=stats.get("totalPayments", 0),
            totalSpent=stats.get("totalSpent", 0),
        )
