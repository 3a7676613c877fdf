"""
Schemas for the admin back-office resources
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from app.models.activity import ActivityType, UserActivity
from app.models.announcement import Announcement, AnnouncementType
from app.models.error_log import ErrorLevel, ErrorLog
from app.models.notification import Notification, NotificationCategory, NotificationPriority
from app.utils.dates import to_naive_utc


class SettingsUpdateResponse(BaseModel):
    updated: int = Field(..., description="Number of keys written")
    duration: int = Field(..., description="Time spent in milliseconds")


class AnnouncementCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    type: AnnouncementType = AnnouncementType.INFO
    isActive: bool = True
    targetUsers: list[str] = Field(default_factory=list)
    startDate: datetime | None = None
    endDate: datetime | None = None

    @field_validator("startDate", "endDate")
    @classmethod
    def normalize_dates(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v) if v else v


class AnnouncementUpdateRequest(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1)
    type: AnnouncementType | None = None
    isActive: bool | None = None
    targetUsers: list[str] | None = None
    startDate: datetime | None = None
    endDate: datetime | None = None

    @field_validator("startDate", "endDate")
    @classmethod
    def normalize_dates(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v) if v else v


class AnnouncementResponse(BaseModel):
    id: str
    title: str
    content: str
    type: AnnouncementType
    isActive: bool
    targetUsers: list[str]
    startDate: datetime | None = None
    endDate: datetime | None = None
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_document(cls, announcement: Announcement) -> AnnouncementResponse:
        return cls(
            id=str(announcement.id),
            title=announcement.title,
            content=announcement.content,
            type=announcement.type,
            isActive=announcement.isActive,
            targetUsers=announcement.targetUsers,
            startDate=announcement.startDate,
            endDate=announcement.endDate,
            createdAt=announcement.createdAt,
            updatedAt=announcement.updatedAt,
        )


class NotificationCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    type: NotificationCategory
    priority: NotificationPriority = NotificationPriority.MEDIUM
    userId: str | None = None


class NotificationReadRequest(BaseModel):
    isRead: bool = True


class NotificationResponse(BaseModel):
    id: str
    title: str
    message: str
    type: NotificationCategory
    priority: NotificationPriority
    userId: str | None = None
    isRead: bool
    readAt: datetime | None = None
    createdAt: datetime

    @classmethod
    def from_document(cls, notification: Notification) -> NotificationResponse:
        return cls(
            id=str(notification.id),
            title=notification.title,
            message=notification.message,
            type=notification.type,
            priority=notification.priority,
            userId=str(notification.userId) if notification.userId else None,
            isRead=notification.isRead,
            readAt=notification.readAt,
            createdAt=notification.createdAt,
        )


class QueueDrainResponse(BaseModel):
    processedCount: int
    sentCount: int
    failedCount: int
    errors: list[str]


class ErrorLogCreateRequest(BaseModel):
    """Error reported by a client or another service."""

    level: ErrorLevel = ErrorLevel.ERROR
    message: str = Field(..., min_length=1, max_length=2000)
    source: str = Field(..., min_length=1, max_length=100)
    stack: str | None = None
    url: str | None = None
    userAgent: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ErrorLogResponse(BaseModel):
    id: str
    level: ErrorLevel
    message: str
    source: str
    stack: str | None = None
    url: str | None = None
    userAgent: str | None = None
    userId: str | None = None
    metadata: dict[str, Any]
    resolved: bool
    timestamp: datetime

    @classmethod
    def from_document(cls, entry: ErrorLog) -> ErrorLogResponse:
        return cls(
            id=str(entry.id),
            level=entry.level,
            message=entry.message,
            source=entry.source,
            stack=entry.stack,
            url=entry.url,
            userAgent=entry.userAgent,
            userId=str(entry.userId) if entry.userId else None,
            metadata=entry.metadata,
            resolved=entry.resolved,
            timestamp=entry.timestamp,
        )


class ErrorLogStats(BaseModel):
    totalErrors: int
    criticalErrors: int
    errorsByLevel: dict[str, int]
    errorsBySource: dict[str, int]
    last24Hours: int


class ErrorLogCleanupResponse(BaseModel):
    deletedCount: int
    olderThanDays: int


class ActivityResponse(BaseModel):
    id: str
    userId: str
    action: ActivityType
    description: str
    metadata: dict[str, Any] | None = None
    ipAddress: str | None = None
    userAgent: str | None = None
    createdAt: datetime

    @classmethod
    def from_document(cls, activity: UserActivity) -> ActivityResponse:
        return cls(
            id=str(activity.id),
            userId=str(activity.userId),
            action=activity.action,
            description=activity.description,
            metadata=activity.metadata,
            ipAddress=activity.ipAddress,
            userAgent=activity.userAgent,
            createdAt=activity.createdAt,
        )


class AnnouncementStats(BaseModel):
    totalAnnouncements: int
    activeCount: int
    inactiveCount: int
    activePercentage: float
    announcementsByType: dict[str, int]
    scheduledCount: int = Field(..., description="Inactive announcements that start in the future")
    expiredCount: int = Field(..., description="Active announcements past their end date")
    last24Hours: int


class NotificationStats(BaseModel):
    totalNotifications: int
    unreadNotifications: int
    readPercentage: float
    notificationsByType: dict[str, int]
    notificationsByPriority: dict[str, int]
    last24Hours: int


class TopActivityUser(BaseModel):
    userId: str
    userName: str
    count: int


class ActivityStats(BaseModel):
    totalActivities: int
    uniqueUsers: int
    activitiesByAction: dict[str, int]
    last24Hours: int
    topUsers: list[TopActivityUser]
