from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from beanie import Document
from pydantic import Field

from app.utils.dates import utc_now
from app.utils.validators import PyObjectId


class ErrorLevel(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorLog(Document):
    level: ErrorLevel = ErrorLevel.ERROR
    message: str
    source: str
    stack: str | None = None
    url: str | None = None
    userAgent: str | None = None
    userId: PyObjectId | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    resolved: bool = False
    timestamp: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "error_logs"
        indexes = [[("timestamp", -1)], [("level", 1)], [("source", 1)]]
