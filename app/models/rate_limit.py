from __future__ import annotations

from datetime import datetime

from beanie import Document
from pymongo import ASCENDING, IndexModel


class RateLimitCounter(Document):
    """Request count of one client in one fixed window, shared by all workers."""

    key: str
    count: int = 0
    expiresAt: datetime

    class Settings:
        name = "rate_limits"
        indexes = [
            IndexModel([("key", ASCENDING)], unique=True, name="key_unique"),
            IndexModel([("expiresAt", ASCENDING)], expireAfterSeconds=0, name="ttl"),
        ]
