from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from datetime import timedelta

from fastapi import Request
from pymongo import ReturnDocument

from app.core.exceptions import RateLimitException
from app.models.rate_limit import RateLimitCounter
from app.utils.dates import utc_now

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


class SharedRateLimiter:
    """
    Fixed-window request counter kept in MongoDB.

    Every API worker increments the same document, so the limit holds across
    processes and hosts. Window documents expire through a TTL index.
    """

    def __init__(self, scope: str, limit: int, window_seconds: int = 60):
        self.scope = scope
        self.limit = limit
        self.window_seconds = window_seconds

    def window_key(self, client: str, now: float | None = None) -> tuple[str, int]:
        now = now if now is not None else time.time()
        window_start = int(now // self.window_seconds) * self.window_seconds
        return f"{self.scope}:{client}:{window_start}", window_start

    async def hit(self, client: str) -> int:
        """Count one request and return the total for the current window."""
        key, _ = self.window_key(client)
        collection = RateLimitCounter.get_motor_collection()
        document = await collection.find_one_and_update(
            {"key": key},
            {
                "$inc": {"count": 1},
                "$setOnInsert": {
                    "expiresAt": utc_now() + timedelta(seconds=self.window_seconds * 2)
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return int(document["count"])

    async def check(self, client: str) -> None:
        count = await self.hit(client)
        if count > self.limit:
            logger.warning(
                "Rate limit exceeded",
                extra={"scope": self.scope, "client": client, "count": count},
            )
            raise RateLimitException(
                "Too many requests. Please try again later.",
                retry_after=self.window_seconds,
            )


def rate_limit(
    scope: str, limit: int, window_seconds: int = 60
) -> Callable[[Request], Awaitable[None]]:
    """FastAPI dependency factory enforcing a shared per-client limit."""
    limiter = SharedRateLimiter(scope, limit, window_seconds)

    async def dependency(request: Request) -> None:
        await limiter.check(get_client_ip(request))

    dependency.limiter = limiter
    return dependency


async def add_security_headers(request: Request, call_next):
    """Add security headers to responses"""
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    return response
