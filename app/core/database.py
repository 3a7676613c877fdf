from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import TypeVar
from urllib.parse import urlparse

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorClientSession
from pymongo.errors import ConnectionFailure

from app.core.config import settings
from app.core.exceptions import RequestTimeoutException

logger = logging.getLogger(__name__)

T = TypeVar("T")


def extract_database_name_from_url(mongodb_url: str) -> str:
    """Extract database name from MongoDB URL"""
    try:
        database_name = urlparse(mongodb_url).path.lstrip("/")
        return database_name or settings.MONGODB_DATABASE
    except ValueError as e:
        logger.warning(f"Could not extract database name from URL: {e}. Using default.")
        return settings.MONGODB_DATABASE


def mask_mongodb_url(mongodb_url: str) -> str:
    """Hide the password part of a connection string."""
    if "@" not in mongodb_url:
        return mongodb_url
    credentials, host = mongodb_url.split("://", 1)[-1].split("@", 1)
    scheme = mongodb_url.split("://", 1)[0]
    if ":" in credentials:
        user, _ = credentials.split(":", 1)
        credentials = f"{user}:***"
    return f"{scheme}://{credentials}@{host}"


class Database:
    client: AsyncIOMotorClient | None = None
    database = None


db = Database()


def document_models() -> list:
    # local imports to avoid circulars
    from app.models.activity import UserActivity
    from app.models.admin_setting import AdminSetting
    from app.models.announcement import Announcement
    from app.models.catalog import SchoolClass, Subject
    from app.models.error_log import ErrorLog
    from app.models.notification import Notification
    from app.models.notification_queue import NotificationQueueEntry
    from app.models.payment import Payment
    from app.models.pricing import PricingPlan
    from app.models.rate_limit import RateLimitCounter
    from app.models.subscription import Subscription
    from app.models.user import User

    return [
        User,
        SchoolClass,
        Subject,
        PricingPlan,
        Subscription,
        Payment,
        NotificationQueueEntry,
        AdminSetting,
        Announcement,
        Notification,
        ErrorLog,
        UserActivity,
        RateLimitCounter,
    ]


async def get_database():
    """Get database instance"""
    return db.database


async def connect_to_mongo():
    """Create database connection"""
    try:
        db.client = AsyncIOMotorClient(settings.MONGODB_URL)
        db.database = db.client[extract_database_name_from_url(settings.MONGODB_URL)]

        await db.client.admin.command("ping")
        logger.info(f"Connected to MongoDB at {mask_mongodb_url(settings.MONGODB_URL)}")

        await init_beanie(database=db.database, document_models=document_models())
        logger.info("Initialized Beanie")

    except ConnectionFailure as e:
        logger.error(f"Failed to connect to MongoDB: {e}")
        raise
    except Exception as e:
        logger.error(f"Unexpected error connecting to MongoDB: {e}")
        raise


async def close_mongo_connection():
    """Close database connection"""
    if db.client:
        db.client.close()
        logger.info("Disconnected from MongoDB")


async def ping_database() -> bool:
    if db.client is None:
        return False
    try:
        await db.client.admin.command("ping")
        return True
    except ConnectionFailure:
        return False


@asynccontextmanager
async def transaction() -> AsyncIterator[AsyncIOMotorClientSession | None]:
    """
    Run a block of writes atomically.

    Yields a session bound to an open transaction when transactions are
    enabled, otherwise ``None`` so callers can pass ``session=`` unconditionally.
    """
    if not settings.MONGODB_USE_TRANSACTIONS or db.client is None:
        yield None
        return

    async with await db.client.start_session() as session:
        async with session.start_transaction():
            yield session


async def with_timeout(
    awaitable: Awaitable[T], seconds: float | None = None, operation: str = "query"
) -> T:
    """Await a database call, raising 408 when it takes too long."""
    timeout = seconds if seconds is not None else settings.DB_QUERY_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except TimeoutError as e:
        logger.warning(
            "Database operation timed out",
            extra={"operation": operation, "timeout_seconds": timeout},
        )
        raise RequestTimeoutException(f"Database {operation} timed out") from e
