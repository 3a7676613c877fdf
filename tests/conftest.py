"""Test configuration and fixtures."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
import pytest_asyncio
from beanie import init_beanie
from bson import ObjectId
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from mongomock_motor import AsyncMongoMockClient

from app.core.database import document_models
from app.core.error_handlers import base_api_exception_handler, validation_exception_handler
from app.core.exceptions import BaseAPIException
from app.models.catalog import SchoolClass, Subject
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.user import User, UserRole
from app.services.settings_service import settings_cache
from app.utils.dates import utc_now


@pytest_asyncio.fixture
async def beanie_db():
    """Initialize Beanie on an in-memory MongoDB for tests that touch documents."""
    client = AsyncMongoMockClient()
    database = client.get_database("classroom_billing_test")
    await init_beanie(database=database, document_models=document_models())
    settings_cache.clear()

    yield database

    settings_cache.clear()


@pytest.fixture
def now():
    """Current naive UTC time truncated to milliseconds, the precision MongoDB keeps."""
    current = utc_now()
    return current.replace(microsecond=(current.microsecond // 1000) * 1000)


@pytest.fixture
def mock_email_service():
    service = MagicMock()
    service.send_template = AsyncMock()
    service.send_email = AsyncMock()
    return service


@pytest.fixture
def mock_admin_notifier():
    notifier = MagicMock()
    notifier.new_subscription = AsyncMock(return_value=True)
    notifier.payment_failed = AsyncMock(return_value=True)
    notifier.system_error = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
def admin_user():
    """Admin principal for dependency overrides."""
    user = Mock(spec=User)
    user.id = ObjectId("507f1f77bcf86cd799439011")
    user.email = "admin@example.com"
    user.role = UserRole.ADMIN
    user.isActive = True
    return user


@pytest.fixture
def make_app():
    """Build a minimal app around one router with the standard error handlers."""

    def _make(router, prefix: str = "", overrides: dict | None = None) -> FastAPI:
        app = FastAPI()
        app.include_router(router, prefix=prefix)
        app.add_exception_handler(BaseAPIException, base_api_exception_handler)
        app.add_exception_handler(RequestValidationError, validation_exception_handler)
        for dependency, replacement in (overrides or {}).items():
            app.dependency_overrides[dependency] = replacement
        return app

    return _make


class BillingDataFactory:
    """Creates persisted users, classes and subscriptions."""

    @staticmethod
    async def user(**overrides) -> User:
        data = {"email": f"learner{ObjectId()}@example.com", "name": "Asha Learner"}
        data.update(overrides)
        user = User(**data)
        await user.insert()
        return user

    @staticmethod
    async def school_class(**overrides) -> SchoolClass:
        data = {"name": "Class 10", "price": 9900}
        data.update(overrides)
        school_class = SchoolClass(**data)
        await school_class.insert()
        return school_class

    @staticmethod
    async def subject(class_id, **overrides) -> Subject:
        data = {"classId": class_id, "name": "Physics", "price": 4900}
        data.update(overrides)
        subject = Subject(**data)
        await subject.insert()
        return subject

    @staticmethod
    async def subscription(user_id, now, **overrides) -> Subscription:
        data = {
            "userId": user_id,
            "amount": 7500,
            "status": SubscriptionStatus.ACTIVE,
            "startDate": now - timedelta(days=30),
            "endDate": now + timedelta(hours=2),
            "autoRenew": True,
        }
        data.update(overrides)
        subscription = Subscription(**data)
        await subscription.insert()
        return subscription


@pytest.fixture
def factory():
    return BillingDataFactory()
