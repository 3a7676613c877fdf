"""
Admin Endpoints Module

This module combines the back-office routers: users, subscriptions and
auto-renewal, payments, pricing, settings, announcements, notifications,
error logs and activities.
"""

from fastapi import APIRouter

from app.api.endpoints.admin import (
    activities,
    announcements,
    error_logs,
    notifications,
    payments,
    pricing,
    settings,
    subscriptions,
    users,
)

# Create main admin router
router = APIRouter()

# Include all admin sub-routers
router.include_router(users.router, prefix="/users", tags=["Admin - Users"])
router.include_router(
    subscriptions.router, prefix="/subscriptions", tags=["Admin - Subscriptions"]
)
router.include_router(payments.router, prefix="/payments", tags=["Admin - Payments"])
router.include_router(pricing.router, prefix="/pricing", tags=["Admin - Pricing"])
router.include_router(settings.router, prefix="/settings", tags=["Admin - Settings"])
router.include_router(
    announcements.router, prefix="/announcements", tags=["Admin - Announcements"]
)
router.include_router(
    notifications.router, prefix="/notifications", tags=["Admin - Notifications"]
)
router.include_router(error_logs.router, prefix="/error-logs", tags=["Admin - Error Logs"])
router.include_router(activities.router, prefix="/activities", tags=["Admin - Activities"])
