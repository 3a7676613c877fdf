from fastapi import APIRouter

from app.api.endpoints import admin, auth, payment, user

# Main API router
api_router = APIRouter()

# Include endpoint routers
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(user.router, prefix="/user", tags=["User"])
api_router.include_router(payment.router, prefix="/payments", tags=["Payments"])
api_router.include_router(admin.router, prefix="/admin")
