import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.router import api_router
from app.core.config import settings
from app.core.database import close_mongo_connection, connect_to_mongo, ping_database
from app.core.error_handlers import (
    base_api_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.core.exceptions import BaseAPIException
from app.core.logging import client_ip_var, setup_logging
from app.core.scheduler import billing_scheduler
from app.core.security import add_security_headers, get_client_ip
from app.services.integrations.payment.registry import close_http_client
from app.utils.dates import utc_now

APP_VERSION = "1.0.0"


# Lifespan event handler
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await connect_to_mongo()
    billing_scheduler.start()
    logger.info("Classroom Billing API started")
    yield
    # Shutdown
    billing_scheduler.shutdown()
    await close_http_client()
    await close_mongo_connection()
    logger.info("Classroom Billing API shutting down")


# Initialize FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Subscriptions, payments and back-office API for the classroom platform",
    version=APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# Set up logging
setup_logging()
logger = logging.getLogger(__name__)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add security headers middleware
app.add_middleware(BaseHTTPMiddleware, dispatch=add_security_headers)


# Request timing middleware
class TimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        return response


# Client IP logging middleware
class ClientIPMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        client_ip = get_client_ip(request)
        request.state.client_ip = client_ip
        token = client_ip_var.set(client_ip)
        try:
            return await call_next(request)
        finally:
            client_ip_var.reset(token)


app.add_middleware(ClientIPMiddleware)
app.add_middleware(TimingMiddleware)

# Include API routers
app.include_router(api_router, prefix=settings.API_V1_STR)

# Add Prometheus metrics instrumentation
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics")


# Health check endpoint
@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint for deployment verification"""
    if not await ping_database():
        raise HTTPException(status_code=503, detail="Service unhealthy: database unreachable")
    return {
        "status": "healthy",
        "service": "classroom-billing",
        "version": APP_VERSION,
        "timestamp": utc_now().isoformat() + "Z",
    }


# Register exception handlers
app.add_exception_handler(BaseAPIException, base_api_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)
