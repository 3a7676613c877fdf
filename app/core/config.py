from __future__ import annotations

import os
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Settings(BaseSettings):
    # API configuration
    API_V1_STR: str = "/api"
    PROJECT_NAME: str = "Classroom Billing"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = _env_flag("DEBUG")

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    # Security
    SECRET_KEY: str = os.getenv("SECRET_KEY", "development_secret_key")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))

    # Shared secret used by schedulers calling the cron endpoints
    CRON_SECRET: str = os.getenv("CRON_SECRET", "")

    # Rate limiting (shared counters stored in MongoDB)
    RATE_LIMIT_LOGIN_PER_MINUTE: int = int(os.getenv("RATE_LIMIT_LOGIN_PER_MINUTE", 10))
    RATE_LIMIT_AUTO_RENEWAL_PER_MINUTE: int = int(
        os.getenv("RATE_LIMIT_AUTO_RENEWAL_PER_MINUTE", 10)
    )

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_PATH: Path = Path(os.getenv("LOG_PATH", "logs"))
    LOG_BACKUP_COUNT: int = 30  # Keep 30 days of logs
    LOG_TO_FILE: bool = _env_flag("LOG_TO_FILE", "true")

    # MongoDB configuration
    MONGODB_URL: str = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
    MONGODB_DATABASE: str = os.getenv("MONGODB_DATABASE", "classroom_billing")
    # Multi-document transactions need a replica set
    MONGODB_USE_TRANSACTIONS: bool = _env_flag("MONGODB_USE_TRANSACTIONS")
    DB_QUERY_TIMEOUT_SECONDS: float = float(os.getenv("DB_QUERY_TIMEOUT_SECONDS", 10))

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", 30))
    MAX_CONCURRENT_REQUESTS: int = 10

    # Resilience configuration
    CB_FAILURE_THRESHOLD: int = int(os.getenv("CB_FAILURE_THRESHOLD", 3))
    CB_RECOVERY_TIMEOUT_SECONDS: int = int(os.getenv("CB_RECOVERY_TIMEOUT_SECONDS", 60))
    CB_HALF_OPEN_MAX_CALLS: int = int(os.getenv("CB_HALF_OPEN_MAX_CALLS", 1))

    RETRY_MAX_ATTEMPTS: int = int(os.getenv("RETRY_MAX_ATTEMPTS", 3))
    RETRY_INITIAL_BACKOFF_SECONDS: float = float(
        os.getenv("RETRY_INITIAL_BACKOFF_SECONDS", 0.2)
    )
    RETRY_BACKOFF_MULTIPLIER: float = float(os.getenv("RETRY_BACKOFF_MULTIPLIER", 2.0))
    RETRY_JITTER_RATIO: float = float(os.getenv("RETRY_JITTER_RATIO", 0.2))

    # Razorpay (fallbacks when the admin settings store has no keys)
    RAZORPAY_KEY_ID: str = os.getenv("RAZORPAY_KEY_ID", "")
    RAZORPAY_KEY_SECRET: str = os.getenv("RAZORPAY_KEY_SECRET", "")
    RAZORPAY_WEBHOOK_SECRET: str = os.getenv("RAZORPAY_WEBHOOK_SECRET", "")
    RAZORPAY_BASE_URL: str = os.getenv("RAZORPAY_BASE_URL", "https://api.razorpay.com/v1")
    PAYMENT_MODE: str = os.getenv(
        "PAYMENT_MODE", os.getenv("NEXT_PUBLIC_PAYMENT_MODE", "test")
    )

    # Cashfree Payment Gateway configuration
    CASHFREE_APP_ID: str = os.getenv("CASHFREE_APP_ID", "")
    CASHFREE_SECRET_KEY: str = os.getenv("CASHFREE_SECRET_KEY", "")
    CASHFREE_ENVIRONMENT: str = os.getenv("CASHFREE_ENVIRONMENT", "SANDBOX")
    CASHFREE_PRODUCTION_URL: str = "https://api.cashfree.com/pg"
    CASHFREE_SANDBOX_URL: str = "https://sandbox.cashfree.com/pg"
    CASHFREE_API_VERSION: str = os.getenv("CASHFREE_API_VERSION", "2025-01-01")

    # Billing
    DEFAULT_CURRENCY: str = "INR"
    DEFAULT_RENEWAL_AMOUNT: int = 7500  # paise

    # SMTP (fallbacks when the admin settings store has no values)
    SMTP_HOST: str = os.getenv("SMTP_HOST", "smtp.hostinger.com")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", 587))
    SMTP_USER: str = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", os.getenv("SMTP_PASS", ""))
    SMTP_FROM: str = os.getenv("SMTP_FROM", "")
    SMTP_FROM_NAME: str = os.getenv("SMTP_FROM_NAME", "Classroom")
    SMTP_TIMEOUT_SECONDS: float = float(os.getenv("SMTP_TIMEOUT_SECONDS", 20))

    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "")

    # Public site URL used in email links and gateway return URLs
    SITE_URL: str = os.getenv(
        "SITE_URL", os.getenv("NEXT_PUBLIC_SITE_URL", "http://localhost:3000")
    )

    # Admin settings cache
    ADMIN_SETTINGS_CACHE_TTL_SECONDS: int = int(
        os.getenv("ADMIN_SETTINGS_CACHE_TTL_SECONDS", 300)
    )

    # Scheduler configuration
    SCHEDULER_ENABLED: bool = _env_flag("SCHEDULER_ENABLED", "true")
    AUTO_RENEWAL_SCHEDULE_HOUR: int = int(os.getenv("AUTO_RENEWAL_SCHEDULE_HOUR", "2"))
    AUTO_RENEWAL_SCHEDULE_MINUTE: int = int(
        os.getenv("AUTO_RENEWAL_SCHEDULE_MINUTE", "0")
    )
    EXPIRY_SCHEDULE_HOUR: int = int(os.getenv("EXPIRY_SCHEDULE_HOUR", "3"))
    EXPIRY_SCHEDULE_MINUTE: int = int(os.getenv("EXPIRY_SCHEDULE_MINUTE", "0"))
    NOTIFICATION_DRAIN_INTERVAL_MINUTES: int = int(
        os.getenv("NOTIFICATION_DRAIN_INTERVAL_MINUTES", "5")
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, list | str):
            return v
        raise ValueError(v)

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    class Config:
        case_sensitive = True
        env_file = ".env"
        extra = "ignore"  # Ignore extra fields from .env file


# Create settings instance
settings = Settings()
