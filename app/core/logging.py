import json
import logging
import os
import re
from contextvars import ContextVar
from datetime import UTC, datetime
from logging.handlers import TimedRotatingFileHandler

from app.core.config import settings

# Set by the request middleware so every record of a request carries its client
client_ip_var: ContextVar[str] = ContextVar("client_ip", default="-")

# Standard LogRecord attributes and anything that may carry secrets
_EXCLUDED_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "exc_info",
    "exc_text",
    "stack_info",
    "client_ip",
    "request",
    "response",
    "password",
    "token",
    "secret",
    "credentials",
    "headers",
    "body",
}

_SENSITIVE_KEYS = ("password", "secret", "token", "key", "signature", "auth", "credential")
_EMAIL_PATTERN = re.compile(r"([a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+)")
_BEARER_PATTERN = re.compile(r"(Bearer\s+[A-Za-z0-9-_=.+/]+)")


class UTCFormatter(logging.Formatter):
    """Formatter that always renders timestamps in UTC."""

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=UTC)
        return dt.strftime(datefmt or "%Y-%m-%d %H:%M:%S")


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with ``extra`` fields sanitized."""

    def _safe_value(self, value):
        if value is None or isinstance(value, str | int | float | bool):
            return value
        if isinstance(value, list | tuple | set):
            return [self._safe_value(item) for item in value]
        if isinstance(value, dict):
            return {k: self._safe_value(v) for k, v in sanitize_log_data(value).items()}
        if isinstance(value, datetime):
            return value.isoformat()
        text = str(value)
        return text if len(text) <= 1000 else text[:1000] + "... [TRUNCATED]"

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "client_ip": getattr(record, "client_ip", "-"),
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _EXCLUDED_ATTRS and not key.startswith("_") and not callable(value)
        }
        for key, value in sanitize_log_data(extras).items():
            log_entry[key] = self._safe_value(value)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ClientIPFilter(logging.Filter):
    """Adds the current request's client IP to log records."""

    def filter(self, record):
        if not hasattr(record, "client_ip"):
            record.client_ip = client_ip_var.get()
        return True


def setup_logging():
    """Configure the root logger: console output plus daily rotating files."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logger = logging.getLogger()
    logger.setLevel(log_level)

    text_formatter = UTCFormatter(
        "%(asctime)s UTC - [%(client_ip)s] - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_formatter = JSONFormatter() if settings.is_production else text_formatter

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(text_formatter)
    console_handler.setLevel(log_level)
    console_handler.addFilter(ClientIPFilter())
    logger.addHandler(console_handler)

    if settings.LOG_TO_FILE:
        os.makedirs(settings.LOG_PATH, exist_ok=True)

        file_handler = TimedRotatingFileHandler(
            settings.LOG_PATH / "app.log",
            when="midnight",
            interval=1,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
            utc=True,
        )
        file_handler.setFormatter(file_formatter)
        file_handler.setLevel(log_level)
        file_handler.addFilter(ClientIPFilter())
        logger.addHandler(file_handler)

        error_handler = TimedRotatingFileHandler(
            settings.LOG_PATH / "error.log",
            when="midnight",
            interval=1,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
            utc=True,
        )
        error_handler.setFormatter(file_formatter)
        error_handler.setLevel(logging.ERROR)
        error_handler.addFilter(ClientIPFilter())
        logger.addHandler(error_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logging.info("Logging configured successfully")


def sanitize_log_data(data):
    """
    Mask secrets, emails and bearer tokens in a dict before logging it.

    Nested dicts are sanitized recursively; non-dict input is returned as is.
    """
    if not isinstance(data, dict):
        return data

    sanitized = data.copy()
    for key, value in sanitized.items():
        if isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
        elif isinstance(value, str):
            if any(s in str(key).lower() for s in _SENSITIVE_KEYS):
                sanitized[key] = "********"
            elif _EMAIL_PATTERN.search(value):
                sanitized[key] = _EMAIL_PATTERN.sub("***@***.***", value)
            elif _BEARER_PATTERN.search(value):
                sanitized[key] = _BEARER_PATTERN.sub("Bearer ********", value)
    return sanitized
