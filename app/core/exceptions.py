"""Custom exception classes for standardized error handling."""

from enum import Enum
from typing import Any


class BaseAPIException(Exception):
    """Base exception class for all API exceptions."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class BadRequestException(BaseAPIException):
    """Exception for malformed or semantically invalid requests."""

    def __init__(
        self,
        message: str = "Bad request",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message, error_code="BAD_REQUEST", status_code=400, details=details
        )


class NotFoundException(BaseAPIException):
    """Exception for resource not found errors."""

    def __init__(self, resource: str = "Resource", resource_id: str | None = None):
        message = f"{resource} not found"
        if resource_id:
            message += f" with ID: {resource_id}"

        super().__init__(message=message, error_code="NOT_FOUND", status_code=404)


class ConflictException(BaseAPIException):
    """Exception for resource conflict errors (e.g., duplicate pricing plan)."""

    def __init__(
        self,
        message: str = "Resource already exists",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message, error_code="CONFLICT", status_code=409, details=details
        )


class UnauthorizedException(BaseAPIException):
    """Exception for unauthorized access errors."""

    def __init__(self, message: str = "Unauthorized access"):
        super().__init__(message=message, error_code="UNAUTHORIZED", status_code=401)


class AuthorizationException(BaseAPIException):
    """Exception for authorization errors."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(
            message=message, error_code="AUTHORIZATION_ERROR", status_code=403
        )


class RequestTimeoutException(BaseAPIException):
    """Exception raised when a bounded operation runs out of time."""

    def __init__(self, message: str = "Request timed out"):
        super().__init__(message=message, error_code="REQUEST_TIMEOUT", status_code=408)


class RateLimitException(BaseAPIException):
    """Exception raised when a client exceeds its request quota."""

    def __init__(self, message: str = "Too many requests", retry_after: int = 60):
        super().__init__(
            message=message,
            error_code="RATE_LIMIT_EXCEEDED",
            status_code=429,
            details={"retry_after": retry_after},
        )


class PaymentErrorKind(str, Enum):
    """Closed set of failures a payment gateway can report."""

    NOT_CONFIGURED = "NOT_CONFIGURED"
    DISABLED = "DISABLED"
    TIMEOUT = "TIMEOUT"
    NETWORK = "NETWORK"
    REJECTED = "REJECTED"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    NOT_PAID = "NOT_PAID"
    INVALID_AMOUNT = "INVALID_AMOUNT"


PAYMENT_ERROR_STATUS: dict[PaymentErrorKind, int] = {
    PaymentErrorKind.NOT_CONFIGURED: 503,
    PaymentErrorKind.DISABLED: 503,
    PaymentErrorKind.TIMEOUT: 504,
    PaymentErrorKind.NETWORK: 502,
    PaymentErrorKind.REJECTED: 502,
    PaymentErrorKind.INVALID_SIGNATURE: 400,
    PaymentErrorKind.NOT_PAID: 400,
    PaymentErrorKind.INVALID_AMOUNT: 400,
}


class PaymentGatewayException(BaseAPIException):
    """Failure at the payment adapter boundary, tagged with its kind."""

    def __init__(
        self,
        kind: PaymentErrorKind,
        message: str,
        gateway: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.kind = kind
        self.gateway = gateway
        payload = {"kind": kind.value}
        if gateway:
            payload["gateway"] = gateway
        payload.update(details or {})
        super().__init__(
            message=message,
            error_code=f"PAYMENT_{kind.value}",
            status_code=PAYMENT_ERROR_STATUS[kind],
            details=payload,
        )

    @property
    def retryable(self) -> bool:
        return self.kind in (PaymentErrorKind.TIMEOUT, PaymentErrorKind.NETWORK)
