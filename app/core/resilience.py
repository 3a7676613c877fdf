from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)


class CircuitState:
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(httpx.RequestError):
    """Raised without touching the network while a circuit is open."""


@dataclass
class CircuitConfig:
    failure_threshold: int = 3
    recovery_timeout_seconds: int = 60
    half_open_max_calls: int = 1


class CircuitBreaker:
    """Circuit breaker keyed by upstream host."""

    def __init__(self, config: CircuitConfig | None = None):
        self._config = config or CircuitConfig(
            failure_threshold=settings.CB_FAILURE_THRESHOLD,
            recovery_timeout_seconds=settings.CB_RECOVERY_TIMEOUT_SECONDS,
            half_open_max_calls=settings.CB_HALF_OPEN_MAX_CALLS,
        )
        self._state: dict[str, str] = {}
        self._failure_count: dict[str, int] = {}
        self._opened_at: dict[str, float] = {}
        self._half_open_inflight: dict[str, int] = {}
        self._lock = asyncio.Lock()

    def state(self, key: str) -> str:
        return self._state.get(key, CircuitState.CLOSED)

    async def allow_request(self, key: str) -> bool:
        async with self._lock:
            state = self.state(key)

            if state == CircuitState.CLOSED:
                return True

            if state == CircuitState.OPEN:
                opened_at = self._opened_at.get(key, 0)
                if time.monotonic() - opened_at < self._config.recovery_timeout_seconds:
                    return False
                self._state[key] = CircuitState.HALF_OPEN
                self._half_open_inflight[key] = 0

            # Half-open: only a limited number of trial calls at a time
            inflight = self._half_open_inflight.get(key, 0)
            if inflight < self._config.half_open_max_calls:
                self._half_open_inflight[key] = inflight + 1
                return True
            return False

    async def on_success(self, key: str) -> None:
        async with self._lock:
            prev_state = self.state(key)
            self._failure_count[key] = 0
            self._state[key] = CircuitState.CLOSED
            self._opened_at.pop(key, None)
            self._half_open_inflight.pop(key, None)
            if prev_state != CircuitState.CLOSED:
                logger.info("Circuit closed", extra={"circuit": key, "prev_state": prev_state})

    async def on_failure(self, key: str) -> None:
        async with self._lock:
            count = self._failure_count.get(key, 0) + 1
            self._failure_count[key] = count

            state = self.state(key)
            if state == CircuitState.HALF_OPEN:
                self._trip_open(key)
            elif count >= self._config.failure_threshold and state != CircuitState.OPEN:
                self._trip_open(key)

    def _trip_open(self, key: str) -> None:
        self._state[key] = CircuitState.OPEN
        self._opened_at[key] = time.monotonic()
        logger.warning(
            "Circuit opened",
            extra={
                "circuit": key,
                "failure_threshold": self._config.failure_threshold,
                "recovery_timeout_seconds": self._config.recovery_timeout_seconds,
            },
        )


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    initial_backoff_seconds: float = 0.2
    backoff_multiplier: float = 2.0
    jitter_ratio: float = 0.2
    retry_on_statuses: tuple[int, ...] = (408, 425, 429, 500, 502, 503, 504)
    retry_on_exceptions: tuple[type[BaseException], ...] = (
        httpx.ReadTimeout,
        httpx.ConnectTimeout,
        httpx.RemoteProtocolError,
        httpx.NetworkError,
    )
    idempotent_methods: frozenset[str] = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

    def compute_backoff(self, attempt: int) -> float:
        base = self.initial_backoff_seconds * (self.backoff_multiplier ** (attempt - 1))
        jitter = base * self.jitter_ratio * (2 * random.random() - 1)  # nosec B311
        return max(0.0, base + jitter)


class ConcurrencyLimiter:
    def __init__(self, max_concurrent: int | None = None):
        self._semaphore = asyncio.Semaphore(
            max_concurrent or settings.MAX_CONCURRENT_REQUESTS
        )

    @asynccontextmanager
    async def slot(self):
        async with self._semaphore:
            yield


class ResilientHttpClient:
    """
    httpx.AsyncClient wrapper with timeout, retry, circuit breaker and
    concurrency limiting.

    Non-idempotent methods (POST, PATCH) are retried only when the caller
    passes ``idempotent=True``, which gateway calls do when the request
    carries its own idempotency reference.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float | None = None,
        retry_policy: RetryPolicy | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        concurrency_limiter: ConcurrencyLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout_seconds or settings.HTTP_TIMEOUT_SECONDS
        self._retry = retry_policy or RetryPolicy(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            initial_backoff_seconds=settings.RETRY_INITIAL_BACKOFF_SECONDS,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
            jitter_ratio=settings.RETRY_JITTER_RATIO,
        )
        self._circuit = circuit_breaker or CircuitBreaker()
        self._limit = concurrency_limiter or ConcurrencyLimiter()
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=transport)

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
        auth: httpx.Auth | tuple[str, str] | None = None,
        allowed_statuses: Iterable[int] | None = None,
        circuit_key: str | None = None,
        idempotent: bool | None = None,
    ) -> httpx.Response:
        key = circuit_key or urlsplit(url).netloc or url
        method = method.upper()
        can_retry = (
            idempotent if idempotent is not None else method in self._retry.idempotent_methods
        )
        max_attempts = self._retry.max_attempts if can_retry else 1
        allowed = set(allowed_statuses or [])

        if not await self._circuit.allow_request(key):
            logger.warning("Circuit open - short-circuiting request", extra={"circuit": key})
            raise CircuitOpenError(f"Circuit open for {key}")

        async with self._limit.slot():
            for attempt in range(1, max_attempts + 1):
                try:
                    start = time.perf_counter()
                    response = await self._client.request(
                        method, url, headers=headers, params=params, json=json, auth=auth
                    )
                    latency_ms = int((time.perf_counter() - start) * 1000)
                except self._retry.retry_on_exceptions as exc:  # type: ignore[misc]
                    await self._circuit.on_failure(key)
                    if attempt < max_attempts:
                        backoff = self._retry.compute_backoff(attempt)
                        logger.warning(
                            "HTTP retry on exception",
                            extra={
                                "circuit": key,
                                "method": method,
                                "attempt": attempt,
                                "exception": type(exc).__name__,
                                "backoff_seconds": round(backoff, 3),
                            },
                        )
                        await asyncio.sleep(backoff)
                        continue
                    logger.error(
                        "HTTP request error - giving up",
                        extra={"circuit": key, "method": method, "exception": type(exc).__name__},
                    )
                    raise
                except httpx.HTTPError as exc:
                    await self._circuit.on_failure(key)
                    logger.error(
                        "HTTP request error - non-retryable exception",
                        extra={"circuit": key, "method": method, "exception": type(exc).__name__},
                    )
                    raise

                if response.status_code < 400 or response.status_code in allowed:
                    await self._circuit.on_success(key)
                    logger.info(
                        "HTTP request success",
                        extra={
                            "circuit": key,
                            "method": method,
                            "status": response.status_code,
                            "latency_ms": latency_ms,
                        },
                    )
                    return response

                if response.status_code in self._retry.retry_on_statuses and attempt < max_attempts:
                    backoff = self._retry.compute_backoff(attempt)
                    logger.warning(
                        "HTTP retry on status",
                        extra={
                            "circuit": key,
                            "method": method,
                            "status": response.status_code,
                            "attempt": attempt,
                            "backoff_seconds": round(backoff, 3),
                        },
                    )
                    await asyncio.sleep(backoff)
                    continue

                # 4xx answers are the upstream rejecting our request, not an outage
                if response.status_code >= 500:
                    await self._circuit.on_failure(key)
                logger.error(
                    "HTTP request failed",
                    extra={
                        "circuit": key,
                        "method": method,
                        "status": response.status_code,
                        "response_text": response.text[:512],
                    },
                )
                response.raise_for_status()

        raise httpx.RequestError("Request failed without response")
