"""
Retry handler for provider calls.

Retries transient failures with exponential, linear or fixed backoff plus
a symmetric jitter. Anything not classified as transient propagates on the
first attempt; on exhaustion the last error is re-raised unchanged.
"""
import asyncio
import functools
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx

from aigateway.core.config import settings
from aigateway.core.logging import get_logger
from aigateway.services.gateway.errors import AIServiceError, ErrorCode, RateLimitError

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_RETRYABLE_CODES = frozenset({
    ErrorCode.RATE_LIMIT_EXCEEDED.value,
    ErrorCode.SERVER_ERROR.value,
    ErrorCode.CONNECTION_ERROR.value,
    ErrorCode.TIMEOUT.value,
})

# Message fragments that identify a transport-level failure
_TRANSPORT_MARKERS = ("econnrefused", "enotfound", "connection refused", "name or service not known", "timeout", "timed out")

_JITTER_RATIO = 0.25


class ErrorClass(str, Enum):
    TRANSIENT = "transient"
    RATE_LIMITED = "rate_limited"
    PERMANENT = "permanent"


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for one client. Delays are in milliseconds."""
    max_retries: int = 3
    backoff_strategy: str = "exponential"  # exponential, linear or fixed
    base_delay: int = 1000
    max_delay: int = 30000
    retryable_error_codes: frozenset = field(default_factory=lambda: DEFAULT_RETRYABLE_CODES)

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        return cls(
            max_retries=settings.RETRY_MAX_RETRIES,
            backoff_strategy=settings.RETRY_BACKOFF_STRATEGY,
            base_delay=settings.RETRY_BASE_DELAY_MS,
            max_delay=settings.RETRY_MAX_DELAY_MS,
        )


def classify_error(error: BaseException, retryable_codes=DEFAULT_RETRYABLE_CODES) -> ErrorClass:
    """Decide whether an error is worth retrying."""
    if isinstance(error, RateLimitError):
        return ErrorClass.RATE_LIMITED

    if isinstance(error, AIServiceError):
        code = error.code_value
        if code not in retryable_codes:
            return ErrorClass.PERMANENT
        if code == ErrorCode.RATE_LIMIT_EXCEEDED.value:
            return ErrorClass.RATE_LIMITED
        return ErrorClass.TRANSIENT

    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return ErrorClass.TRANSIENT

    message = str(error).lower()
    if any(marker in message for marker in _TRANSPORT_MARKERS):
        return ErrorClass.TRANSIENT

    return ErrorClass.PERMANENT


def is_retryable(error: BaseException, retryable_codes=DEFAULT_RETRYABLE_CODES) -> bool:
    return classify_error(error, retryable_codes) is not ErrorClass.PERMANENT


class RetryHandler:
    """Runs an async operation under a RetryConfig."""

    def __init__(self, config: Optional[RetryConfig] = None, rng: Optional[random.Random] = None):
        self.config = config or RetryConfig()
        self._rng = rng or random.Random()

    def base_delay(self, attempt: int) -> float:
        """Backoff before jitter, in milliseconds, for a zero-based attempt."""
        strategy = self.config.backoff_strategy
        if strategy == "exponential":
            return self.config.base_delay * (2 ** attempt)
        if strategy == "linear":
            return self.config.base_delay * (attempt + 1)
        return float(self.config.base_delay)

    def calculate_delay(self, attempt: int) -> float:
        delay = self.base_delay(attempt)
        jitter = delay * _JITTER_RATIO * (self._rng.random() * 2 - 1)
        return min(max(delay + jitter, 0.0), float(self.config.max_delay))

    def is_retryable(self, error: BaseException) -> bool:
        return is_retryable(error, self.config.retryable_error_codes)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        context: str = "operation",
    ) -> T:
        """
        Run operation, retrying transient failures.

        The operation is invoked at most max_retries + 1 times. Backoff
        sleeps yield to the event loop.
        """
        total = self.config.max_retries + 1
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                if attempt >= self.config.max_retries or not self.is_retryable(e):
                    raise

                delay_ms = self.calculate_delay(attempt)
                logger.warning(
                    "Retrying failed operation",
                    context=context,
                    attempt=attempt + 1,
                    total=total,
                    delay_ms=round(delay_ms),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(delay_ms / 1000)
                attempt += 1


def create_retry_handler(**overrides: Any) -> RetryHandler:
    """Build a handler from settings, overriding individual RetryConfig fields."""
    return RetryHandler(replace(RetryConfig.from_settings(), **overrides))


def with_retry(config: Optional[RetryConfig] = None, context: Optional[str] = None):
    """Decorator form of RetryHandler.execute for async functions."""
    handler = RetryHandler(config)

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await handler.execute(lambda: fn(*args, **kwargs), context or fn.__qualname__)
        return wrapper

    return decorator
