"""
Exception hierarchy for the AI gateway.

Every failure that leaves the gateway is one of the structured kinds below,
never a raw vendor or transport exception.
"""
from enum import Enum
from typing import Any, List


class ErrorCode(str, Enum):
    """Canonical failure codes adapters raise into."""
    MISSING_API_KEY = "MISSING_API_KEY"
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    BAD_REQUEST = "BAD_REQUEST"
    SERVER_ERROR = "SERVER_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    TIMEOUT = "TIMEOUT"
    CONTENT_BLOCKED = "CONTENT_BLOCKED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class GatewayError(Exception):
    """Base exception for gateway errors."""
    pass


class AIServiceError(GatewayError):
    """A provider call failed."""

    def __init__(self, provider: str, code: ErrorCode | str, message: str):
        super().__init__(message)
        self.provider = provider
        try:
            self.code = ErrorCode(code)
        except ValueError:
            self.code = code
        self.message = message

    @property
    def code_value(self) -> str:
        return getattr(self.code, "value", self.code)

    def __repr__(self) -> str:
        return f"AIServiceError(provider={self.provider!r}, code={self.code_value!r}, message={self.message!r})"


class RateLimitError(GatewayError):
    """The local rate limiter rejected a call."""

    def __init__(self, retry_after: int, message: str | None = None):
        super().__init__(message or f"Rate limit exceeded. Try again in {retry_after} seconds.")
        self.retry_after = retry_after


class ParameterValidationError(GatewayError):
    """Request parameters violate the provider's schema."""

    def __init__(self, provider: str, errors: List[Any]):
        messages = ", ".join(getattr(e, "message", str(e)) for e in errors)
        super().__init__(f"Invalid parameters: {messages}")
        self.provider = provider
        self.errors = errors


class ProviderNotFoundError(GatewayError):
    """No factory is registered for the requested capability/provider pair."""

    def __init__(self, capability: str, provider: str):
        capability = getattr(capability, "value", capability)
        super().__init__(f'{capability.capitalize()} service provider "{provider}" not found')
        self.capability = capability
        self.provider = provider


class UnsupportedCapabilityError(GatewayError):
    """The resolved client does not offer the requested capability."""

    def __init__(self, provider: str, capability: str):
        capability = getattr(capability, "value", capability)
        super().__init__(f'Provider "{provider}" does not support {capability}')
        self.provider = provider
        self.capability = capability
