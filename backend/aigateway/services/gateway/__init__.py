"""
AI provider gateway - registry, clients, retry, rate limiting and streaming.
"""
from aigateway.services.gateway.clients import ChatClient, ImageClient, limit_key
from aigateway.services.gateway.errors import (
    AIServiceError,
    ErrorCode,
    GatewayError,
    ParameterValidationError,
    ProviderNotFoundError,
    RateLimitError,
    UnsupportedCapabilityError,
)
from aigateway.services.gateway.providers import build_registry
from aigateway.services.gateway.rate_limit import (
    InMemoryRateLimitStore,
    RateLimiter,
    RateLimiterManager,
    RateLimitRule,
    RateLimitStore,
)
from aigateway.services.gateway.registry import ProviderRegistry
from aigateway.services.gateway.retry import RetryConfig, RetryHandler, classify_error, with_retry
from aigateway.services.gateway.streaming import StreamingDispatcher
from aigateway.services.gateway.types import (
    Capability,
    ChatChunk,
    ChatMessage,
    ChatResponse,
    ImageResponse,
    ParameterDefinition,
)

__all__ = [
    "ChatClient",
    "ImageClient",
    "limit_key",
    "AIServiceError",
    "ErrorCode",
    "GatewayError",
    "ParameterValidationError",
    "ProviderNotFoundError",
    "RateLimitError",
    "UnsupportedCapabilityError",
    "build_registry",
    "InMemoryRateLimitStore",
    "RateLimiter",
    "RateLimiterManager",
    "RateLimitRule",
    "RateLimitStore",
    "ProviderRegistry",
    "RetryConfig",
    "RetryHandler",
    "classify_error",
    "with_retry",
    "StreamingDispatcher",
    "Capability",
    "ChatChunk",
    "ChatMessage",
    "ChatResponse",
    "ImageResponse",
    "ParameterDefinition",
]
