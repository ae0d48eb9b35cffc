"""
Adapter contract shared by every vendor integration.

Adapters perform the actual vendor HTTP call and translate every failure
into an AIServiceError. Which operations an adapter offers is declared by
its base class and mirrored in the `capabilities` class attribute.
"""
import json
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, ClassVar, FrozenSet, Optional

import httpx

from aigateway.core.config import settings
from aigateway.core.logging import ProviderCallTracker
from aigateway.services.gateway.errors import AIServiceError, ErrorCode
from aigateway.services.gateway.types import Capability, ChatMessage


class AIResponse:
    """Completion returned by a chat adapter."""

    def __init__(
        self,
        content: str,
        model: str | None = None,
        prompt_tokens: int | None = None,
        completion_tokens: int | None = None,
        total_tokens: int | None = None,
        finish_reason: str | None = None,
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = total_tokens
        self.finish_reason = finish_reason


class GeneratedImage:
    """One image returned by an image adapter."""

    def __init__(self, url: str | None = None, b64_json: str | None = None, revised_prompt: str | None = None):
        self.url = url
        self.b64_json = b64_json
        self.revised_prompt = revised_prompt

    @property
    def image_url(self) -> str:
        if self.url:
            return self.url
        return f"data:image/png;base64,{self.b64_json or ''}"


# ========================================
# Error mapping
# ========================================

def error_code_for_status(status_code: int) -> ErrorCode:
    if status_code in (401, 403):
        return ErrorCode.UNAUTHORIZED
    if status_code == 429:
        return ErrorCode.RATE_LIMIT_EXCEEDED
    if status_code in (400, 404, 422):
        return ErrorCode.BAD_REQUEST
    if status_code >= 500:
        return ErrorCode.SERVER_ERROR
    return ErrorCode.UNKNOWN_ERROR


def _error_message(body: bytes, status_code: int) -> str:
    try:
        data = json.loads(body) if body else {}
    except ValueError:
        return body.decode(errors="replace") or f"HTTP {status_code}"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("message") or error.get("status") or f"HTTP {status_code}"
    if isinstance(error, str):
        return error
    return f"HTTP {status_code}"


def api_error(provider: str, status_code: int, body: bytes) -> AIServiceError:
    message = _error_message(body, status_code)
    return AIServiceError(provider, error_code_for_status(status_code), f"HTTP {status_code}: {message}")


def transport_error(provider: str, exc: httpx.HTTPError) -> AIServiceError:
    if isinstance(exc, httpx.TimeoutException):
        return AIServiceError(provider, ErrorCode.TIMEOUT, "Request to provider timed out")
    return AIServiceError(provider, ErrorCode.CONNECTION_ERROR, f"Connection to provider failed: {exc}")


def fail(call: Optional[ProviderCallTracker], error: AIServiceError) -> AIServiceError:
    """Record error on the call tracker and hand it back for raising."""
    if call is not None:
        call.set_error(error.code_value, error.message)
    return error


# ========================================
# Adapter base classes
# ========================================

class ProviderAdapter(ABC):
    """HTTP plumbing common to all adapters."""

    provider_name: str = "unknown"
    capabilities: ClassVar[FrozenSet[Capability]] = frozenset()

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = settings.AI_REQUEST_TIMEOUT if timeout is None else timeout
        self.transport = transport

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def resolve_model(self, parameters: dict[str, Any]) -> str:
        return parameters.get("model") or self.model


class ChatAdapter(ProviderAdapter):
    capabilities = frozenset({Capability.CHAT})

    @abstractmethod
    async def chat_completion(self, messages: list[ChatMessage], parameters: dict[str, Any]) -> AIResponse:
        """Send a chat completion request."""

    async def health_check(self) -> bool:
        try:
            await self.chat_completion([ChatMessage(role="user", content="ping")], {"maxTokens": 1, "maxOutputTokens": 1})
            return True
        except AIServiceError:
            return False


class StreamingChatAdapter(ChatAdapter):
    capabilities = frozenset({Capability.CHAT, Capability.STREAMING_CHAT})

    @abstractmethod
    def chat_completion_stream(self, messages: list[ChatMessage], parameters: dict[str, Any]) -> AsyncIterator[str]:
        """Yield content deltas as the vendor produces them."""


class ImageAdapter(ProviderAdapter):
    capabilities = frozenset({Capability.IMAGE})

    @abstractmethod
    async def generate(self, prompt: str, parameters: dict[str, Any]) -> list[GeneratedImage]:
        pass

    @abstractmethod
    async def create_variation(self, image: bytes, parameters: dict[str, Any]) -> list[GeneratedImage]:
        pass

    @abstractmethod
    async def edit(self, image: bytes, mask: bytes | None, prompt: str, parameters: dict[str, Any]) -> list[GeneratedImage]:
        pass
