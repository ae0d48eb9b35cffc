"""
Provider clients.

A client composes the parameter pipeline, the rate limiter and the retry
handler around one adapter. Every call validates first, so invalid input
never reaches the network and never enters the retry loop.
"""
import secrets
import time
from typing import Any, AsyncIterator, FrozenSet, List, Optional

from aigateway.core.logging import get_logger
from aigateway.services.adapter.base import AIResponse, ChatAdapter, GeneratedImage, ImageAdapter
from aigateway.services.gateway.errors import ParameterValidationError, UnsupportedCapabilityError
from aigateway.services.gateway.rate_limit import RateLimiterManager
from aigateway.services.gateway.retry import RetryHandler
from aigateway.services.gateway.types import (
    Capability,
    ChatChunk,
    ChatMessage,
    ChatResponse,
    ImageResponse,
    ParameterDefinition,
    Usage,
)
from aigateway.services.parameters.service import ParameterService, schema_id
from aigateway.services.parameters.validator import ValidationIssue

logger = get_logger(__name__)

ANONYMOUS = "anonymous"


def response_id(provider: str) -> str:
    return f"{provider}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def limit_key(provider: str, capability: Capability | str) -> str:
    """Rate limiter key: chat uses the bare provider name, other capabilities get their own quota."""
    capability = Capability(capability)
    if capability in (Capability.CHAT, Capability.STREAMING_CHAT):
        return provider
    return f"{provider}:{capability.value}"


class ProviderClient:
    """Shared plumbing for chat and image clients."""

    capability: Capability

    def __init__(
        self,
        provider: str,
        adapter: Any,
        parameters: ParameterService,
        retry_handler: Optional[RetryHandler] = None,
        rate_limiters: Optional[RateLimiterManager] = None,
    ):
        self.provider = provider
        self.adapter = adapter
        self.parameters = parameters
        self.retry_handler = retry_handler or RetryHandler()
        self.rate_limiters = rate_limiters

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return self.adapter.capabilities

    def supports(self, capability: Capability | str) -> bool:
        return Capability(capability) in self.capabilities

    @property
    def schema(self) -> str:
        return schema_id(self.provider, self.capability)

    def get_parameter_definitions(self) -> List[ParameterDefinition]:
        return self.parameters.get_provider_definitions(self.schema)

    def prepare_parameters(self, parameters: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Run the parameter pipeline; raise ParameterValidationError when invalid."""
        processed = self.parameters.process_parameters(self.schema, parameters or {})
        if not processed.is_valid:
            raise ParameterValidationError(self.provider, processed.validation.errors)
        return processed.parameters

    def _admit(self, identity: str) -> None:
        if self.rate_limiters is not None:
            self.rate_limiters.check_limit(limit_key(self.provider, self.capability), identity)

    def _require(self, value: Any, field: str) -> None:
        if not value:
            raise ParameterValidationError(
                self.provider,
                [ValidationIssue(field=field, code="REQUIRED", message=f"{field} is required")],
            )


class ChatClient(ProviderClient):
    capability = Capability.CHAT

    adapter: ChatAdapter

    def _to_response(self, result: AIResponse, parameters: dict[str, Any], conversation_id: Optional[str]) -> ChatResponse:
        metadata: dict[str, Any] = {
            "provider": self.provider,
            "model": result.model or parameters.get("model"),
        }
        if result.finish_reason:
            metadata["finishReason"] = result.finish_reason
        if conversation_id:
            metadata["conversationId"] = conversation_id

        usage = None
        if result.total_tokens is not None or result.prompt_tokens is not None:
            usage = Usage(
                prompt_tokens=result.prompt_tokens or 0,
                completion_tokens=result.completion_tokens or 0,
                total_tokens=result.total_tokens or 0,
            )
        return ChatResponse(id=response_id(self.provider), content=result.content, usage=usage, metadata=metadata)

    async def send_message(
        self,
        text: str,
        parameters: Optional[dict[str, Any]] = None,
        conversation_id: Optional[str] = None,
        identity: str = ANONYMOUS,
    ) -> ChatResponse:
        self._require(text, "message")
        return await self.send_message_with_context(
            [ChatMessage(role="user", content=text)],
            parameters,
            conversation_id=conversation_id,
            identity=identity,
        )

    async def send_message_with_context(
        self,
        messages: List[ChatMessage],
        parameters: Optional[dict[str, Any]] = None,
        conversation_id: Optional[str] = None,
        identity: str = ANONYMOUS,
    ) -> ChatResponse:
        self._require(messages, "messages")
        params = self.prepare_parameters(parameters)
        self._admit(identity)

        result = await self.retry_handler.execute(
            lambda: self.adapter.chat_completion(messages, params),
            context=f"{self.provider}.chat",
        )
        return self._to_response(result, params, conversation_id)

    def send_message_stream(
        self,
        text: str,
        parameters: Optional[dict[str, Any]] = None,
        identity: str = ANONYMOUS,
    ) -> AsyncIterator[ChatChunk]:
        self._require(text, "message")
        return self.stream_with_context([ChatMessage(role="user", content=text)], parameters, identity=identity)

    def stream_with_context(
        self,
        messages: List[ChatMessage],
        parameters: Optional[dict[str, Any]] = None,
        identity: str = ANONYMOUS,
    ) -> AsyncIterator[ChatChunk]:
        """
        Validate and admit eagerly, then return an iterator of chunks.

        Streams are not retried: a partially delivered stream cannot be replayed.
        """
        if not self.supports(Capability.STREAMING_CHAT):
            raise UnsupportedCapabilityError(self.provider, Capability.STREAMING_CHAT)
        self._require(messages, "messages")
        params = self.prepare_parameters(parameters)
        self._admit(identity)
        return self._stream(messages, params)

    async def _stream(self, messages: List[ChatMessage], params: dict[str, Any]) -> AsyncIterator[ChatChunk]:
        chunk_id = response_id(self.provider)
        metadata = {"provider": self.provider, "model": params.get("model")}
        async for delta in self.adapter.chat_completion_stream(messages, params):
            yield ChatChunk(id=chunk_id, content=delta, metadata=metadata)

    async def health_check(self) -> bool:
        try:
            return await self.adapter.health_check()
        except Exception as e:
            logger.warning("Health check failed", provider=self.provider, error=str(e))
            return False


class ImageClient(ProviderClient):
    capability = Capability.IMAGE
    # variations and edits only exist on dall-e-2
    edit_model = "dall-e-2"

    adapter: ImageAdapter

    def _to_response(self, images: List[GeneratedImage], prompt: str, params: dict[str, Any]) -> ImageResponse:
        first = images[0]
        metadata: dict[str, Any] = {"provider": self.provider, "model": params.get("model")}
        if first.revised_prompt:
            metadata["revisedPrompt"] = first.revised_prompt
        if len(images) > 1:
            metadata["images"] = [image.image_url for image in images]
        return ImageResponse(
            id=response_id(self.provider),
            image_url=first.image_url,
            prompt=prompt,
            parameters=params,
            metadata=metadata,
        )

    async def _call(self, operation, params: dict[str, Any], identity: str, prompt: str, context: str) -> ImageResponse:
        self._admit(identity)
        images = await self.retry_handler.execute(operation, context=f"{self.provider}.{context}")
        return self._to_response(images, prompt, params)

    async def generate_image(
        self,
        prompt: str,
        parameters: Optional[dict[str, Any]] = None,
        identity: str = ANONYMOUS,
    ) -> ImageResponse:
        self._require(prompt and prompt.strip(), "prompt")
        params = self.prepare_parameters(parameters)
        return await self._call(lambda: self.adapter.generate(prompt, params), params, identity, prompt, "image.generate")

    async def create_variation(
        self,
        image: bytes,
        parameters: Optional[dict[str, Any]] = None,
        identity: str = ANONYMOUS,
    ) -> ImageResponse:
        self._require(image, "image")
        params = self.prepare_parameters({**(parameters or {}), "model": self.edit_model})
        return await self._call(lambda: self.adapter.create_variation(image, params), params, identity, "", "image.variation")

    async def edit_image(
        self,
        image: bytes,
        mask: Optional[bytes],
        prompt: str,
        parameters: Optional[dict[str, Any]] = None,
        identity: str = ANONYMOUS,
    ) -> ImageResponse:
        self._require(image, "image")
        self._require(prompt and prompt.strip(), "prompt")
        params = self.prepare_parameters({**(parameters or {}), "model": self.edit_model})
        return await self._call(lambda: self.adapter.edit(image, mask, prompt, params), params, identity, prompt, "image.edit")

    async def health_check(self) -> bool:
        # image generation is billed per call, so only the configuration is checked
        return bool(self.adapter.api_key)
