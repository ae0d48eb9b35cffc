"""
Chat adapters for the supported vendors.
Supports OpenAI-compatible APIs (OpenAI, DeepSeek), Claude and Gemini,
all with native streaming.
"""
import json
from typing import Any, AsyncIterator

import httpx

from aigateway.core.logging import ProviderCallLogger, ProviderCallTracker, get_logger
from aigateway.services.adapter.base import (
    AIResponse,
    StreamingChatAdapter,
    api_error,
    fail,
    transport_error,
)
from aigateway.services.gateway.errors import AIServiceError, ErrorCode
from aigateway.services.gateway.types import ChatMessage

logger = get_logger(__name__)
call_logger = ProviderCallLogger(logger)


# Provider configurations
PROVIDER_CONFIG = {
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "default_model": "gpt-4o",
    },
    "deepseek": {
        "base_url": "https://api.deepseek.com",
        "default_model": "deepseek-chat",
    },
    "claude": {
        "base_url": "https://api.anthropic.com/v1",
        "default_model": "claude-3-5-sonnet-20240620",
    },
    "gemini": {
        "base_url": "https://generativelanguage.googleapis.com/v1beta",
        "default_model": "gemini-pro",
    },
}


def _sse_data(line: str) -> str | None:
    """Return the payload of an SSE data line, or None for other lines."""
    if line.startswith("data:"):
        return line[5:].strip()
    return None


def _parse_json(provider: str, response: httpx.Response, call: ProviderCallTracker) -> dict:
    try:
        return response.json()
    except ValueError:
        raise fail(call, AIServiceError(provider, ErrorCode.UNKNOWN_ERROR, "Provider returned invalid JSON"))


def _split_system(messages: list[ChatMessage]) -> tuple[str, list[dict]]:
    """Separate system content from the conversational turns."""
    system_parts = []
    turns = []
    for msg in messages:
        if msg.role == "system":
            system_parts.append(msg.content)
        else:
            turns.append(msg.to_dict())
    return "\n\n".join(system_parts), turns


class OpenAICompatibleAdapter(StreamingChatAdapter):
    """
    Adapter for OpenAI-compatible APIs.
    Works with OpenAI, DeepSeek, and most LLM APIs.
    """

    _PARAMETER_NAMES = {
        "temperature": "temperature",
        "maxTokens": "max_tokens",
        "topP": "top_p",
        "frequencyPenalty": "frequency_penalty",
        "presencePenalty": "presence_penalty",
    }

    def __init__(self, api_key: str, base_url: str, model: str, provider_name: str = "openai", **kwargs: Any):
        super().__init__(api_key, base_url, model, **kwargs)
        self.provider_name = provider_name

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _body(self, messages: list[ChatMessage], parameters: dict[str, Any]) -> dict:
        body = {
            "model": self.resolve_model(parameters),
            "messages": [m.to_dict() for m in messages],
        }
        for key, wire_name in self._PARAMETER_NAMES.items():
            if parameters.get(key) is not None:
                body[wire_name] = parameters[key]
        return body

    async def chat_completion(self, messages: list[ChatMessage], parameters: dict[str, Any]) -> AIResponse:
        """Send chat completion request using OpenAI-compatible API."""
        body = self._body(messages, parameters)

        with call_logger.track_call(
            provider=self.provider_name,
            model=body["model"],
            endpoint="chat/completions",
        ) as call:
            call.add_messages(body["messages"])
            call.set_request_params(**{k: v for k, v in body.items() if k not in ("model", "messages")})

            try:
                async with self.http_client() as client:
                    response = await client.post(
                        f"{self.base_url}/chat/completions",
                        headers=self._headers(),
                        json=body,
                    )
            except httpx.HTTPError as e:
                raise fail(call, transport_error(self.provider_name, e)) from e

            if response.status_code != 200:
                raise fail(call, api_error(self.provider_name, response.status_code, response.content))

            data = _parse_json(self.provider_name, response, call)
            choice = (data.get("choices") or [{}])[0]
            content = choice.get("message", {}).get("content") or ""
            usage = data.get("usage") or {}

            call.set_response(
                content=content,
                prompt_tokens=usage.get("prompt_tokens"),
                completion_tokens=usage.get("completion_tokens"),
                total_tokens=usage.get("total_tokens"),
            )

            return AIResponse(
                content=content,
                model=data.get("model", body["model"]),
                prompt_tokens=usage.get("prompt_tokens"),
                completion_tokens=usage.get("completion_tokens"),
                total_tokens=usage.get("total_tokens"),
                finish_reason=choice.get("finish_reason"),
            )

    async def chat_completion_stream(self, messages: list[ChatMessage], parameters: dict[str, Any]) -> AsyncIterator[str]:
        """Send streaming chat completion request."""
        body = {**self._body(messages, parameters), "stream": True}

        with call_logger.track_call(
            provider=self.provider_name,
            model=body["model"],
            endpoint="chat/completions (stream)",
        ) as call:
            call.add_messages(body["messages"])
            call.set_request_params(**{k: v for k, v in body.items() if k not in ("model", "messages")})
            received = []

            try:
                async with self.http_client() as client:
                    async with client.stream(
                        "POST",
                        f"{self.base_url}/chat/completions",
                        headers=self._headers(),
                        json=body,
                    ) as response:
                        if response.status_code != 200:
                            raise fail(call, api_error(self.provider_name, response.status_code, await response.aread()))

                        async for line in response.aiter_lines():
                            data = _sse_data(line)
                            if data is None:
                                continue
                            if data == "[DONE]":
                                break
                            try:
                                chunk = json.loads(data)
                            except json.JSONDecodeError:
                                continue
                            delta = (chunk.get("choices") or [{}])[0].get("delta", {})
                            if delta.get("content"):
                                received.append(delta["content"])
                                yield delta["content"]

            except httpx.HTTPError as e:
                raise fail(call, transport_error(self.provider_name, e)) from e

            call.set_response(content="".join(received))


class ClaudeAdapter(StreamingChatAdapter):
    """Adapter for Anthropic Claude API."""

    provider_name = "claude"

    def __init__(self, api_key: str, model: str = PROVIDER_CONFIG["claude"]["default_model"], base_url: str | None = None, **kwargs: Any):
        super().__init__(api_key, base_url or PROVIDER_CONFIG["claude"]["base_url"], model, **kwargs)

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
        }

    def _body(self, messages: list[ChatMessage], parameters: dict[str, Any]) -> dict:
        system_content, turns = _split_system(messages)
        body = {
            "model": self.resolve_model(parameters),
            # max_tokens is mandatory for the messages API
            "max_tokens": parameters.get("maxTokens") or 1024,
            "messages": turns,
        }
        if parameters.get("temperature") is not None:
            body["temperature"] = parameters["temperature"]
        if parameters.get("topP") is not None:
            body["top_p"] = parameters["topP"]
        if system_content:
            body["system"] = system_content
        return body

    async def chat_completion(self, messages: list[ChatMessage], parameters: dict[str, Any]) -> AIResponse:
        """Send chat completion request using Claude API."""
        body = self._body(messages, parameters)

        with call_logger.track_call(
            provider=self.provider_name,
            model=body["model"],
            endpoint="messages",
        ) as call:
            call.add_messages([m.to_dict() for m in messages])
            call.set_request_params(
                max_tokens=body["max_tokens"],
                temperature=body.get("temperature"),
                top_p=body.get("top_p"),
            )

            try:
                async with self.http_client() as client:
                    response = await client.post(f"{self.base_url}/messages", headers=self._headers(), json=body)
            except httpx.HTTPError as e:
                raise fail(call, transport_error(self.provider_name, e)) from e

            if response.status_code != 200:
                raise fail(call, api_error(self.provider_name, response.status_code, response.content))

            data = _parse_json(self.provider_name, response, call)
            content = "".join(
                block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"
            )
            usage = data.get("usage") or {}
            input_tokens = usage.get("input_tokens")
            output_tokens = usage.get("output_tokens")
            total_tokens = (input_tokens or 0) + (output_tokens or 0)

            call.set_response(
                content=content,
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=total_tokens,
            )

            return AIResponse(
                content=content,
                model=data.get("model", body["model"]),
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                total_tokens=total_tokens,
                finish_reason=data.get("stop_reason"),
            )

    async def chat_completion_stream(self, messages: list[ChatMessage], parameters: dict[str, Any]) -> AsyncIterator[str]:
        """Send streaming chat completion request using Claude API."""
        body = {**self._body(messages, parameters), "stream": True}

        with call_logger.track_call(
            provider=self.provider_name,
            model=body["model"],
            endpoint="messages (stream)",
        ) as call:
            call.add_messages([m.to_dict() for m in messages])
            call.set_request_params(
                max_tokens=body["max_tokens"],
                temperature=body.get("temperature"),
                top_p=body.get("top_p"),
            )
            received = []

            try:
                async with self.http_client() as client:
                    async with client.stream(
                        "POST",
                        f"{self.base_url}/messages",
                        headers=self._headers(),
                        json=body,
                    ) as response:
                        if response.status_code != 200:
                            raise fail(call, api_error(self.provider_name, response.status_code, await response.aread()))

                        async for line in response.aiter_lines():
                            data = _sse_data(line)
                            if not data:
                                continue
                            try:
                                event = json.loads(data)
                            except json.JSONDecodeError:
                                continue
                            if event.get("type") == "error":
                                message = event.get("error", {}).get("message", "Stream error")
                                raise fail(call, AIServiceError(self.provider_name, ErrorCode.SERVER_ERROR, message))
                            if event.get("type") == "content_block_delta":
                                delta = event.get("delta", {})
                                if delta.get("type") == "text_delta" and delta.get("text"):
                                    received.append(delta["text"])
                                    yield delta["text"]

            except httpx.HTTPError as e:
                raise fail(call, transport_error(self.provider_name, e)) from e

            call.set_response(content="".join(received))


# Gemini reports several failure kinds only through the error message
_GEMINI_ERROR_MARKERS = (
    ("API_KEY_INVALID", ErrorCode.UNAUTHORIZED),
    ("QUOTA_EXCEEDED", ErrorCode.RATE_LIMIT_EXCEEDED),
    ("RESOURCE_EXHAUSTED", ErrorCode.RATE_LIMIT_EXCEEDED),
    ("SAFETY", ErrorCode.CONTENT_BLOCKED),
    ("MODEL_NOT_FOUND", ErrorCode.BAD_REQUEST),
)


def _gemini_error(status_code: int, body: bytes) -> AIServiceError:
    error = api_error("gemini", status_code, body)
    text = body.decode(errors="replace")
    for marker, code in _GEMINI_ERROR_MARKERS:
        if marker in text:
            error.code = code
            break
    return error


class GeminiAdapter(StreamingChatAdapter):
    """Adapter for Google Gemini API."""

    provider_name = "gemini"

    _GENERATION_KEYS = ("temperature", "maxOutputTokens", "topP", "topK")

    def __init__(self, api_key: str, model: str = PROVIDER_CONFIG["gemini"]["default_model"], base_url: str | None = None, **kwargs: Any):
        super().__init__(api_key, base_url or PROVIDER_CONFIG["gemini"]["base_url"], model, **kwargs)

    def _body(self, messages: list[ChatMessage], parameters: dict[str, Any]) -> dict:
        """Convert OpenAI-style messages to Gemini format."""
        system_instruction, turns = _split_system(messages)
        contents = [
            {
                "role": "user" if turn["role"] == "user" else "model",
                "parts": [{"text": turn["content"]}],
            }
            for turn in turns
        ]
        generation_config = {k: parameters[k] for k in self._GENERATION_KEYS if parameters.get(k) is not None}
        if "maxOutputTokens" not in generation_config and parameters.get("maxTokens") is not None:
            generation_config["maxOutputTokens"] = parameters["maxTokens"]

        body: dict[str, Any] = {"contents": contents, "generationConfig": generation_config}
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        return body

    @staticmethod
    def _extract_text(data: dict) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = candidates[0].get("content", {}).get("parts", [])
        return "".join(part.get("text", "") for part in parts)

    @staticmethod
    def _blocked_reason(data: dict) -> str | None:
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            return f"Prompt blocked: {block_reason}"
        candidates = data.get("candidates") or []
        if candidates and candidates[0].get("finishReason") == "SAFETY":
            return "Response blocked by safety filters"
        return None

    async def chat_completion(self, messages: list[ChatMessage], parameters: dict[str, Any]) -> AIResponse:
        """Send chat completion request using Gemini API."""
        model = self.resolve_model(parameters)
        body = self._body(messages, parameters)

        with call_logger.track_call(
            provider=self.provider_name,
            model=model,
            endpoint="generateContent",
        ) as call:
            call.add_messages([m.to_dict() for m in messages])
            call.set_request_params(**body["generationConfig"])

            try:
                async with self.http_client() as client:
                    response = await client.post(
                        f"{self.base_url}/models/{model}:generateContent",
                        headers={"Content-Type": "application/json"},
                        params={"key": self.api_key},
                        json=body,
                    )
            except httpx.HTTPError as e:
                raise fail(call, transport_error(self.provider_name, e)) from e

            if response.status_code != 200:
                raise fail(call, _gemini_error(response.status_code, response.content))

            data = _parse_json(self.provider_name, response, call)
            blocked = self._blocked_reason(data)
            if blocked:
                raise fail(call, AIServiceError(self.provider_name, ErrorCode.CONTENT_BLOCKED, blocked))

            content = self._extract_text(data)
            usage_metadata = data.get("usageMetadata") or {}
            prompt_tokens = usage_metadata.get("promptTokenCount")
            completion_tokens = usage_metadata.get("candidatesTokenCount")
            total_tokens = usage_metadata.get("totalTokenCount")

            call.set_response(
                content=content,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=total_tokens,
            )

            return AIResponse(
                content=content,
                model=model,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=total_tokens,
                finish_reason=(data.get("candidates") or [{}])[0].get("finishReason"),
            )

    async def chat_completion_stream(self, messages: list[ChatMessage], parameters: dict[str, Any]) -> AsyncIterator[str]:
        """Send streaming chat completion request using Gemini API."""
        model = self.resolve_model(parameters)
        body = self._body(messages, parameters)

        with call_logger.track_call(
            provider=self.provider_name,
            model=model,
            endpoint="streamGenerateContent",
        ) as call:
            call.add_messages([m.to_dict() for m in messages])
            call.set_request_params(**body["generationConfig"])
            received = []

            try:
                async with self.http_client() as client:
                    async with client.stream(
                        "POST",
                        f"{self.base_url}/models/{model}:streamGenerateContent",
                        headers={"Content-Type": "application/json"},
                        params={"key": self.api_key, "alt": "sse"},
                        json=body,
                    ) as response:
                        if response.status_code != 200:
                            raise fail(call, _gemini_error(response.status_code, await response.aread()))

                        async for line in response.aiter_lines():
                            data = _sse_data(line)
                            if not data:
                                continue
                            try:
                                chunk = json.loads(data)
                            except json.JSONDecodeError:
                                continue
                            blocked = self._blocked_reason(chunk)
                            if blocked:
                                raise fail(call, AIServiceError(self.provider_name, ErrorCode.CONTENT_BLOCKED, blocked))
                            text = self._extract_text(chunk)
                            if text:
                                received.append(text)
                                yield text

            except httpx.HTTPError as e:
                raise fail(call, transport_error(self.provider_name, e)) from e

            call.set_response(content="".join(received))
