"""
Unit tests for ChatClient and ImageClient

Adapters are faked; the parameter pipeline, retry handler and rate
limiter are real
"""
from unittest.mock import patch

import pytest

from aigateway.services.adapter.base import AIResponse
from aigateway.services.gateway.clients import ChatClient
from aigateway.services.gateway.errors import (
    AIServiceError,
    ErrorCode,
    ParameterValidationError,
    RateLimitError,
    UnsupportedCapabilityError,
)
from aigateway.services.gateway.rate_limit import RateLimiterManager, RateLimitRule
from aigateway.services.gateway.types import Capability, ChatMessage
from tests.fakes import FakeChatAdapter, FakeStreamingAdapter


# ============================================================
# Chat
# ============================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_send_message_returns_uniform_response(make_chat_client):
    adapter = FakeChatAdapter([AIResponse(
        content="Hi there",
        model="gpt-4",
        prompt_tokens=3,
        completion_tokens=2,
        total_tokens=5,
        finish_reason="stop",
    )])
    client = make_chat_client(adapter)

    response = await client.send_message("Hello", {"model": "gpt-4"}, conversation_id="c1")

    assert response.content == "Hi there"
    assert response.role == "assistant"
    assert response.id.startswith("openai_")
    assert response.usage.total_tokens == 5
    assert response.timestamp.tzinfo is not None
    assert response.metadata == {
        "provider": "openai",
        "model": "gpt-4",
        "finishReason": "stop",
        "conversationId": "c1",
    }


@pytest.mark.unit
@pytest.mark.asyncio
async def test_adapter_receives_merged_parameters(make_chat_client):
    adapter = FakeChatAdapter()
    client = make_chat_client(adapter)

    await client.send_message("Hello", {"temperature": "0.3", "junk": True})

    messages, params = adapter.calls[0]
    assert [m.content for m in messages] == ["Hello"]
    assert params["temperature"] == 0.3
    assert params["maxTokens"] == 1000
    assert "junk" not in params


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_parameters_never_reach_adapter_or_retry(make_chat_client):
    """Test temperature 3 fails validation before any provider call"""
    adapter = FakeChatAdapter()
    client = make_chat_client(adapter)

    with patch.object(client.retry_handler, "execute") as execute:
        with pytest.raises(ParameterValidationError) as exc_info:
            await client.send_message("Hello", {"temperature": 3})

    execute.assert_not_called()
    assert adapter.calls == []
    assert ("temperature", "OUT_OF_RANGE") in [(e.field, e.code) for e in exc_info.value.errors]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_empty_message_is_rejected(make_chat_client):
    adapter = FakeChatAdapter()
    client = make_chat_client(adapter)

    with pytest.raises(ParameterValidationError) as exc_info:
        await client.send_message("")

    assert exc_info.value.errors[0].field == "message"
    assert adapter.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_mistyped_parameter_is_validation_error(make_chat_client):
    """Test a string temperature surfaces as ParameterValidationError, not TypeError"""
    adapter = FakeChatAdapter()
    client = make_chat_client(adapter)

    with pytest.raises(ParameterValidationError) as exc_info:
        await client.send_message("Hello", {"temperature": "hot"})

    assert exc_info.value.errors[0].code == "INVALID_TYPE"
    assert adapter.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transient_errors_are_retried(make_chat_client):
    """Test two SERVER_ERRORs then success makes three calls"""
    adapter = FakeChatAdapter([
        AIServiceError("openai", ErrorCode.SERVER_ERROR, "500"),
        AIServiceError("openai", ErrorCode.SERVER_ERROR, "500"),
        AIResponse(content="finally"),
    ])
    client = make_chat_client(adapter)

    response = await client.send_message("Hello")

    assert response.content == "finally"
    assert len(adapter.calls) == 3


@pytest.mark.unit
@pytest.mark.asyncio
async def test_permanent_error_is_not_retried(make_chat_client):
    adapter = FakeChatAdapter([AIServiceError("openai", ErrorCode.UNAUTHORIZED, "bad key")])
    client = make_chat_client(adapter)

    with pytest.raises(AIServiceError) as exc_info:
        await client.send_message("Hello")

    assert exc_info.value.code is ErrorCode.UNAUTHORIZED
    assert len(adapter.calls) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rate_limit_rejects_before_adapter(parameter_service, fast_retry):
    rate_limiters = RateLimiterManager()
    rate_limiters.register("openai", [RateLimitRule(requests=1, period=60)])
    adapter = FakeChatAdapter()
    client = ChatClient("openai", adapter, parameter_service, fast_retry, rate_limiters)

    await client.send_message("one", identity="alice")
    with pytest.raises(RateLimitError):
        await client.send_message("two", identity="alice")
    await client.send_message("three", identity="bob")

    assert len(adapter.calls) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_parameters_consume_no_quota(parameter_service, fast_retry):
    rate_limiters = RateLimiterManager()
    rate_limiters.register("openai", [RateLimitRule(requests=1, period=60)])
    client = ChatClient("openai", FakeChatAdapter(), parameter_service, fast_retry, rate_limiters)

    with pytest.raises(ParameterValidationError):
        await client.send_message("Hello", {"temperature": 3}, identity="alice")

    assert rate_limiters.get_remaining_requests("openai", "alice") == {"1/60s": 1}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_send_with_context_passes_history(make_chat_client):
    adapter = FakeChatAdapter()
    client = make_chat_client(adapter)
    history = [
        ChatMessage(role="system", content="Be brief"),
        ChatMessage(role="user", content="Hi"),
        ChatMessage(role="assistant", content="Hello"),
        ChatMessage(role="user", content="How are you?"),
    ]

    await client.send_message_with_context(history)

    assert adapter.calls[0][0] == history


# ============================================================
# Streaming
# ============================================================

@pytest.mark.unit
def test_streaming_unsupported_raises(make_chat_client):
    client = make_chat_client(FakeChatAdapter())

    assert client.supports(Capability.STREAMING_CHAT) is False
    with pytest.raises(UnsupportedCapabilityError):
        client.send_message_stream("Hello")


@pytest.mark.unit
def test_stream_validates_eagerly(make_chat_client):
    """Test invalid parameters fail when the stream is requested, not iterated"""
    adapter = FakeStreamingAdapter(["a"])
    client = make_chat_client(adapter)

    with pytest.raises(ParameterValidationError):
        client.send_message_stream("Hello", {"temperature": 3})

    assert adapter.stream_calls == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stream_yields_chunks_with_shared_id(make_chat_client):
    client = make_chat_client(FakeStreamingAdapter(["Hel", "lo"]))

    chunks = [chunk async for chunk in client.send_message_stream("Hi")]

    assert [c.content for c in chunks] == ["Hel", "lo"]
    assert len({c.id for c in chunks}) == 1
    assert chunks[0].metadata["provider"] == "openai"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stream_is_not_retried(make_chat_client):
    adapter = FakeStreamingAdapter(["a"], error=AIServiceError("openai", ErrorCode.SERVER_ERROR, "cut"))
    client = make_chat_client(adapter)

    with pytest.raises(AIServiceError):
        async for _ in client.send_message_stream("Hi"):
            pass

    assert adapter.stream_calls == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_chat_health_check(make_chat_client):
    healthy = make_chat_client(FakeChatAdapter())
    broken = make_chat_client(FakeChatAdapter([AIServiceError("openai", ErrorCode.UNAUTHORIZED, "no")]))

    assert await healthy.health_check() is True
    assert await broken.health_check() is False


# ============================================================
# Images
# ============================================================

@pytest.mark.unit
@pytest.mark.asyncio
async def test_generate_image(image_client):
    response = await image_client.generate_image("a red fox", {"size": "1792x1024"})

    assert response.image_url == "https://images.test/1.png"
    assert response.prompt == "a red fox"
    assert response.status == "completed"
    assert response.parameters["size"] == "1792x1024"
    assert response.metadata["revisedPrompt"] == "revised a red fox"
    assert image_client.adapter.calls == [("generate", response.parameters)]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_blank_prompt_is_rejected(image_client):
    with pytest.raises(ParameterValidationError):
        await image_client.generate_image("   ")

    assert image_client.adapter.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_dalle3_rejects_multiple_images(image_client):
    """Test n above 1 is refused for dall-e-3 before any call"""
    with pytest.raises(ParameterValidationError):
        await image_client.generate_image("a fox", {"model": "dall-e-3", "n": 2})

    assert image_client.adapter.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_variation_lists_all_images(image_client):
    response = await image_client.create_variation(b"png-bytes", {"model": "dall-e-2", "n": 2})

    assert response.image_url == "https://images.test/v1.png"
    assert response.metadata["images"] == ["https://images.test/v1.png", "https://images.test/v2.png"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_variation_without_model_allows_several_images(image_client):
    """Test variations are checked against dall-e-2 rather than the dall-e-3 default"""
    response = await image_client.create_variation(b"png-bytes", {"n": 2})

    assert response.parameters["model"] == "dall-e-2"
    assert image_client.adapter.calls[0] == ("variation", response.parameters)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_edit_rejects_options_dalle2_lacks(image_client):
    with pytest.raises(ParameterValidationError):
        await image_client.edit_image(b"png-bytes", None, "add a hat", {"model": "dall-e-3", "quality": "hd"})

    assert image_client.adapter.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_edit_returns_data_url_for_b64(image_client):
    response = await image_client.edit_image(b"png-bytes", None, "add a hat", {"model": "dall-e-2"})

    assert response.image_url == "data:image/png;base64,aGVsbG8="


@pytest.mark.unit
@pytest.mark.asyncio
async def test_image_health_check_reflects_configuration(image_client):
    assert await image_client.health_check() is True
