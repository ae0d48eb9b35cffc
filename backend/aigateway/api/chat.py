"""
Chat API endpoints.
"""
import asyncio
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from aigateway.api.deps import (
    get_context_manager,
    get_dispatcher,
    get_identity,
    get_registry,
)
from aigateway.core.config import settings
from aigateway.core.logging import get_logger
from aigateway.services.context import ConversationContextManager
from aigateway.services.gateway import (
    Capability,
    ChatClient,
    ChatMessage,
    ProviderRegistry,
    StreamingDispatcher,
    limit_key,
)

logger = get_logger(__name__)
router = APIRouter()

# How often a running stream polls for client disconnect, in seconds
DISCONNECT_POLL_INTERVAL = 0.5


# ========================================
# Request/Response Schemas
# ========================================

class ChatRequest(BaseModel):
    """Single-turn chat request."""
    provider: str = Field(..., description="Provider name, e.g. openai")
    message: str = Field(..., description="User message")
    parameters: dict[str, Any] = Field(default_factory=dict, description="Provider parameters")
    conversationId: Optional[str] = None


class ContextChatRequest(BaseModel):
    """Chat request carrying conversation history."""
    provider: str = Field(..., description="Provider name, e.g. openai")
    messages: list[ChatMessage] = Field(default_factory=list, description="History, oldest first")
    message: Optional[str] = Field(default=None, description="New user message appended to the history")
    systemPrompt: Optional[str] = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    tokenBudget: Optional[int] = Field(default=None, gt=0, description="Context token budget; omit to send all history")
    conversationId: Optional[str] = None

    def history(self) -> list[ChatMessage]:
        if self.message:
            return [*self.messages, ChatMessage(role="user", content=self.message)]
        return list(self.messages)


# ========================================
# API Endpoints
# ========================================

@router.get("/providers")
async def list_providers(
    capability: Capability = Query(default=Capability.CHAT),
    registry: ProviderRegistry = Depends(get_registry),
):
    """List registered providers for a capability."""
    names = registry.list_providers(capability)
    return {
        "success": True,
        "data": {
            "capability": capability.value,
            "providers": [
                {
                    "name": name,
                    "available": registry.is_available(name, capability),
                    "configured": bool(settings.get_api_key(name)),
                }
                for name in names
            ],
        },
    }


@router.get("/providers/{provider}/limits")
async def get_rate_limits(
    provider: str,
    request: Request,
    capability: Capability = Query(default=Capability.CHAT),
    identity: str = Depends(get_identity),
):
    """Remaining requests per rate-limit window for the caller."""
    key = limit_key(provider, capability)
    remaining = request.app.state.rate_limiters.get_remaining_requests(key, identity)
    return {"success": True, "data": {"provider": provider, "capability": capability, "remaining": remaining}}


@router.post("/chat")
async def chat(
    request: ChatRequest,
    registry: ProviderRegistry = Depends(get_registry),
    identity: str = Depends(get_identity),
):
    """Send one message to a provider."""
    client: ChatClient = registry.create(Capability.CHAT, request.provider)
    logger.info("Chat request", provider=request.provider, identity=identity)
    response = await client.send_message(
        request.message,
        request.parameters,
        conversation_id=request.conversationId,
        identity=identity,
    )
    return {"success": True, "data": response}


@router.post("/chat/context")
async def chat_with_context(
    request: ContextChatRequest,
    registry: ProviderRegistry = Depends(get_registry),
    context_manager: ConversationContextManager = Depends(get_context_manager),
    identity: str = Depends(get_identity),
):
    """Send a message with conversation history trimmed to the token budget."""
    client: ChatClient = registry.create(Capability.CHAT, request.provider)
    context = context_manager.build_context(request.history(), request.systemPrompt, request.tokenBudget)
    logger.info(
        "Chat with context request",
        provider=request.provider,
        identity=identity,
        messages=len(context.messages),
        token_count=context.token_count,
    )
    response = await client.send_message_with_context(
        context.messages,
        request.parameters,
        conversation_id=request.conversationId,
        identity=identity,
    )
    return {
        "success": True,
        "data": response,
        "context": {"messageCount": len(context.messages), "tokenCount": context.token_count},
    }


@router.post("/chat/stream")
async def chat_stream(
    request: ContextChatRequest,
    http_request: Request,
    registry: ProviderRegistry = Depends(get_registry),
    context_manager: ConversationContextManager = Depends(get_context_manager),
    dispatcher: StreamingDispatcher = Depends(get_dispatcher),
    identity: str = Depends(get_identity),
):
    """
    Stream a chat reply.

    Returns Server-Sent Events (SSE) stream. Unknown providers and invalid
    parameters are rejected with a status code before the stream opens.
    """
    client: ChatClient = registry.create(Capability.CHAT, request.provider)
    client.prepare_parameters(request.parameters)
    context = context_manager.build_context(request.history(), request.systemPrompt, request.tokenBudget)

    logger.info("Chat stream request", provider=request.provider, identity=identity)

    cancel = asyncio.Event()

    async def watch_disconnect():
        while not cancel.is_set():
            if await http_request.is_disconnected():
                cancel.set()
                return
            await asyncio.sleep(DISCONNECT_POLL_INTERVAL)

    async def generate():
        watcher = asyncio.create_task(watch_disconnect())
        try:
            async for frame in dispatcher.dispatch(
                client,
                context.messages,
                request.parameters,
                identity=identity,
                cancel=cancel,
            ):
                yield frame
        finally:
            watcher.cancel()

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        }
    )
