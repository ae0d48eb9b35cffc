"""
Request-scoped dependencies.

Everything is read from app.state, populated once in the application lifespan.
"""
from typing import Optional

from fastapi import Header, Request

from aigateway.services.context import ConversationContextManager
from aigateway.services.gateway import ProviderRegistry, StreamingDispatcher
from aigateway.services.parameters import ParameterService


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


def get_parameter_service(request: Request) -> ParameterService:
    return request.app.state.parameters


def get_context_manager(request: Request) -> ConversationContextManager:
    return request.app.state.context_manager


def get_dispatcher(request: Request) -> StreamingDispatcher:
    return request.app.state.dispatcher


def get_identity(request: Request, x_user_id: Optional[str] = Header(default=None)) -> str:
    """Rate-limit identity: the X-User-Id header, else the client host."""
    if x_user_id:
        return x_user_id
    if request.client is not None:
        return request.client.host
    return "anonymous"
