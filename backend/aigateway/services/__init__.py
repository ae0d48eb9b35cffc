"""
Services module - AI gateway business logic layer.

Modules:
- gateway: Provider registry, clients, retry, rate limiting and streaming
- parameters: Per-provider parameter definitions, validation and presets
- context: Token-budgeted conversation context
- adapter: Vendor adapters (OpenAI-compatible, Claude, Gemini, OpenAI images)
"""
# Main exports for convenience
from aigateway.services.context import ConversationContextManager
from aigateway.services.gateway import ProviderRegistry, StreamingDispatcher, build_registry
from aigateway.services.parameters import ParameterService

__all__ = [
    "ConversationContextManager",
    "ProviderRegistry",
    "StreamingDispatcher",
    "build_registry",
    "ParameterService",
]
