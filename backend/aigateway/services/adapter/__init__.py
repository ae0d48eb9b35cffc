"""
AI Adapter module - Provider abstraction layer.

Supports multiple AI providers:
- OpenAI (and compatible APIs like DeepSeek), chat and images
- Anthropic Claude
- Google Gemini
"""
from aigateway.services.adapter.base import (
    AIResponse,
    ChatAdapter,
    GeneratedImage,
    ImageAdapter,
    ProviderAdapter,
    StreamingChatAdapter,
)
from aigateway.services.adapter.image import OpenAIImageAdapter
from aigateway.services.adapter.provider import (
    PROVIDER_CONFIG,
    ClaudeAdapter,
    GeminiAdapter,
    OpenAICompatibleAdapter,
)

__all__ = [
    "AIResponse",
    "ChatAdapter",
    "GeneratedImage",
    "ImageAdapter",
    "ProviderAdapter",
    "StreamingChatAdapter",
    "OpenAIImageAdapter",
    "PROVIDER_CONFIG",
    "ClaudeAdapter",
    "GeminiAdapter",
    "OpenAICompatibleAdapter",
]
