"""
Builtin provider wiring.

Registers parameter definitions eagerly and client factories lazily, so a
missing API key only fails requests for that provider.
"""
from typing import Optional

import httpx

from aigateway.core.config import Settings, settings as default_settings
from aigateway.core.logging import get_logger
from aigateway.services.adapter.image import OpenAIImageAdapter
from aigateway.services.adapter.provider import (
    PROVIDER_CONFIG,
    ClaudeAdapter,
    GeminiAdapter,
    OpenAICompatibleAdapter,
)
from aigateway.services.gateway.clients import ChatClient, ImageClient, limit_key
from aigateway.services.gateway.errors import AIServiceError, ErrorCode
from aigateway.services.gateway.rate_limit import RateLimiterManager, RateLimitRule
from aigateway.services.gateway.registry import ProviderRegistry
from aigateway.services.gateway.retry import RetryConfig, RetryHandler
from aigateway.services.gateway.types import Capability
from aigateway.services.parameters.definitions import BUILTIN_DEFINITIONS
from aigateway.services.parameters.service import ParameterService

logger = get_logger(__name__)

CHAT_PROVIDERS = ("openai", "deepseek", "claude", "gemini")
IMAGE_PROVIDERS = ("openai", "dall-e")


def rate_limit_rules(settings: Settings) -> list[RateLimitRule]:
    return [
        RateLimitRule(requests=int(rule["requests"]), period=int(rule["period"]), burst=rule.get("burst"))
        for rule in settings.RATE_LIMIT_RULES
    ]


def _api_key(settings: Settings, provider: str) -> str:
    api_key = settings.get_api_key(provider)
    if not api_key:
        raise AIServiceError(
            provider,
            ErrorCode.MISSING_API_KEY,
            f"API key not set for provider '{provider}'. "
            f"Set {provider.upper().replace('-', '_')}_API_KEY or AI_API_KEY environment variable.",
        )
    return api_key


def create_chat_adapter(
    provider: str,
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
):
    api_key = _api_key(settings, provider)
    config = PROVIDER_CONFIG[provider]
    base_url = settings.get_base_url(provider) or config["base_url"]

    if provider == "claude":
        return ClaudeAdapter(api_key=api_key, model=config["default_model"], base_url=base_url, transport=transport)
    if provider == "gemini":
        return GeminiAdapter(api_key=api_key, model=config["default_model"], base_url=base_url, transport=transport)
    # OpenAI-compatible providers (openai, deepseek)
    return OpenAICompatibleAdapter(
        api_key=api_key,
        base_url=base_url,
        model=config["default_model"],
        provider_name=provider,
        transport=transport,
    )


def build_registry(
    settings: Settings = default_settings,
    parameters: Optional[ParameterService] = None,
    rate_limiters: Optional[RateLimiterManager] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ProviderRegistry:
    """Create a registry holding the builtin chat and image providers."""
    parameters = parameters if parameters is not None else ParameterService()
    rate_limiters = rate_limiters if rate_limiters is not None else RateLimiterManager()
    retry_config = RetryConfig.from_settings()
    rules = rate_limit_rules(settings)

    for schema, definitions in BUILTIN_DEFINITIONS.items():
        if not parameters.has_schema(schema):
            parameters.register_provider(schema, definitions)

    registry = ProviderRegistry()

    def chat_factory(provider: str):
        def factory() -> ChatClient:
            return ChatClient(
                provider,
                create_chat_adapter(provider, settings, transport),
                parameters,
                RetryHandler(retry_config),
                rate_limiters,
            )
        return factory

    def image_factory(provider: str):
        def factory() -> ImageClient:
            adapter = OpenAIImageAdapter(
                api_key=_api_key(settings, provider),
                base_url=settings.get_base_url(provider),
                provider_name=provider,
                transport=transport,
            )
            return ImageClient(provider, adapter, parameters, RetryHandler(retry_config), rate_limiters)
        return factory

    for provider in CHAT_PROVIDERS:
        rate_limiters.register(provider, rules)
        registry.register(Capability.CHAT, provider, chat_factory(provider))

    for provider in IMAGE_PROVIDERS:
        rate_limiters.register(limit_key(provider, Capability.IMAGE), rules)
        registry.register(Capability.IMAGE, provider, image_factory(provider))

    logger.info(
        "Provider registry built",
        chat=list(CHAT_PROVIDERS),
        image=list(IMAGE_PROVIDERS),
        rate_limit_rules=[rule.label for rule in rules],
    )
    return registry
