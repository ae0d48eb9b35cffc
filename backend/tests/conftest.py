"""
Pytest configuration and shared fixtures for AI gateway tests
"""
import pytest

from aigateway.services.gateway.clients import ChatClient, ImageClient
from aigateway.services.gateway.rate_limit import RateLimiterManager, RateLimitRule
from aigateway.services.gateway.retry import RetryConfig, RetryHandler
from aigateway.services.parameters.definitions import BUILTIN_DEFINITIONS
from aigateway.services.parameters.service import ParameterService
from tests.fakes import FakeImageAdapter


# ============================================================
# Shared Fixtures
# ============================================================

@pytest.fixture
def parameter_service() -> ParameterService:
    """ParameterService with every builtin schema registered"""
    service = ParameterService()
    for schema, definitions in BUILTIN_DEFINITIONS.items():
        service.register_provider(schema, definitions)
    return service


@pytest.fixture
def fast_retry() -> RetryHandler:
    """Retry handler with the default bound but no backoff delay"""
    return RetryHandler(RetryConfig(max_retries=3, base_delay=0, max_delay=0))


@pytest.fixture
def rate_limiters() -> RateLimiterManager:
    manager = RateLimiterManager()
    manager.register("openai", [RateLimitRule(requests=100, period=60)])
    return manager


@pytest.fixture
def make_chat_client(parameter_service, fast_retry, rate_limiters):
    """Factory building a ChatClient around a given adapter"""
    def _make(adapter, provider: str = "openai") -> ChatClient:
        return ChatClient(provider, adapter, parameter_service, fast_retry, rate_limiters)
    return _make


@pytest.fixture
def image_client(parameter_service, fast_retry, rate_limiters) -> ImageClient:
    return ImageClient("openai", FakeImageAdapter(), parameter_service, fast_retry, rate_limiters)
