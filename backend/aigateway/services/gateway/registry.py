"""
Provider registry.

Maps (capability, provider name) to a client factory. A registry is built
once at startup and passed to whatever needs to resolve providers; there
is no module-level instance.
"""
from typing import Any, Callable, Dict, List, Tuple

from aigateway.core.logging import get_logger
from aigateway.services.gateway.errors import ProviderNotFoundError
from aigateway.services.gateway.types import Capability, REGISTRY_CAPABILITIES

logger = get_logger(__name__)

ClientFactory = Callable[[], Any]


def _normalize(capability: Capability | str) -> Capability:
    capability = Capability(capability)
    if capability not in REGISTRY_CAPABILITIES:
        raise ValueError(f"Providers cannot be registered under capability {capability.value!r}")
    return capability


class ProviderRegistry:
    """Capability-typed factory table."""

    def __init__(self):
        self._factories: Dict[Tuple[Capability, str], ClientFactory] = {}

    def register(self, capability: Capability | str, provider: str, factory: ClientFactory) -> None:
        """Register or replace the factory for a provider. Factories run lazily on create()."""
        capability = _normalize(capability)
        key = (capability, provider.lower())
        replaced = key in self._factories
        self._factories[key] = factory
        logger.info("Provider registered", capability=capability.value, provider=key[1], replaced=replaced)

    def create(self, capability: Capability | str, provider: str) -> Any:
        capability = _normalize(capability)
        factory = self._factories.get((capability, provider.lower()))
        if factory is None:
            raise ProviderNotFoundError(capability, provider)
        client = factory()
        logger.debug("Provider client created", capability=capability.value, provider=provider)
        return client

    def list_providers(self, capability: Capability | str) -> List[str]:
        capability = _normalize(capability)
        return [name for cap, name in self._factories if cap is capability]

    def is_available(self, provider: str, capability: Capability | str) -> bool:
        return (_normalize(capability), provider.lower()) in self._factories
