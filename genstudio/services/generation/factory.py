"""
Factory for creating provider adapters based on configuration.
"""
import logging

from genstudio.services.generation.providers.base import ProviderAdapter
from genstudio.services.generation.providers.fal import FalProvider
from genstudio.services.generation.providers.openai import OpenAIProvider
from genstudio.services.generation.providers.pollinations import PollinationsProvider
from genstudio.services.generation.providers.replicate import ReplicateProvider
from genstudio.services.generation.providers.stability import StabilityProvider
from genstudio.services.generation.providers.together import TogetherProvider
from genstudio.services.generation.providers.zhipu import ZhipuProvider
from genstudio.services.generation.registry import PROVIDER_REGISTRY, ProviderRegistry
from genstudio.services.generation.transport import ProviderTransport

logger = logging.getLogger(__name__)


class ProviderAdapterFactory:
    """Factory for creating provider adapters."""

    PROVIDERS: dict[str, type[ProviderAdapter]] = {
        "pollinations": PollinationsProvider,
        "zhipu": ZhipuProvider,
        "openai": OpenAIProvider,
        "stability": StabilityProvider,
        "replicate": ReplicateProvider,
        "together": TogetherProvider,
        "fal": FalProvider,
    }

    @classmethod
    def create(
        cls,
        provider_name: str,
        transport: ProviderTransport,
        config: dict | None = None,
        registry: ProviderRegistry = PROVIDER_REGISTRY,
    ) -> ProviderAdapter:
        """
        Create adapter instance by provider id.

        Raises:
            ValueError: If the provider id is unknown
        """
        provider_class = cls.PROVIDERS.get(provider_name.strip().lower())
        if not provider_class:
            available = ", ".join(cls.PROVIDERS.keys())
            raise ValueError(f"Unknown provider: {provider_name}. Available providers: {available}")

        logger.debug("provider_adapter_created", extra={"provider_id": provider_class.provider_id})
        return provider_class(transport, config, registry=registry)

    @classmethod
    def config_from_settings(cls, provider_name: str, settings) -> dict:
        """Per-provider endpoint configuration taken from application settings."""
        provider_name = provider_name.strip().lower()
        if provider_name == "pollinations":
            return {"api_url": settings.pollinations_api_url}
        if provider_name == "zhipu":
            return {"api_url": settings.zhipu_api_url}
        if provider_name == "openai":
            return {"api_url": settings.openai_api_url, "timeout": settings.provider_request_timeout}
        if provider_name == "stability":
            return {"api_url": settings.stability_api_url}
        if provider_name == "replicate":
            return {"api_url": settings.replicate_api_url}
        if provider_name == "together":
            return {"api_url": settings.together_api_url}
        if provider_name == "fal":
            return {"api_url": settings.fal_api_url, "queue_url": settings.fal_queue_url}
        raise ValueError(f"Provider {provider_name} not supported in settings")

    @classmethod
    def create_from_settings(
        cls,
        provider_name: str,
        transport: ProviderTransport,
        settings,
        registry: ProviderRegistry = PROVIDER_REGISTRY,
    ) -> ProviderAdapter:
        return cls.create(provider_name, transport, cls.config_from_settings(provider_name, settings), registry=registry)

    @classmethod
    def get_available_providers(cls) -> list[str]:
        """Get list of all provider ids with an adapter."""
        return list(cls.PROVIDERS.keys())
