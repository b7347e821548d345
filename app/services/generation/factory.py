"""
Factory for creating music generation providers based on configuration.
"""
import logging
from typing import Any

from app.services.generation.base import MusicGenerationProvider
from app.services.generation.providers.fal import FalProvider
from app.services.generation.providers.replicate import ReplicateProvider

logger = logging.getLogger(__name__)


class MusicProviderFactory:
    """Factory for creating music generation providers."""

    PROVIDERS: dict[str, type[MusicGenerationProvider]] = {
        "replicate": ReplicateProvider,
        "fal": FalProvider,
    }

    @classmethod
    def create(cls, provider_name: str, config: dict, breaker: Any = None) -> MusicGenerationProvider:
        """
        Create provider instance by name.

        Raises:
            ValueError: If provider name is unknown
        """
        provider_class = cls.PROVIDERS.get(provider_name.lower())
        if not provider_class:
            available = ", ".join(cls.PROVIDERS.keys())
            raise ValueError(f"Unknown provider: {provider_name}. Available providers: {available}")

        provider = provider_class(config, breaker)
        if not provider.is_available():
            logger.warning("music_provider_not_configured", extra={"provider": provider_name})
        return provider

    @staticmethod
    def config_for(provider_name: str, settings) -> dict:
        if provider_name == "replicate":
            return {
                "api_token": settings.replicate_api_token,
                "api_url": settings.replicate_api_url,
                "model": settings.replicate_music_model,
                "timeout": settings.replicate_timeout,
            }
        if provider_name == "fal":
            return {
                "api_key": settings.fal_api_key,
                "queue_url": settings.fal_queue_url,
                "model": settings.fal_music_model,
                "timeout": settings.fal_timeout,
            }
        raise ValueError(f"Provider {provider_name} not supported in settings")

    @classmethod
    def create_from_settings(cls, settings, provider_name: str, with_breaker: bool = True) -> MusicGenerationProvider:
        breaker = None
        if with_breaker:
            from app.services.circuit_breaker import get_circuit_breaker

            breaker = get_circuit_breaker(provider_name)
        return cls.create(provider_name, cls.config_for(provider_name, settings), breaker)

    @classmethod
    def create_cover_art_client(cls, settings) -> ReplicateProvider:
        """Replicate client pointed at the image model; used for cover art only."""
        config = cls.config_for("replicate", settings)
        config["model"] = settings.replicate_cover_model
        return ReplicateProvider(config)
