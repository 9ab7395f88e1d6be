"""Registry for creating embedders from configuration."""

from collections.abc import Callable

from ..config.models import IndexerConfig
from ..errors import ConfigurationError
from .base import Embedder
from .openai import OpenAICompatibleEmbedder


def _ollama_embedder(config: IndexerConfig) -> Embedder:
    return OpenAICompatibleEmbedder(
        model=config.embedding_model,
        dimensions=config.embedding_dimensions,
        # Ollama ignores the key but the client requires one
        api_key="ollama",
        base_url=f"{config.ollama_url.rstrip('/')}/v1",
        timeout=config.embedding_timeout,
        provider="ollama",
    )


def _openai_embedder(config: IndexerConfig) -> Embedder:
    if not config.openai_api_key:
        raise ConfigurationError(
            "OpenAI embeddings require an API key",
            suggestion="Set OPENAI_API_KEY or switch EMBEDDING_PROVIDER to ollama",
        )
    return OpenAICompatibleEmbedder(
        model=config.embedding_model,
        dimensions=config.embedding_dimensions,
        api_key=config.openai_api_key,
        timeout=config.embedding_timeout,
        provider="openai",
    )


class EmbedderRegistry:
    """Registry for creating embedders by provider name."""

    def __init__(self) -> None:
        self._factories: dict[str, Callable[[IndexerConfig], Embedder]] = {}
        self._register_default_embedders()

    def _register_default_embedders(self) -> None:
        self.register("ollama", _ollama_embedder)
        self.register("openai", _openai_embedder)

    def register(self, name: str, factory: Callable[[IndexerConfig], Embedder]) -> None:
        """Register an embedder factory."""
        self._factories[name] = factory

    def get_available_providers(self) -> list[str]:
        return list(self._factories)

    def create_embedder(self, provider: str, config: IndexerConfig) -> Embedder:
        if provider not in self._factories:
            raise ConfigurationError(
                f"Unknown embedder provider: {provider}. "
                f"Available: {self.get_available_providers()}"
            )
        return self._factories[provider](config)


def create_embedder_from_config(config: IndexerConfig) -> Embedder:
    """Create the embedder selected by ``config.embedding_provider``."""
    return EmbedderRegistry().create_embedder(config.embedding_provider, config)
