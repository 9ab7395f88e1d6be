"""Text embedding generation."""

from .base import Embedder, EmbeddingResult, build_embedding_text
from .openai import OpenAICompatibleEmbedder
from .registry import EmbedderRegistry, create_embedder_from_config

__all__ = [
    "Embedder",
    "EmbeddingResult",
    "build_embedding_text",
    "OpenAICompatibleEmbedder",
    "EmbedderRegistry",
    "create_embedder_from_config",
]
