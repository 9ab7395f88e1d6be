"""Base classes and interfaces for text embedding generation."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

DEFAULT_MAX_BODY_CHARS = 1000


@dataclass
class EmbeddingResult:
    """Result of an embedding operation."""

    text: str
    embedding: list[float]

    # Metadata
    model: str = ""
    token_count: int = 0
    processing_time: float = 0.0
    error: str | None = None

    @property
    def success(self) -> bool:
        """Check if embedding generation was successful."""
        return self.error is None and len(self.embedding) > 0

    @property
    def dimension(self) -> int:
        """Get the dimensionality of the embedding vector."""
        return len(self.embedding)


def build_embedding_text(
    name: str, signature: str, body: str, max_body_chars: int = DEFAULT_MAX_BODY_CHARS
) -> str:
    """Embedding input for a code node: name, signature and a bounded body."""
    if len(body) > max_body_chars:
        body = body[:max_body_chars] + "..."
    return f"{name}\n{signature}\n{body}"


class Embedder(ABC):
    """Abstract base class for text embedding generators.

    Implementations make a single attempt per text and report failure through
    ``EmbeddingResult.error`` rather than raising.
    """

    @abstractmethod
    async def embed_text(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text."""
        pass

    @abstractmethod
    def get_model_info(self) -> dict[str, Any]:
        """Get information about the embedding model."""
        pass

    async def close(self) -> None:
        """Release any underlying HTTP client."""
        return None
