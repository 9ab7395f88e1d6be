"""OpenAI-compatible embeddings (OpenAI proper, or Ollama's /v1 endpoint)."""

import time
from typing import Any

import openai

from ..indexer_logging import LogCategory, get_category_logger
from .base import Embedder, EmbeddingResult

logger = get_category_logger(LogCategory.EMBEDDINGS)


class OpenAICompatibleEmbedder(Embedder):
    """Async embeddings client with no retries.

    A failed request yields an ``EmbeddingResult`` with ``error`` set; the
    caller decides whether to skip the item.
    """

    # Known model dimensions
    MODELS = {
        "nomic-embed-text": {"dimensions": 768},
        "mxbai-embed-large": {"dimensions": 1024},
        "all-minilm": {"dimensions": 384},
        "text-embedding-3-small": {"dimensions": 1536},
        "text-embedding-3-large": {"dimensions": 3072},
        "text-embedding-ada-002": {"dimensions": 1536},
    }

    def __init__(
        self,
        model: str,
        dimensions: int,
        api_key: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        provider: str = "openai",
    ) -> None:
        known = self.MODELS.get(model)
        if known and known["dimensions"] != dimensions:
            logger.warning(
                f"Model {model} produces {known['dimensions']} dimensions, "
                f"configured for {dimensions}"
            )

        self.model = model
        self.dimensions = dimensions
        self.provider = provider
        self.client = openai.AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0
        )

    async def embed_text(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text."""
        start_time = time.time()
        try:
            response = await self.client.embeddings.create(
                model=self.model, input=text, encoding_format="float"
            )
        except openai.OpenAIError as e:
            logger.debug(f"Embedding request failed: {e}")
            return EmbeddingResult(
                text=text,
                embedding=[],
                model=self.model,
                processing_time=time.time() - start_time,
                error=str(e),
            )

        embedding = list(response.data[0].embedding) if response.data else []
        usage = getattr(response, "usage", None)
        result = EmbeddingResult(
            text=text,
            embedding=embedding,
            model=self.model,
            token_count=getattr(usage, "total_tokens", 0) or 0,
            processing_time=time.time() - start_time,
        )
        if not embedding:
            result.error = "Empty embedding in response"
        elif len(embedding) != self.dimensions:
            result.error = (
                f"Expected {self.dimensions} dimensions, got {len(embedding)}"
            )
        return result

    def get_model_info(self) -> dict[str, Any]:
        """Get information about the embedding model."""
        return {
            "provider": self.provider,
            "model": self.model,
            "dimensions": self.dimensions,
            "base_url": str(self.client.base_url),
        }

    async def close(self) -> None:
        await self.client.close()
