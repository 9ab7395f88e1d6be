"""Embedding storage."""

from .base import EmbeddingStore, StorageResult, embedding_point_id
from .qdrant import QdrantEmbeddingStore

__all__ = ["EmbeddingStore", "StorageResult", "embedding_point_id", "QdrantEmbeddingStore"]
