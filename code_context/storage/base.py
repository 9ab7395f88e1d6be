"""Base classes and interfaces for embedding storage."""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..analysis.entities import EmbeddingHit


@dataclass
class StorageResult:
    """Result of a storage operation."""

    success: bool
    operation: str  # "upsert", "delete", "search"

    items_processed: int = 0
    items_failed: int = 0
    processing_time: float = 0.0

    errors: list[str] | None = None

    def __post_init__(self) -> None:
        if self.errors is None:
            self.errors = []

    @property
    def has_errors(self) -> bool:
        """Check if there were any errors."""
        return len(self.errors or []) > 0 or self.items_failed > 0


def embedding_point_id(project: str, file_path: str, node_name: str) -> str:
    """Deterministic point id so re-indexing a node replaces its vector."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{project}::{file_path}::{node_name}"))


class EmbeddingStore(ABC):
    """Vectors for code nodes, keyed by (project, file_path, node_name)."""

    @abstractmethod
    async def open(self) -> None:
        """Connect and make sure the collection exists."""

    @abstractmethod
    async def close(self) -> None:
        """Release the client."""

    @abstractmethod
    async def upsert(
        self, project: str, node_name: str, file_path: str, vector: list[float]
    ) -> StorageResult:
        """Insert or replace the vector of one node."""

    @abstractmethod
    async def delete_file(self, project: str, file_path: str) -> StorageResult:
        """Remove every vector of one file."""

    @abstractmethod
    async def delete_node(self, project: str, file_path: str, node_name: str) -> StorageResult:
        """Remove the vector of one node."""

    @abstractmethod
    async def delete_project(self, project: str) -> StorageResult:
        """Remove every vector of a project; items_processed holds the count."""

    @abstractmethod
    async def search(
        self, vector: list[float], limit: int = 10, project: str | None = None
    ) -> list[EmbeddingHit]:
        """Nearest nodes by cosine similarity, optionally within one project."""
