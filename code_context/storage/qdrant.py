"""Qdrant embedding store implementation."""

import time
import warnings

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from ..analysis.entities import EmbeddingHit
from ..errors import EmbeddingStoreConnectionError
from ..indexer_logging import LogCategory, get_category_logger
from .base import EmbeddingStore, StorageResult, embedding_point_id

logger = get_category_logger(LogCategory.STORAGE)


def _project_filter(
    project: str, file_path: str | None = None, node_name: str | None = None
) -> Filter:
    conditions = [FieldCondition(key="project", match=MatchValue(value=project))]
    if file_path is not None:
        conditions.append(
            FieldCondition(key="file_path", match=MatchValue(value=file_path))
        )
    if node_name is not None:
        conditions.append(
            FieldCondition(key="node_name", match=MatchValue(value=node_name))
        )
    return Filter(must=conditions)


class QdrantEmbeddingStore(EmbeddingStore):
    """Stores one vector per code node in a single Qdrant collection.

    Payload: ``project``, ``node_name``, ``file_path``. Payload indexes on
    ``project`` and ``file_path`` keep scoped deletes and searches cheap.
    """

    def __init__(
        self,
        url: str = "http://localhost:6333",
        collection_name: str = "code_embeddings",
        vector_size: int = 768,
        api_key: str | None = None,
        timeout: float = 60.0,
    ):
        self.url = url
        self.collection_name = collection_name
        self.vector_size = vector_size
        self.api_key = api_key
        self.timeout = timeout
        self._client: AsyncQdrantClient | None = None

    @property
    def client(self) -> AsyncQdrantClient:
        if self._client is None:
            raise RuntimeError("QdrantEmbeddingStore is not open")
        return self._client

    async def open(self) -> None:
        if self._client is not None:
            return
        try:
            # Suppress insecure connection warning for development
            with warnings.catch_warnings():
                warnings.filterwarnings(
                    "ignore", message="Api key is used with an insecure connection"
                )
                self._client = AsyncQdrantClient(
                    url=self.url, api_key=self.api_key, timeout=int(self.timeout)
                )
            await self._ensure_collection()
        except Exception as e:
            await self.close()
            raise EmbeddingStoreConnectionError(self.url, str(e)) from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def _ensure_collection(self) -> None:
        if await self.client.collection_exists(self.collection_name):
            return
        await self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=self.vector_size, distance=Distance.COSINE),
        )
        for field_name in ("project", "file_path"):
            await self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field_name,
                field_schema=PayloadSchemaType.KEYWORD,
            )
        logger.info(f"Created collection {self.collection_name} ({self.vector_size} dims)")

    async def upsert(
        self, project: str, node_name: str, file_path: str, vector: list[float]
    ) -> StorageResult:
        start_time = time.time()
        try:
            if hasattr(vector, "tolist"):
                vector = vector.tolist()
            await self.client.upsert(
                collection_name=self.collection_name,
                points=[
                    PointStruct(
                        id=embedding_point_id(project, file_path, node_name),
                        vector=list(vector),
                        payload={
                            "project": project,
                            "node_name": node_name,
                            "file_path": file_path,
                        },
                    )
                ],
            )
            return StorageResult(
                success=True,
                operation="upsert",
                items_processed=1,
                processing_time=time.time() - start_time,
            )
        except Exception as e:
            return StorageResult(
                success=False,
                operation="upsert",
                items_failed=1,
                processing_time=time.time() - start_time,
                errors=[f"Failed to store embedding for {node_name}: {e}"],
            )

    async def _delete(self, selector: Filter, operation: str) -> StorageResult:
        start_time = time.time()
        try:
            count = await self.client.count(
                collection_name=self.collection_name, count_filter=selector, exact=True
            )
            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=FilterSelector(filter=selector),
            )
            return StorageResult(
                success=True,
                operation=operation,
                items_processed=count.count,
                processing_time=time.time() - start_time,
            )
        except Exception as e:
            logger.error(f"Exception in {operation}: {e}")
            return StorageResult(
                success=False,
                operation=operation,
                processing_time=time.time() - start_time,
                errors=[f"Failed to delete embeddings: {e}"],
            )

    async def delete_file(self, project: str, file_path: str) -> StorageResult:
        return await self._delete(_project_filter(project, file_path), "delete_file")

    async def delete_node(self, project: str, file_path: str, node_name: str) -> StorageResult:
        return await self._delete(
            _project_filter(project, file_path, node_name), "delete_node"
        )

    async def delete_project(self, project: str) -> StorageResult:
        return await self._delete(_project_filter(project), "delete_project")

    async def search(
        self, vector: list[float], limit: int = 10, project: str | None = None
    ) -> list[EmbeddingHit]:
        if hasattr(vector, "tolist"):
            vector = vector.tolist()
        response = await self.client.query_points(
            collection_name=self.collection_name,
            query=list(vector),
            query_filter=_project_filter(project) if project is not None else None,
            limit=limit,
            with_payload=True,
        )
        hits = []
        for point in response.points:
            payload = point.payload or {}
            hits.append(
                EmbeddingHit(
                    project=payload.get("project", ""),
                    node_name=payload.get("node_name", ""),
                    file_path=payload.get("file_path", ""),
                    score=point.score,
                )
            )
        return hits
