"""Content-hash change detection per (project, file_path)."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..graph.connection import GraphConnection
from ..graph.store import GraphStore
from ..indexer_logging import LogCategory, get_category_logger

logger = get_category_logger(LogCategory.INDEXER)

# Hash of a File vertex whose rebuild has not been committed yet
PENDING_HASH = ""


class FileHashStore(ABC):
    """Persists the last indexed content hash of each file."""

    async def ensure(self, project: str) -> None:
        """Create any storage the backend needs."""
        return None

    @abstractmethod
    async def get_hash(self, project: str, file_path: str) -> str | None:
        pass

    @abstractmethod
    async def set_hash(self, project: str, file_path: str, hash: str) -> None:
        pass

    @abstractmethod
    async def delete(self, project: str, file_path: str) -> None:
        pass

    @abstractmethod
    async def list_paths(self, project: str) -> list[str]:
        pass

    @abstractmethod
    async def delete_project(self, project: str) -> int:
        """Forget every record of a project; returns how many were removed."""


class GraphFileHashStore(FileHashStore):
    """Hashes on File vertices inside the project graph."""

    def __init__(self, graph_store: GraphStore):
        self.graph_store = graph_store

    async def get_hash(self, project: str, file_path: str) -> str | None:
        return await self.graph_store.get_file_hash(file_path, project)

    async def set_hash(self, project: str, file_path: str, hash: str) -> None:
        # SET keeps the File vertex's DEFINED_IN edges
        if not await self.graph_store.set_file_hash(file_path, hash, project):
            await self.graph_store.upsert_file_vertex(file_path, hash, project)

    async def delete(self, project: str, file_path: str) -> None:
        await self.graph_store.delete_file_vertex(file_path, project)

    async def list_paths(self, project: str) -> list[str]:
        return await self.graph_store.list_file_paths(project)

    async def delete_project(self, project: str) -> int:
        # File vertices are dropped with the graph itself
        return 0


class TableFileHashStore(FileHashStore):
    """Hashes in a ``public.file_hashes`` table shared by all projects."""

    def __init__(self, connection: GraphConnection):
        self.connection = connection

    async def ensure(self, project: str) -> None:
        await self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS public.file_hashes (
                project TEXT NOT NULL,
                file_path TEXT NOT NULL,
                hash TEXT NOT NULL,
                indexed_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                PRIMARY KEY (project, file_path)
            )
            """
        )

    async def get_hash(self, project: str, file_path: str) -> str | None:
        return await self.connection.fetchval(
            "SELECT hash FROM public.file_hashes WHERE project = $1 AND file_path = $2",
            project,
            file_path,
        )

    async def set_hash(self, project: str, file_path: str, hash: str) -> None:
        await self.connection.execute(
            """
            INSERT INTO public.file_hashes (project, file_path, hash, indexed_at)
            VALUES ($1, $2, $3, now())
            ON CONFLICT (project, file_path)
            DO UPDATE SET hash = EXCLUDED.hash, indexed_at = EXCLUDED.indexed_at
            """,
            project,
            file_path,
            hash,
        )

    async def delete(self, project: str, file_path: str) -> None:
        await self.connection.execute(
            "DELETE FROM public.file_hashes WHERE project = $1 AND file_path = $2",
            project,
            file_path,
        )

    async def list_paths(self, project: str) -> list[str]:
        rows = await self.connection.fetch(
            "SELECT file_path FROM public.file_hashes WHERE project = $1 ORDER BY file_path",
            project,
        )
        return [row["file_path"] for row in rows]

    async def delete_project(self, project: str) -> int:
        await self.ensure(project)
        status = await self.connection.execute(
            "DELETE FROM public.file_hashes WHERE project = $1", project
        )
        # asyncpg returns the command tag, e.g. "DELETE 3"
        return int(status.split()[-1]) if status else 0


@dataclass(frozen=True)
class FileChange:
    """Classification of one file against its recorded hash."""

    file_path: str
    hash: str
    previous_hash: str | None

    @property
    def changed(self) -> bool:
        return self.previous_hash != self.hash

    @property
    def is_new(self) -> bool:
        return self.previous_hash is None


class ChangeDetector:
    """Classifies files as changed/unchanged and records hashes after rebuilds."""

    def __init__(self, hash_store: FileHashStore):
        self.hash_store = hash_store

    async def prepare(self, project: str) -> None:
        await self.hash_store.ensure(project)

    async def detect(self, project: str, file_path: str, hash: str) -> FileChange:
        previous = await self.hash_store.get_hash(project, file_path)
        return FileChange(file_path=file_path, hash=hash, previous_hash=previous)

    async def record(self, project: str, file_path: str, hash: str) -> None:
        """Record a file as indexed. Call only after its graph data is rebuilt."""
        await self.hash_store.set_hash(project, file_path, hash)

    async def forget(self, project: str, file_path: str) -> None:
        await self.hash_store.delete(project, file_path)

    async def find_deleted(self, project: str, present_paths: set[str]) -> list[str]:
        """Recorded paths that are no longer among ``present_paths``."""
        recorded = await self.hash_store.list_paths(project)
        return sorted(p for p in recorded if p not in present_paths)

    async def forget_project(self, project: str) -> int:
        return await self.hash_store.delete_project(project)
