"""Incremental indexing of a source tree into a project graph."""

import time
from pathlib import Path

import asyncpg

from ..analysis.entities import CodeNode, FileExtraction, Relationship
from ..analysis.parser import ParserRegistry
from ..config.models import IndexerConfig
from ..embeddings.base import Embedder, build_embedding_text
from ..errors import DirectoryNotFoundError, IndexingError
from ..graph.cypher import sanitize_project_name
from ..graph.store import GraphStore
from ..indexer_logging import LogCategory, get_category_logger
from ..storage.base import EmbeddingStore, StorageResult
from .change_detector import PENDING_HASH, ChangeDetector
from .dedup import build_definition_names, drop_shadowed_prototypes
from .scanner import ScannedFile, collect_files, read_file
from .types import DeletionSummary, IndexingPhase, IndexingResult

logger = get_category_logger(LogCategory.INDEXER)


class IndexingOrchestrator:
    """Drives an indexing run.

    collect files -> detect changes -> extract changed files -> dedup
    prototypes -> pass 1 (vertices + embeddings) -> pass 2 (edges) -> commit
    hashes -> remove deleted files.

    Files are processed one at a time. A file's hash is recorded only after
    both passes, so an interrupted run redoes that file next time.
    """

    def __init__(
        self,
        config: IndexerConfig,
        graph_store: GraphStore,
        change_detector: ChangeDetector,
        embedder: Embedder,
        embedding_store: EmbeddingStore,
        parser_registry: ParserRegistry | None = None,
    ):
        self.config = config
        self.graph_store = graph_store
        self.change_detector = change_detector
        self.embedder = embedder
        self.embedding_store = embedding_store
        self.parser_registry = parser_registry or ParserRegistry()

    @staticmethod
    def resolve_project_name(root: Path, project: str | None = None) -> str:
        name = sanitize_project_name(project if project else root.resolve().name)
        if not name:
            raise ValueError(f"Cannot derive a project name from {project or root}")
        return name

    async def index_project(self, root: Path, project: str | None = None) -> IndexingResult:
        """Index ``root`` into ``project`` (defaults to the directory name)."""
        start_time = time.time()
        root = Path(root)
        if not root.is_dir():
            raise DirectoryNotFoundError(str(root))

        project = self.resolve_project_name(root, project)
        result = IndexingResult(project=project)
        await self.graph_store.ensure_project(project)
        await self.change_detector.prepare(project)

        self._phase(IndexingPhase.COLLECT, project)
        paths = collect_files(
            root,
            self.parser_registry.get_supported_extensions(),
            self.config.exclude_dirs,
            self.config.max_file_size,
        )
        result.files_scanned = len(paths)

        self._phase(IndexingPhase.DETECT_CHANGES, project)
        changed: list[ScannedFile] = []
        previously_indexed: list[str] = []
        for path in paths:
            try:
                scanned = read_file(root, path)
            except OSError as e:
                logger.warning(f"Failed to read {path}: {e}")
                result.files_failed += 1
                result.failed_files.append(path)
                continue
            change = await self.change_detector.detect(project, path, scanned.hash)
            if change.changed:
                changed.append(scanned)
                if not change.is_new:
                    previously_indexed.append(path)
            else:
                result.files_skipped += 1

        logger.info(
            f"{project}: {len(changed)} changed, {result.files_skipped} unchanged "
            f"of {result.files_scanned} files"
        )

        self._phase(IndexingPhase.EXTRACT, project)
        extractions: list[tuple[ScannedFile, FileExtraction]] = []
        for scanned in changed:
            extraction = self.parser_registry.extract(
                scanned.relative_path, scanned.source
            )
            if not extraction.success:
                for error in extraction.errors:
                    logger.warning(f"{scanned.relative_path}: {error}")
                result.files_failed += 1
                result.failed_files.append(scanned.relative_path)
                result.errors.extend(extraction.errors)
                continue
            extractions.append((scanned, extraction))

        if extractions:
            self._phase(IndexingPhase.DEDUP, project)
            definition_names = build_definition_names(
                [ex for _, ex in extractions],
                await self.graph_store.find_function_definitions(project),
                [scanned.relative_path for scanned, _ in extractions],
            )
            for _, extraction in extractions:
                extraction.nodes, dropped = drop_shadowed_prototypes(
                    extraction.nodes, definition_names
                )
                result.prototypes_dropped += dropped

            rebuilt = {scanned.relative_path for scanned, _ in extractions}
            incoming = await self._drop_stored_prototypes(
                project, definition_names, rebuilt, result
            )
            for path in previously_indexed:
                if path not in rebuilt:
                    continue
                for rel in await self.graph_store.get_incoming_relationships(path, project):
                    # Edges from other rebuilt files come back with their extraction
                    if rel.source_file_path not in rebuilt:
                        incoming.append(rel)

            self._phase(IndexingPhase.VERTICES, project)
            for scanned, extraction in extractions:
                await self._write_vertices(project, scanned, extraction, result)

            # Every changed file's vertices exist before any edge is created
            self._phase(IndexingPhase.EDGES, project)
            for _, extraction in extractions:
                await self._write_edges(project, extraction.relationships, result)
            if incoming:
                logger.debug(f"{project}: restoring {len(incoming)} edges from unchanged files")
                await self._write_edges(project, incoming, result)

            self._phase(IndexingPhase.COMMIT, project)
            for scanned, _ in extractions:
                await self.change_detector.record(project, scanned.relative_path, scanned.hash)
                result.files_processed += 1
                result.processed_files.append(scanned.relative_path)

        self._phase(IndexingPhase.CLEANUP, project)
        for path in await self.change_detector.find_deleted(project, set(paths)):
            await self.remove_file(project, path)
            result.files_deleted += 1
            result.deleted_files.append(path)

        result.processing_time = time.time() - start_time
        result.success = result.files_failed == 0
        self._phase(IndexingPhase.COMPLETE, project)
        logger.info(
            f"Indexed {project}: {result.files_processed} files, "
            f"{result.vertices_created} vertices, {result.edges_created} edges, "
            f"{result.embeddings_stored} embeddings in {result.processing_time:.2f}s",
            extra={
                "project": project,
                "node_count": result.vertices_created,
                "duration_ms": round(result.processing_time * 1000),
            },
        )
        return result

    async def _drop_stored_prototypes(
        self,
        project: str,
        definition_names: set[str],
        rebuilt: set[str],
        result: IndexingResult,
    ) -> list[Relationship]:
        """Delete prototypes of unchanged files that a definition now shadows.

        Returns the edges that pointed at them so pass 2 can attach them to
        the definition, which shares the prototype's (label, name).
        """
        replay: list[Relationship] = []
        for name, path in await self.graph_store.find_function_prototypes(project):
            if name not in definition_names or path in rebuilt:
                continue
            for rel in await self.graph_store.get_prototype_incoming_relationships(
                name, path, project
            ):
                if rel.source_file_path not in rebuilt:
                    replay.append(rel)
            self._require_deleted(
                await self.embedding_store.delete_node(project, path, name), project, path
            )
            await self.graph_store.delete_function_prototype(name, path, project)
            result.prototypes_dropped += 1
            logger.debug(f"{project}: dropped stored prototype {name} in {path}")
        return replay

    @staticmethod
    def _require_deleted(
        outcome: StorageResult, project: str, file_path: str | None = None
    ) -> None:
        """Stop before the graph changes when stale vectors could not be removed."""
        if not outcome.success:
            scope = file_path or "project"
            raise IndexingError(
                f"Failed to delete embeddings of {scope} in {project}: "
                f"{'; '.join(outcome.errors or ['unknown error'])}",
                file_path=file_path,
            )

    async def _write_vertices(
        self,
        project: str,
        scanned: ScannedFile,
        extraction: FileExtraction,
        result: IndexingResult,
    ) -> None:
        """Pass 1 for one file: replace its vertices and embeddings."""
        path = scanned.relative_path
        self._require_deleted(
            await self.embedding_store.delete_file(project, path), project, path
        )

        await self.graph_store.clear_file_vertices(path, project)
        await self.graph_store.upsert_file_vertex(path, PENDING_HASH, project)

        for node in extraction.nodes:
            try:
                await self.graph_store.add_vertex(node, project)
            except asyncpg.PostgresError as e:
                logger.debug(f"Skipping vertex {node.name} in {path}: {e}")
                result.vertices_failed += 1
                continue
            result.vertices_created += 1
            await self.graph_store.link_defined_in(node, project)
            await self._embed_node(project, node, result)

        logger.debug(
            f"{path}: {len(extraction.nodes)} vertices",
            extra={"file_path": path, "node_count": len(extraction.nodes)},
        )

    async def _embed_node(self, project: str, node: CodeNode, result: IndexingResult) -> None:
        text = build_embedding_text(
            node.name, node.signature, node.body, self.config.max_body_chars
        )
        embedding = await self.embedder.embed_text(text)
        if not embedding.success:
            logger.warning(f"Failed to embed {node.name} ({node.file_path}): {embedding.error}")
            result.embeddings_failed += 1
            return

        stored = await self.embedding_store.upsert(
            project, node.name, node.file_path, embedding.embedding
        )
        if not stored.success:
            logger.warning(
                f"Failed to store embedding for {node.name}: {'; '.join(stored.errors or [])}"
            )
            result.embeddings_failed += 1
            return
        result.embeddings_stored += 1

    async def _write_edges(
        self, project: str, relationships: list[Relationship], result: IndexingResult
    ) -> None:
        """Pass 2. Missing endpoints are expected and silent."""
        for rel in relationships:
            try:
                created = await self.graph_store.add_edge(rel, project)
            except asyncpg.PostgresError as e:
                logger.debug(
                    f"Edge {rel.source_name} -{rel.relationship_kind.value}-> "
                    f"{rel.target_name} failed: {e}"
                )
                created = False
            if created:
                result.edges_created += 1
            else:
                result.edges_skipped += 1

    async def remove_file(self, project: str, file_path: str) -> None:
        """Drop a file's embeddings, vertices, edges and hash record."""
        self._require_deleted(
            await self.embedding_store.delete_file(project, file_path), project, file_path
        )
        await self.graph_store.clear_file_vertices(file_path, project)
        await self.graph_store.delete_file_vertex(file_path, project)
        await self.change_detector.forget(project, file_path)
        logger.info(f"Removed deleted file {file_path} from {project}")

    async def delete_project(self, project: str) -> DeletionSummary:
        """Remove every trace of a project: embeddings, graph and file records."""
        project = sanitize_project_name(project)
        summary = DeletionSummary(project=project)

        # The graph stays until every vector is gone so a failed run can be retried
        embeddings = await self.embedding_store.delete_project(project)
        self._require_deleted(embeddings, project)
        summary.embeddings_deleted = embeddings.items_processed
        summary.vertices_deleted = await self.graph_store.delete_project_graph(project)
        summary.file_records_deleted = await self.change_detector.forget_project(project)

        logger.info(
            f"Deleted project {project}: {summary.embeddings_deleted} embeddings, "
            f"{summary.vertices_deleted} vertices, "
            f"{summary.file_records_deleted} file records"
        )
        return summary

    @staticmethod
    def _phase(phase: IndexingPhase, project: str) -> None:
        logger.debug(f"{project}: {phase.value}", extra={"operation": phase.value})
