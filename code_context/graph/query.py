"""Read-only traversals over a project graph."""

from dataclasses import dataclass, field
from typing import Any

import asyncpg

from ..analysis.entities import (
    CallStackEntry,
    FunctionContext,
    ImpactEntry,
    ImpactReport,
    NodeSummary,
    SearchResult,
    StoredNode,
)
from ..embeddings.base import Embedder
from ..errors import CypherQueryError, IndexingError, ProjectNotFoundError
from ..indexer_logging import LogCategory, get_category_logger
from ..storage.base import EmbeddingStore
from .cypher import ensure_read_only, parse_agtype
from .store import GraphStore

logger = get_category_logger(LogCategory.QUERY)


@dataclass
class RawQueryResult:
    """Rows of an ad-hoc query, decoded from agtype where possible."""

    rows: list[Any] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def to_dict(self) -> dict[str, Any]:
        return {"row_count": self.row_count, "rows": self.rows}


class QueryEngine:
    """Traversal algorithms built on GraphStore primitives. Never mutates."""

    def __init__(
        self,
        graph_store: GraphStore,
        embedder: Embedder | None = None,
        embedding_store: EmbeddingStore | None = None,
    ):
        self.graph_store = graph_store
        self.embedder = embedder
        self.embedding_store = embedding_store

    async def require_project(self, project: str) -> None:
        """Raise ProjectNotFoundError when the project has no graph."""
        if await self.graph_store.project_exists(project):
            return
        available = [p.project for p in await self.graph_store.list_projects()]
        raise ProjectNotFoundError(project, available)

    # Adjacency

    async def get_callers(self, name: str, project: str) -> list[NodeSummary]:
        return await self.graph_store.get_callers(name, project)

    async def get_callees(self, name: str, project: str) -> list[NodeSummary]:
        return await self.graph_store.get_callees(name, project)

    async def get_used_types(self, name: str, project: str) -> list[NodeSummary]:
        return await self.graph_store.get_used_types(name, project)

    # Call stack

    async def get_call_stack(self, root: str, depth: int, project: str) -> list[CallStackEntry]:
        """Tree of callees reachable from ``root`` within ``depth`` hops.

        Expansion is breadth-first, level by level. A name already seen
        anywhere in the traversal is never queried again, which bounds the
        number of queries. The tree is then rebuilt from the recorded
        adjacency with a per-path ancestor set: a node may appear under two
        different parents but never below itself.
        """
        if depth < 1:
            return []

        node_info: dict[str, NodeSummary] = {}
        # dicts keep insertion order, so children come out in query order
        children_of: dict[str, dict[str, None]] = {}
        visited = {root}
        frontier = [root]

        level = 1
        while level <= depth and frontier:
            next_frontier = []
            for caller in frontier:
                for callee in await self.graph_store.get_callees(caller, project):
                    node_info.setdefault(callee.name, callee)
                    children_of.setdefault(caller, {})[callee.name] = None
                    if callee.name not in visited:
                        visited.add(callee.name)
                        next_frontier.append(callee.name)
            frontier = next_frontier
            level += 1

        logger.debug(
            f"Call stack of {root}: {len(visited) - 1} functions within depth {depth}"
        )

        def build_tree(name: str, current_depth: int, ancestors: frozenset[str]) -> list[CallStackEntry]:
            callees = children_of.get(name)
            if not callees or current_depth > depth:
                return []
            entries = []
            for callee in callees:
                if callee in ancestors:
                    continue
                info = node_info[callee]
                entries.append(
                    CallStackEntry(
                        name=callee,
                        file_path=info.file_path,
                        kind=info.kind,
                        depth=current_depth,
                        children=build_tree(callee, current_depth + 1, ancestors | {callee}),
                    )
                )
            return entries

        return build_tree(root, 1, frozenset({root}))

    # Impact

    async def get_reverse_impact(self, file_path: str, project: str) -> list[ImpactEntry]:
        return await self.graph_store.get_incoming_references(file_path, project)

    async def get_impact_analysis(self, file_path: str, project: str) -> ImpactReport | None:
        """Nodes defined in ``file_path`` and dependents grouped by their file.

        ``None`` when nothing is indexed for the file.
        """
        nodes = await self.graph_store.find_nodes_by_file(file_path, project)
        if not nodes:
            return None
        impacted: dict[str, list[ImpactEntry]] = {}
        for entry in await self.get_reverse_impact(file_path, project):
            impacted.setdefault(entry.file_path, []).append(entry)
        return ImpactReport(
            file_path=file_path,
            nodes=nodes,
            impacted_files=dict(sorted(impacted.items())),
        )

    # Node context

    async def get_function_context(self, name: str, project: str) -> FunctionContext | None:
        node = await self.graph_store.find_node_by_name(name, project)
        if node is None:
            return None
        return FunctionContext(
            node=node,
            callers=await self.get_callers(name, project),
            callees=await self.get_callees(name, project),
            used_types=await self.get_used_types(name, project),
        )

    # Semantic search

    async def search_code(
        self, query: str, limit: int = 10, project: str | None = None
    ) -> list[SearchResult]:
        """Embed ``query``, find similar nodes and attach their graph vertex.

        Hits whose vertex no longer exists carry ``node=None``. Without a
        project, hits from several projects are looked up in their own graph.
        """
        if self.embedder is None or self.embedding_store is None:
            raise RuntimeError("Semantic search needs an embedder and an embedding store")

        embedding = await self.embedder.embed_text(query)
        if not embedding.success:
            raise IndexingError(f"Failed to embed search query: {embedding.error}")

        hits = await self.embedding_store.search(embedding.embedding, limit, project)
        existing: dict[str, bool] = {}
        results = []
        for hit in hits:
            if hit.project not in existing:
                existing[hit.project] = await self.graph_store.project_exists(hit.project)
            node: StoredNode | None = None
            if existing[hit.project]:
                node = await self.graph_store.find_node(hit.node_name, hit.file_path, hit.project)
            results.append(SearchResult(hit=hit, node=node))
        return results

    # Ad-hoc queries

    async def run_raw_cypher(self, query: str, project: str) -> RawQueryResult:
        """Run a caller-supplied read-only query.

        Queries containing a write keyword as a whole word are rejected before
        they reach the database. The query must return a single column.
        """
        ensure_read_only(query)
        try:
            rows = await self.graph_store.run_cypher(query, project)
        except asyncpg.PostgresError as e:
            raise CypherQueryError(str(e), query=query) from e
        return RawQueryResult(rows=[parse_agtype(row) for row in rows])
