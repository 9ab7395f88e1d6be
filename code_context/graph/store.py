"""Vertex and edge persistence for project graphs."""

from dataclasses import dataclass
from typing import Any

from ..analysis.entities import (
    CodeNode,
    EdgeLabel,
    ImpactEntry,
    NodeKind,
    NodeSummary,
    Relationship,
    RelationshipKind,
    StoredNode,
    VertexLabel,
)
from ..indexer_logging import LogCategory, get_category_logger
from .connection import GraphConnection
from .cypher import (
    cypher_literal,
    cypher_properties,
    label,
    parse_agtype,
    project_from_graph_name,
)

logger = get_category_logger(LogCategory.GRAPH)

_NODE_FIELDS = "[n.name, n.file_path, n.kind, n.signature, n.start_line, n.end_line, n.body]"
_SUMMARY_FIELDS = "[{v}.name, {v}.file_path, {v}.kind, {v}.signature, {v}.start_line, {v}.end_line]"


@dataclass(frozen=True)
class ProjectSummary:
    """An indexed project and the number of vertices in its graph."""

    project: str
    graph_name: str
    vertex_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "graph": self.graph_name,
            "vertex_count": self.vertex_count,
        }


def _as_list(raw: str) -> list[Any] | None:
    parsed = parse_agtype(raw)
    return parsed if isinstance(parsed, list) else None


def _stored_node(raw: str) -> StoredNode | None:
    values = _as_list(raw)
    if values is None or len(values) < 7:
        return None
    name, file_path, kind, signature, start_line, end_line, body = values[:7]
    return StoredNode(
        name=name or "",
        file_path=file_path or "",
        kind=kind or "function",
        signature=signature or "",
        body=body or "",
        start_line=start_line or 0,
        end_line=end_line or 0,
    )


def _summary(raw: str) -> NodeSummary | None:
    values = _as_list(raw)
    if not values or values[0] is None:
        return None
    values = values + [None] * (6 - len(values))
    name, file_path, kind, signature, start_line, end_line = values[:6]
    return NodeSummary(
        name=name,
        file_path=file_path,
        kind=kind,
        signature=signature,
        start_line=start_line,
        end_line=end_line,
    )


def _edge_endpoint_kind(kind: str | None) -> NodeKind:
    if kind is None:
        return NodeKind.IMPORT
    return NodeKind.parse(kind) or NodeKind.FUNCTION


_REPLAY_RETURN = (
    "RETURN DISTINCT [external.name, coalesce(external.file_path, external.path), "
    "external.kind, type(r), target.name, target.kind]"
)


def _replayable(rows: list[str]) -> list[Relationship]:
    """Decode ``_REPLAY_RETURN`` rows into relationships ``add_edge`` accepts."""
    relationships = []
    for row in rows:
        values = _as_list(row)
        if not values or len(values) < 6:
            continue
        source_name, source_path, source_kind, edge, target_name, target_kind = values[:6]
        # DEFINED_IN is maintained by the indexer itself
        if not source_name or not target_name or edge not in RelationshipKind.__members__:
            continue
        relationships.append(
            Relationship(
                source_file_path=source_path or "",
                source_name=source_name,
                source_kind=_edge_endpoint_kind(source_kind),
                target_name=target_name,
                target_kind=_edge_endpoint_kind(target_kind),
                relationship_kind=RelationshipKind[edge],
            )
        )
    return relationships


class GraphStore:
    """CRUD over code vertices, edges and File vertices in a project graph.

    Every value placed in a query is rendered through ``graph.cypher``.
    Lookups return ``None`` or an empty list on a miss.

    Code vertices carry ``name``, ``file_path`` and ``kind``. File vertices
    used for change detection carry ``name``, ``path`` and ``hash`` but no
    ``file_path`` or ``kind``, so file-scoped deletes and node lookups never
    touch them while IMPORTS edges can still start from them by name.
    """

    def __init__(self, connection: GraphConnection):
        self.connection = connection

    async def ensure_project(self, project: str) -> None:
        await self.connection.ensure_graph(project)

    async def project_exists(self, project: str) -> bool:
        return await self.connection.graph_exists(project)

    async def run_cypher(self, query: str, project: str) -> list[str]:
        """Execute a query as-is. Callers are responsible for its safety."""
        return await self.connection.cypher(query, project)

    # Writes

    async def add_vertex(self, node: CodeNode, project: str) -> None:
        properties = cypher_properties(
            {
                "name": node.name,
                "file_path": node.file_path,
                "kind": node.kind.value,
                "signature": node.signature,
                "body": node.body,
                "start_line": int(node.start_line),
                "end_line": int(node.end_line),
            }
        )
        await self.run_cypher(f"CREATE (n:{label(node.label)} {properties})", project)

    async def add_edge(self, rel: Relationship, project: str) -> bool:
        """MERGE an edge between existing endpoints.

        Endpoints are matched by ``(label, name)``. When either is missing
        nothing matches and no edge is created. Returns whether an edge exists
        afterwards.
        """
        source = cypher_properties({"name": rel.source_name})
        target = cypher_properties({"name": rel.target_name})
        rows = await self.run_cypher(
            f"MATCH (a:{label(rel.source_label)} {source}), "
            f"(b:{label(rel.target_label)} {target}) "
            f"MERGE (a)-[e:{label(rel.edge_label)}]->(b) RETURN id(e)",
            project,
        )
        return bool(rows)

    async def link_defined_in(self, node: CodeNode, project: str) -> None:
        """MERGE a DEFINED_IN edge from a code vertex to its File vertex."""
        vertex = cypher_properties({"name": node.name, "file_path": node.file_path})
        file_vertex = cypher_properties({"path": node.file_path})
        await self.run_cypher(
            f"MATCH (n:{label(node.label)} {vertex}), "
            f"(f:{label(VertexLabel.FILE)} {file_vertex}) "
            f"MERGE (n)-[:{label(EdgeLabel.DEFINED_IN)}]->(f)",
            project,
        )

    async def clear_file_vertices(self, file_path: str, project: str) -> None:
        """Delete every code vertex of a file and the edges touching them.

        AGE has no DETACH DELETE, so edges go first.
        """
        match = cypher_properties({"file_path": file_path})
        await self.run_cypher(f"MATCH (n {match})-[r]-() DELETE r", project)
        await self.run_cypher(f"MATCH (n {match}) DELETE n", project)

    async def delete_file_vertex(self, path: str, project: str) -> None:
        match = cypher_properties({"path": path})
        file_label = label(VertexLabel.FILE)
        await self.run_cypher(f"MATCH (f:{file_label} {match})-[r]-() DELETE r", project)
        await self.run_cypher(f"MATCH (f:{file_label} {match}) DELETE f", project)

    async def upsert_file_vertex(self, path: str, hash: str, project: str) -> None:
        """Replace the File vertex for ``path``.

        AGE lacks MERGE ... ON CREATE SET, so this deletes then creates. The
        pair is not atomic: a concurrent reader may briefly see no File
        vertex, and the next indexing run repairs any interrupted replace.
        """
        await self.delete_file_vertex(path, project)
        properties = cypher_properties({"name": path, "path": path, "hash": hash})
        await self.run_cypher(f"CREATE (f:{label(VertexLabel.FILE)} {properties})", project)

    async def set_file_hash(self, path: str, hash: str, project: str) -> bool:
        """Update the hash on an existing File vertex, keeping its edges."""
        match = cypher_properties({"path": path})
        rows = await self.run_cypher(
            f"MATCH (f:{label(VertexLabel.FILE)} {match}) "
            f"SET f.hash = {cypher_literal(hash)} RETURN f.path",
            project,
        )
        return bool(rows)

    async def delete_project_graph(self, project: str) -> int:
        """Delete all edges and vertices, then drop the graph.

        Returns the number of vertices before deletion; 0 for an unknown
        project.
        """
        if not await self.project_exists(project):
            return 0
        vertex_count = await self.count_vertices(project)
        await self.run_cypher("MATCH (n)-[r]-() DELETE r", project)
        await self.run_cypher("MATCH (n) DELETE n", project)
        await self.connection.drop_graph(project)
        logger.info(f"Deleted {vertex_count} vertices of project {project}")
        return vertex_count

    # Lookups

    async def count_vertices(self, project: str) -> int:
        rows = await self.run_cypher("MATCH (n) RETURN count(n)", project)
        if not rows:
            return 0
        value = parse_agtype(rows[0])
        return value if isinstance(value, int) else 0

    async def get_file_hash(self, path: str, project: str) -> str | None:
        match = cypher_properties({"path": path})
        rows = await self.run_cypher(
            f"MATCH (f:{label(VertexLabel.FILE)} {match}) RETURN f.hash LIMIT 1", project
        )
        if not rows:
            return None
        value = parse_agtype(rows[0])
        return value if isinstance(value, str) else None

    async def list_file_paths(self, project: str) -> list[str]:
        rows = await self.run_cypher(
            f"MATCH (f:{label(VertexLabel.FILE)}) WHERE f.path IS NOT NULL RETURN f.path",
            project,
        )
        paths = [parse_agtype(row) for row in rows]
        return sorted(p for p in paths if isinstance(p, str))

    async def find_node_by_name(self, name: str, project: str) -> StoredNode | None:
        match = cypher_properties({"name": name})
        rows = await self.run_cypher(
            f"MATCH (n {match}) WHERE n.kind IS NOT NULL RETURN {_NODE_FIELDS} LIMIT 1",
            project,
        )
        return _stored_node(rows[0]) if rows else None

    async def find_node(self, name: str, file_path: str, project: str) -> StoredNode | None:
        match = cypher_properties({"name": name, "file_path": file_path})
        rows = await self.run_cypher(
            f"MATCH (n {match}) WHERE n.kind IS NOT NULL RETURN {_NODE_FIELDS} LIMIT 1",
            project,
        )
        return _stored_node(rows[0]) if rows else None

    async def find_nodes_by_file(self, file_path: str, project: str) -> list[StoredNode]:
        match = cypher_properties({"file_path": file_path})
        rows = await self.run_cypher(
            f"MATCH (n {match}) WHERE n.kind IS NOT NULL RETURN {_NODE_FIELDS}",
            project,
        )
        nodes = [_stored_node(row) for row in rows]
        return sorted((n for n in nodes if n), key=lambda n: (n.start_line, n.name))

    async def find_function_definitions(self, project: str) -> list[tuple[str, str]]:
        """(name, file_path) of every stored multi-line function vertex."""
        rows = await self.run_cypher(
            f"MATCH (n:{label(VertexLabel.FUNCTION)}) "
            f"WHERE n.kind = 'function' AND n.end_line > n.start_line "
            f"RETURN [n.name, n.file_path]",
            project,
        )
        definitions = []
        for row in rows:
            values = _as_list(row)
            if values and len(values) == 2 and values[0]:
                definitions.append((values[0], values[1] or ""))
        return definitions

    # Adjacency

    async def _summaries(self, query: str, project: str) -> list[NodeSummary]:
        rows = await self.run_cypher(query, project)
        return [s for s in (_summary(row) for row in rows) if s is not None]

    async def get_callers(self, name: str, project: str) -> list[NodeSummary]:
        fn = label(VertexLabel.FUNCTION)
        target = cypher_properties({"name": name})
        return await self._summaries(
            f"MATCH (caller:{fn})-[:{label(EdgeLabel.CALLS)}]->(target:{fn} {target}) "
            f"RETURN DISTINCT {_SUMMARY_FIELDS.format(v='caller')}",
            project,
        )

    async def get_callees(self, name: str, project: str) -> list[NodeSummary]:
        fn = label(VertexLabel.FUNCTION)
        source = cypher_properties({"name": name})
        return await self._summaries(
            f"MATCH (source:{fn} {source})-[:{label(EdgeLabel.CALLS)}]->(callee:{fn}) "
            f"RETURN DISTINCT {_SUMMARY_FIELDS.format(v='callee')}",
            project,
        )

    async def get_used_types(self, name: str, project: str) -> list[NodeSummary]:
        source = cypher_properties({"name": name})
        return await self._summaries(
            f"MATCH (source:{label(VertexLabel.FUNCTION)} {source})"
            f"-[:{label(EdgeLabel.USES)}]->(t:{label(VertexLabel.TYPE)}) "
            f"RETURN DISTINCT {_SUMMARY_FIELDS.format(v='t')}",
            project,
        )

    async def get_incoming_references(self, file_path: str, project: str) -> list[ImpactEntry]:
        """Vertices outside ``file_path`` with an edge into a vertex inside it."""
        path = cypher_literal(file_path)
        rows = await self.run_cypher(
            f"MATCH (external)-[r]->(target {{file_path: {path}}}) "
            f"WHERE external.file_path <> {path} "
            f"RETURN DISTINCT [external.name, external.file_path, external.kind, type(r)]",
            project,
        )
        entries = []
        for row in rows:
            values = _as_list(row)
            if not values or len(values) < 4 or not values[0]:
                continue
            name, source_path, kind, relationship = values[:4]
            entries.append(
                ImpactEntry(
                    name=name,
                    file_path=source_path or "",
                    kind=kind,
                    relationship=relationship or EdgeLabel.CALLS.value,
                )
            )
        return entries

    async def get_incoming_relationships(
        self, file_path: str, project: str
    ) -> list[Relationship]:
        """Edges from other files into ``file_path``, as replayable relationships.

        Covers edges into the file's code vertices and into its File vertex.
        Rebuilding a file removes both; the indexer recreates them once the
        file's new vertices exist. File vertices have no ``kind`` and are
        read back as the import kind, which maps to the File label.
        """
        path = cypher_literal(file_path)
        rows = await self.run_cypher(
            f"MATCH (external)-[r]->(target) "
            f"WHERE coalesce(target.file_path, target.path) = {path} "
            f"AND coalesce(external.file_path, external.path) <> {path} "
            f"{_REPLAY_RETURN}",
            project,
        )
        return _replayable(rows)

    # Stale prototypes

    async def find_function_prototypes(self, project: str) -> list[tuple[str, str]]:
        """(name, file_path) of every stored single-line function vertex."""
        rows = await self.run_cypher(
            f"MATCH (n:{label(VertexLabel.FUNCTION)}) "
            f"WHERE n.kind = 'function' AND n.end_line = n.start_line "
            f"RETURN [n.name, n.file_path]",
            project,
        )
        prototypes = []
        for row in rows:
            values = _as_list(row)
            if values and len(values) == 2 and values[0]:
                prototypes.append((values[0], values[1] or ""))
        return prototypes

    @staticmethod
    def _prototype_match(var: str, name: str, file_path: str) -> str:
        props = cypher_properties({"name": name, "file_path": file_path})
        return f"({var}:{label(VertexLabel.FUNCTION)} {props})"

    async def get_prototype_incoming_relationships(
        self, name: str, file_path: str, project: str
    ) -> list[Relationship]:
        """Edges into one stored prototype, replayable onto its definition."""
        target = self._prototype_match("target", name, file_path)
        rows = await self.run_cypher(
            f"MATCH (external)-[r]->{target} "
            f"WHERE target.end_line = target.start_line "
            f"{_REPLAY_RETURN}",
            project,
        )
        return _replayable(rows)

    async def delete_function_prototype(self, name: str, file_path: str, project: str) -> None:
        """Delete one single-line function vertex and its edges."""
        match = self._prototype_match("n", name, file_path)
        where = "WHERE n.end_line = n.start_line"
        await self.run_cypher(f"MATCH {match}-[r]-() {where} DELETE r", project)
        await self.run_cypher(f"MATCH {match} {where} DELETE n", project)

    # Projects

    async def list_projects(self) -> list[ProjectSummary]:
        prefix = self.connection.config.graph_prefix
        projects = []
        for graph_name in await self.connection.list_graphs():
            project = project_from_graph_name(graph_name, prefix)
            if project is None:
                continue
            projects.append(
                ProjectSummary(
                    project=project,
                    graph_name=graph_name,
                    vertex_count=await self.count_vertices(project),
                )
            )
        return projects
