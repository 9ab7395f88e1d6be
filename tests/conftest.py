"""
Shared fixtures for the code-context test suite.

Provides test fixtures for:
- Temporary source trees
- An in-memory graph store with GraphStore semantics
- A deterministic embedder and an in-memory embedding store
- A JSON-driven parser so indexing tests need no grammar
- Configuration isolated from the environment
"""

import itertools
import json
import zlib
from pathlib import Path
from typing import Any

import asyncpg
import numpy as np
import pytest

from code_context.analysis.entities import (
    CodeNode,
    EdgeLabel,
    EmbeddingHit,
    FileExtraction,
    ImpactEntry,
    NodeKind,
    NodeSummary,
    Relationship,
    RelationshipKind,
    StoredNode,
    VertexLabel,
)
from code_context.analysis.parser import CodeParser, ParserRegistry
from code_context.config.models import ENV_VARS, IndexerConfig
from code_context.embeddings.base import Embedder, EmbeddingResult
from code_context.graph.store import ProjectSummary
from code_context.indexing.change_detector import ChangeDetector, GraphFileHashStore
from code_context.indexing.orchestrator import IndexingOrchestrator
from code_context.storage.base import EmbeddingStore, StorageResult

DIMENSION = 16


# ---------------------------------------------------------------------------
# In-memory graph store
# ---------------------------------------------------------------------------


class FakeGraphStore:
    """Dictionary-backed stand-in for GraphStore.

    Mirrors the query semantics: edges are matched by (label, name), MERGE
    never duplicates, file-scoped deletes only touch vertices carrying
    ``file_path``, File vertices carry ``path``/``hash``.
    """

    def __init__(self) -> None:
        self.graphs: dict[str, dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self.calls: list[tuple[str, Any]] = []
        self.fail_vertex_names: set[str] = set()
        self.cypher_rows: list[str] = []

    def _graph(self, project: str) -> dict[str, Any]:
        if project not in self.graphs:
            raise KeyError(f"graph for {project} does not exist")
        return self.graphs[project]

    # Inspection helpers

    def vertices(self, project: str, label: VertexLabel | None = None) -> list[dict[str, Any]]:
        graph = self.graphs.get(project, {"vertices": {}})
        return [
            v for v in graph["vertices"].values() if label is None or v["label"] == label
        ]

    def edges(self, project: str, label: EdgeLabel | None = None) -> list[tuple[str, str, str]]:
        """(source name, edge label, target name) triples."""
        graph = self.graphs.get(project, {"vertices": {}, "edges": set()})
        vertices = graph["vertices"]
        return sorted(
            (vertices[a]["name"], elabel.value, vertices[b]["name"])
            for a, elabel, b in graph["edges"]
            if label is None or elabel == label
        )

    # GraphStore API

    async def ensure_project(self, project: str) -> None:
        self.graphs.setdefault(project, {"vertices": {}, "edges": set()})

    async def project_exists(self, project: str) -> bool:
        return project in self.graphs

    async def run_cypher(self, query: str, project: str) -> list[str]:
        self._graph(project)
        self.calls.append(("run_cypher", query))
        return list(self.cypher_rows)

    async def add_vertex(self, node: CodeNode, project: str) -> None:
        if node.name in self.fail_vertex_names:
            raise asyncpg.PostgresError(f"cannot create {node.name}")
        self._graph(project)["vertices"][next(self._ids)] = {
            "label": node.label,
            "name": node.name,
            "file_path": node.file_path,
            "kind": node.kind.value,
            "signature": node.signature,
            "body": node.body,
            "start_line": node.start_line,
            "end_line": node.end_line,
        }

    def _match(self, project: str, label: VertexLabel, **props: Any) -> list[int]:
        return [
            vid
            for vid, v in self._graph(project)["vertices"].items()
            if v["label"] == label and all(v.get(k) == val for k, val in props.items())
        ]

    async def add_edge(self, rel: Relationship, project: str) -> bool:
        sources = self._match(project, rel.source_label, name=rel.source_name)
        targets = self._match(project, rel.target_label, name=rel.target_name)
        for a in sources:
            for b in targets:
                self._graph(project)["edges"].add((a, rel.edge_label, b))
        return bool(sources and targets)

    async def link_defined_in(self, node: CodeNode, project: str) -> None:
        for a in self._match(project, node.label, name=node.name, file_path=node.file_path):
            for b in self._match(project, VertexLabel.FILE, path=node.file_path):
                self._graph(project)["edges"].add((a, EdgeLabel.DEFINED_IN, b))

    def _delete_vertices(self, project: str, ids: set[int]) -> None:
        graph = self._graph(project)
        graph["edges"] = {e for e in graph["edges"] if e[0] not in ids and e[2] not in ids}
        for vid in ids:
            graph["vertices"].pop(vid, None)

    async def clear_file_vertices(self, file_path: str, project: str) -> None:
        self.calls.append(("clear_file_vertices", file_path))
        ids = {
            vid
            for vid, v in self._graph(project)["vertices"].items()
            if v.get("file_path") == file_path
        }
        self._delete_vertices(project, ids)

    async def delete_file_vertex(self, path: str, project: str) -> None:
        self._delete_vertices(project, set(self._match(project, VertexLabel.FILE, path=path)))

    async def upsert_file_vertex(self, path: str, hash: str, project: str) -> None:
        self.calls.append(("upsert_file_vertex", (path, hash)))
        await self.delete_file_vertex(path, project)
        self._graph(project)["vertices"][next(self._ids)] = {
            "label": VertexLabel.FILE,
            "name": path,
            "path": path,
            "hash": hash,
        }

    async def set_file_hash(self, path: str, hash: str, project: str) -> bool:
        self.calls.append(("set_file_hash", (path, hash)))
        ids = self._match(project, VertexLabel.FILE, path=path)
        for vid in ids:
            self._graph(project)["vertices"][vid]["hash"] = hash
        return bool(ids)

    async def delete_project_graph(self, project: str) -> int:
        if project not in self.graphs:
            return 0
        count = len(self.graphs[project]["vertices"])
        del self.graphs[project]
        return count

    async def count_vertices(self, project: str) -> int:
        return len(self._graph(project)["vertices"])

    async def get_file_hash(self, path: str, project: str) -> str | None:
        for vid in self._match(project, VertexLabel.FILE, path=path):
            return self._graph(project)["vertices"][vid]["hash"]
        return None

    async def list_file_paths(self, project: str) -> list[str]:
        return sorted(v["path"] for v in self.vertices(project, VertexLabel.FILE) if "path" in v)

    @staticmethod
    def _stored(v: dict[str, Any]) -> StoredNode:
        return StoredNode(
            name=v["name"],
            file_path=v["file_path"],
            kind=v["kind"],
            signature=v["signature"],
            body=v["body"],
            start_line=v["start_line"],
            end_line=v["end_line"],
        )

    @staticmethod
    def _summary(v: dict[str, Any]) -> NodeSummary:
        return NodeSummary(
            name=v["name"],
            file_path=v.get("file_path"),
            kind=v.get("kind"),
            signature=v.get("signature"),
            start_line=v.get("start_line"),
            end_line=v.get("end_line"),
        )

    async def find_node_by_name(self, name: str, project: str) -> StoredNode | None:
        for v in self.vertices(project):
            if v["name"] == name and v.get("kind") is not None:
                return self._stored(v)
        return None

    async def find_node(self, name: str, file_path: str, project: str) -> StoredNode | None:
        for v in self.vertices(project):
            if v["name"] == name and v.get("file_path") == file_path and v.get("kind"):
                return self._stored(v)
        return None

    async def find_nodes_by_file(self, file_path: str, project: str) -> list[StoredNode]:
        nodes = [
            self._stored(v)
            for v in self.vertices(project)
            if v.get("file_path") == file_path and v.get("kind")
        ]
        return sorted(nodes, key=lambda n: (n.start_line, n.name))

    async def find_function_definitions(self, project: str) -> list[tuple[str, str]]:
        return [
            (v["name"], v["file_path"])
            for v in self.vertices(project, VertexLabel.FUNCTION)
            if v.get("kind") == "function" and v["end_line"] > v["start_line"]
        ]

    def _adjacent(
        self,
        project: str,
        edge: EdgeLabel,
        name: str,
        source_label: VertexLabel,
        target_label: VertexLabel,
        incoming: bool,
    ) -> list[NodeSummary]:
        graph = self._graph(project)
        vertices = graph["vertices"]
        seen: dict[tuple, NodeSummary] = {}
        for a, elabel, b in sorted(graph["edges"], key=lambda e: (e[0], e[2])):
            if elabel != edge:
                continue
            src, dst = vertices[a], vertices[b]
            if src["label"] != source_label or dst["label"] != target_label:
                continue
            anchor, other = (dst, src) if incoming else (src, dst)
            if anchor["name"] != name:
                continue
            summary = self._summary(other)
            seen.setdefault(
                (summary.name, summary.file_path, summary.kind, summary.start_line), summary
            )
        return list(seen.values())

    async def get_callers(self, name: str, project: str) -> list[NodeSummary]:
        fn = VertexLabel.FUNCTION
        return self._adjacent(project, EdgeLabel.CALLS, name, fn, fn, incoming=True)

    async def get_callees(self, name: str, project: str) -> list[NodeSummary]:
        self.calls.append(("get_callees", name))
        fn = VertexLabel.FUNCTION
        return self._adjacent(project, EdgeLabel.CALLS, name, fn, fn, incoming=False)

    async def get_used_types(self, name: str, project: str) -> list[NodeSummary]:
        return self._adjacent(
            project, EdgeLabel.USES, name, VertexLabel.FUNCTION, VertexLabel.TYPE, incoming=False
        )

    async def get_incoming_references(self, file_path: str, project: str) -> list[ImpactEntry]:
        graph = self._graph(project)
        vertices = graph["vertices"]
        entries: dict[tuple, ImpactEntry] = {}
        for a, elabel, b in graph["edges"]:
            src, dst = vertices[a], vertices[b]
            if dst.get("file_path") != file_path:
                continue
            if src.get("file_path") is None or src["file_path"] == file_path:
                continue
            entry = ImpactEntry(
                name=src["name"],
                file_path=src["file_path"],
                kind=src.get("kind"),
                relationship=elabel.value,
            )
            entries[(entry.name, entry.file_path, entry.kind, entry.relationship)] = entry
        return sorted(entries.values(), key=lambda e: (e.file_path, e.name))

    async def get_incoming_relationships(
        self, file_path: str, project: str
    ) -> list[Relationship]:
        graph = self._graph(project)
        vertices = graph["vertices"]

        def owner(v: dict[str, Any]) -> str | None:
            return v.get("file_path") or v.get("path")

        def kind(v: dict[str, Any]) -> NodeKind:
            return NodeKind(v["kind"]) if v.get("kind") else NodeKind.IMPORT

        relationships = []
        for a, elabel, b in sorted(graph["edges"], key=lambda e: (e[0], e[2])):
            src, dst = vertices[a], vertices[b]
            if owner(dst) != file_path or owner(src) == file_path:
                continue
            if elabel.value not in RelationshipKind.__members__:
                continue
            relationships.append(
                Relationship(
                    source_file_path=owner(src) or "",
                    source_name=src["name"],
                    source_kind=kind(src),
                    target_name=dst["name"],
                    target_kind=kind(dst),
                    relationship_kind=RelationshipKind[elabel.value],
                )
            )
        return relationships

    def _prototype_ids(self, name: str, file_path: str, project: str) -> set[int]:
        return {
            vid
            for vid in self._match(project, VertexLabel.FUNCTION, name=name, file_path=file_path)
            if self._graph(project)["vertices"][vid]["start_line"]
            == self._graph(project)["vertices"][vid]["end_line"]
        }

    async def find_function_prototypes(self, project: str) -> list[tuple[str, str]]:
        return [
            (v["name"], v["file_path"])
            for v in self.vertices(project, VertexLabel.FUNCTION)
            if v.get("kind") == "function" and v["end_line"] == v["start_line"]
        ]

    async def get_prototype_incoming_relationships(
        self, name: str, file_path: str, project: str
    ) -> list[Relationship]:
        ids = self._prototype_ids(name, file_path, project)
        vertices = self._graph(project)["vertices"]
        relationships = []
        for a, elabel, b in sorted(self._graph(project)["edges"], key=lambda e: (e[0], e[2])):
            if b not in ids or elabel.value not in RelationshipKind.__members__:
                continue
            src = vertices[a]
            relationships.append(
                Relationship(
                    source_file_path=src.get("file_path") or src.get("path") or "",
                    source_name=src["name"],
                    source_kind=NodeKind(src["kind"]) if src.get("kind") else NodeKind.IMPORT,
                    target_name=name,
                    target_kind=NodeKind.FUNCTION,
                    relationship_kind=RelationshipKind[elabel.value],
                )
            )
        return relationships

    async def delete_function_prototype(self, name: str, file_path: str, project: str) -> None:
        self.calls.append(("delete_function_prototype", (name, file_path)))
        self._delete_vertices(project, self._prototype_ids(name, file_path, project))

    async def list_projects(self) -> list[ProjectSummary]:
        return [
            ProjectSummary(
                project=name,
                graph_name=f"code_graph_{name.replace('-', '_')}",
                vertex_count=len(graph["vertices"]),
            )
            for name, graph in sorted(self.graphs.items())
        ]


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


class DummyEmbedder(Embedder):
    """Fast, deterministic embedder for testing."""

    def __init__(self, dimension: int = DIMENSION, fail_on: str | None = None):
        self.dimension = dimension
        self.fail_on = fail_on
        self.texts: list[str] = []

    async def embed_text(self, text: str) -> EmbeddingResult:
        """Generate embedding for single text."""
        self.texts.append(text)
        if self.fail_on is not None and self.fail_on in text:
            return EmbeddingResult(text=text, embedding=[], model="dummy", error="endpoint down")

        # Create deterministic but unique embedding
        rng = np.random.default_rng(zlib.crc32(text.encode()))
        embedding = rng.random(self.dimension).astype(np.float32).tolist()
        return EmbeddingResult(
            text=text,
            embedding=embedding,
            model="dummy",
            token_count=len(text.split()),
            processing_time=0.001,
        )

    def get_model_info(self) -> dict[str, Any]:
        return {"model": "dummy", "dimensions": self.dimension}


class FakeEmbeddingStore(EmbeddingStore):
    """Embedding store keeping vectors in a dict keyed (project, file, name)."""

    def __init__(self) -> None:
        self.vectors: dict[tuple[str, str, str], list[float]] = {}
        self.fail_deletes = False

    async def open(self) -> None:
        return None

    async def close(self) -> None:
        return None

    def keys(self, project: str | None = None) -> list[tuple[str, str, str]]:
        return sorted(k for k in self.vectors if project is None or k[0] == project)

    async def upsert(
        self, project: str, node_name: str, file_path: str, vector: list[float]
    ) -> StorageResult:
        self.vectors[(project, file_path, node_name)] = list(vector)
        return StorageResult(success=True, operation="upsert", items_processed=1)

    async def _delete(self, predicate: Any, operation: str) -> StorageResult:
        if self.fail_deletes:
            return StorageResult(success=False, operation=operation, errors=["qdrant down"])
        doomed = [k for k in self.vectors if predicate(k)]
        for key in doomed:
            del self.vectors[key]
        return StorageResult(success=True, operation=operation, items_processed=len(doomed))

    async def delete_file(self, project: str, file_path: str) -> StorageResult:
        return await self._delete(lambda k: k[:2] == (project, file_path), "delete_file")

    async def delete_node(self, project: str, file_path: str, node_name: str) -> StorageResult:
        return await self._delete(lambda k: k == (project, file_path, node_name), "delete_node")

    async def delete_project(self, project: str) -> StorageResult:
        return await self._delete(lambda k: k[0] == project, "delete_project")

    async def search(
        self, vector: list[float], limit: int = 10, project: str | None = None
    ) -> list[EmbeddingHit]:
        query = np.asarray(vector, dtype=np.float32)
        hits = []
        for (proj, file_path, name), stored in self.vectors.items():
            if project is not None and proj != project:
                continue
            other = np.asarray(stored, dtype=np.float32)
            score = float(query @ other / (np.linalg.norm(query) * np.linalg.norm(other)))
            hits.append(EmbeddingHit(project=proj, node_name=name, file_path=file_path, score=score))
        return sorted(hits, key=lambda h: h.score, reverse=True)[:limit]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class JsonSourceParser(CodeParser):
    """Reads ``.src`` files holding a JSON list of nodes and relationships.

    Node entries: ``{"name", "kind", "start", "end"}``.
    Relationship entries: ``{"from", "to", "type"}`` between functions unless
    ``from_kind``/``to_kind`` say otherwise.
    """

    language_name = "json-source"

    def get_supported_extensions(self) -> list[str]:
        return [".src"]

    def extract(self, file_path: str, source: bytes) -> FileExtraction:
        data = json.loads(source)
        nodes = [
            CodeNode(
                name=n["name"],
                file_path=file_path,
                kind=NodeKind(n.get("kind", "function")),
                signature=n.get("signature", f"{n['name']}()"),
                body=n.get("body", n["name"]),
                start_line=n.get("start", 1),
                end_line=n.get("end", n.get("start", 1) + 2),
            )
            for n in data.get("nodes", [])
        ]
        relationships = [
            Relationship(
                source_file_path=file_path,
                source_name=r["from"],
                source_kind=NodeKind(r.get("from_kind", "function")),
                target_name=r["to"],
                target_kind=NodeKind(r.get("to_kind", "function")),
                relationship_kind=RelationshipKind(r.get("type", "CALLS")),
            )
            for r in data.get("relationships", [])
        ]
        return FileExtraction(file_path=file_path, nodes=nodes, relationships=relationships)


def _write_source(root: Path, relative_path: str, nodes=(), relationships=()) -> Path:
    path = root / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"nodes": list(nodes), "relationships": list(relationships)}))
    return path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def isolated_config(monkeypatch, tmp_path) -> IndexerConfig:
    """Configuration with no environment or settings-file influence."""
    for env_var in ENV_VARS:
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return IndexerConfig(embedding_dimensions=DIMENSION, exclude_dirs=["ignored"])


@pytest.fixture()
def graph_store() -> FakeGraphStore:
    return FakeGraphStore()


@pytest.fixture()
def dummy_embedder() -> DummyEmbedder:
    """Provide a fast, deterministic embedder for tests."""
    return DummyEmbedder()


@pytest.fixture()
def embedding_store() -> FakeEmbeddingStore:
    return FakeEmbeddingStore()


@pytest.fixture()
def source_repo(tmp_path) -> Path:
    repo = tmp_path / "sample-repo"
    repo.mkdir()
    return repo


@pytest.fixture()
def orchestrator(
    isolated_config, graph_store, dummy_embedder, embedding_store
) -> IndexingOrchestrator:
    return IndexingOrchestrator(
        isolated_config,
        graph_store,
        ChangeDetector(GraphFileHashStore(graph_store)),
        dummy_embedder,
        embedding_store,
        ParserRegistry([JsonSourceParser()]),
    )


@pytest.fixture()
def write_source():
    """Write a ``.src`` file understood by JsonSourceParser."""
    return _write_source


@pytest.fixture()
def json_parser_registry() -> ParserRegistry:
    return ParserRegistry([JsonSourceParser()])
