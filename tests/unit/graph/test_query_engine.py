"""Unit tests for QueryEngine traversals over an in-memory graph."""

from unittest.mock import AsyncMock

import asyncpg
import pytest

from code_context.analysis.entities import CodeNode, NodeKind, Relationship, RelationshipKind
from code_context.embeddings.base import build_embedding_text
from code_context.errors import (
    CypherQueryError,
    IndexingError,
    ProjectNotFoundError,
    ReadOnlyQueryError,
)
from code_context.graph.query import QueryEngine

PROJECT = "demo"


async def add_functions(store, functions: dict[str, str]) -> None:
    """Create one multi-line function vertex per ``name -> file_path``."""
    await store.ensure_project(PROJECT)
    for index, (name, file_path) in enumerate(functions.items()):
        node = CodeNode(
            name=name,
            file_path=file_path,
            kind=NodeKind.FUNCTION,
            signature=f"void {name}(void)",
            body=f"void {name}(void) {{ }}",
            start_line=index * 10 + 1,
            end_line=index * 10 + 5,
        )
        await store.add_vertex(node, PROJECT)


async def add_calls(store, *calls: tuple[str, str]) -> None:
    for source, target in calls:
        await store.add_edge(
            Relationship(
                source_file_path="",
                source_name=source,
                source_kind=NodeKind.FUNCTION,
                target_name=target,
                target_kind=NodeKind.FUNCTION,
                relationship_kind=RelationshipKind.CALLS,
            ),
            PROJECT,
        )


def tree_names(entries) -> dict:
    return {e.name: tree_names(e.children) for e in entries}


def max_depth(entries) -> int:
    return max((max(e.depth, max_depth(e.children)) for e in entries), default=0)


@pytest.fixture
def engine(graph_store):
    return QueryEngine(graph_store)


class TestCallStack:
    """Test bounded, cycle-safe call stack expansion."""

    @pytest.mark.asyncio
    async def test_chain_respects_depth(self, graph_store, engine):
        await add_functions(graph_store, {n: "a.c" for n in "abcde"})
        await add_calls(graph_store, ("a", "b"), ("b", "c"), ("c", "d"), ("d", "e"))

        stack = await engine.get_call_stack("a", 2, PROJECT)

        assert tree_names(stack) == {"b": {"c": {}}}
        assert stack[0].depth == 1
        assert stack[0].children[0].depth == 2
        assert max_depth(stack) == 2

    @pytest.mark.asyncio
    async def test_depth_below_one_is_empty(self, graph_store, engine):
        await add_functions(graph_store, {"a": "a.c", "b": "a.c"})
        await add_calls(graph_store, ("a", "b"))

        assert await engine.get_call_stack("a", 0, PROJECT) == []
        graph_store.calls.clear()
        assert await engine.get_call_stack("a", -3, PROJECT) == []
        assert graph_store.calls == []

    @pytest.mark.asyncio
    async def test_leaf_and_unknown_root(self, graph_store, engine):
        await add_functions(graph_store, {"leaf": "a.c"})
        assert await engine.get_call_stack("leaf", 3, PROJECT) == []
        assert await engine.get_call_stack("missing", 3, PROJECT) == []

    @pytest.mark.asyncio
    async def test_cycle_terminates_without_repeating_ancestors(self, graph_store, engine):
        await add_functions(graph_store, {"a": "a.c", "b": "a.c", "c": "a.c"})
        await add_calls(graph_store, ("a", "b"), ("b", "c"), ("c", "a"))

        stack = await engine.get_call_stack("a", 10, PROJECT)

        assert tree_names(stack) == {"b": {"c": {}}}

    @pytest.mark.asyncio
    async def test_self_recursion(self, graph_store, engine):
        await add_functions(graph_store, {"walk": "a.c"})
        await add_calls(graph_store, ("walk", "walk"))
        assert await engine.get_call_stack("walk", 5, PROJECT) == []

    @pytest.mark.asyncio
    async def test_diamond_shares_node_but_queries_once(self, graph_store, engine):
        await add_functions(graph_store, {"a": "a.c", "b": "b.c", "c": "c.c", "d": "d.c"})
        await add_calls(graph_store, ("a", "b"), ("a", "c"), ("b", "d"), ("c", "d"))

        graph_store.calls.clear()
        stack = await engine.get_call_stack("a", 5, PROJECT)

        assert tree_names(stack) == {"b": {"d": {}}, "c": {"d": {}}}
        queried = [arg for op, arg in graph_store.calls if op == "get_callees"]
        assert sorted(queried) == ["a", "b", "c", "d"]

    @pytest.mark.asyncio
    async def test_entries_carry_location(self, graph_store, engine):
        await add_functions(graph_store, {"main": "main.c", "helper": "util.c"})
        await add_calls(graph_store, ("main", "helper"))

        (entry,) = await engine.get_call_stack("main", 3, PROJECT)

        assert entry.to_dict() == {
            "name": "helper",
            "file_path": "util.c",
            "kind": "function",
            "depth": 1,
            "children": [],
        }


class TestImpactAndContext:
    """Test reverse impact, impact reports and function context."""

    @pytest.mark.asyncio
    async def test_impact_groups_dependents_by_file(self, graph_store, engine):
        await add_functions(
            graph_store,
            {"util": "util.c", "main": "main.c", "cli": "cli.c", "inner": "util.c"},
        )
        await add_calls(graph_store, ("main", "util"), ("cli", "util"), ("inner", "util"))

        report = await engine.get_impact_analysis("util.c", PROJECT)

        assert [n.name for n in report.nodes] == ["util", "inner"]
        assert sorted(report.impacted_files) == ["cli.c", "main.c"]
        assert report.total_dependents == 2
        assert report.impacted_files["main.c"][0].relationship == "CALLS"

    @pytest.mark.asyncio
    async def test_impact_unknown_file(self, graph_store, engine):
        await add_functions(graph_store, {"util": "util.c"})
        assert await engine.get_impact_analysis("nope.c", PROJECT) is None

    @pytest.mark.asyncio
    async def test_function_context(self, graph_store, engine):
        await add_functions(graph_store, {"main": "main.c", "parse": "p.c", "emit": "e.c"})
        await add_calls(graph_store, ("main", "parse"), ("parse", "emit"))

        context = await engine.get_function_context("parse", PROJECT)

        assert context.node.name == "parse"
        assert [c.name for c in context.callers] == ["main"]
        assert [c.name for c in context.callees] == ["emit"]
        assert context.used_types == []

    @pytest.mark.asyncio
    async def test_function_context_missing(self, graph_store, engine):
        await graph_store.ensure_project(PROJECT)
        assert await engine.get_function_context("ghost", PROJECT) is None

    @pytest.mark.asyncio
    async def test_require_project_lists_available(self, graph_store, engine):
        await graph_store.ensure_project("other")
        await engine.require_project("other")

        with pytest.raises(ProjectNotFoundError) as exc_info:
            await engine.require_project("ghost")
        assert exc_info.value.details == {"available": "other"}


class TestSearch:
    """Test semantic search enrichment."""

    @pytest.mark.asyncio
    async def test_hits_enriched_with_vertex(self, graph_store, dummy_embedder, embedding_store):
        await add_functions(graph_store, {"parse_header": "hdr.c", "emit": "out.c"})
        for node in await graph_store.find_nodes_by_file("hdr.c", PROJECT):
            text = build_embedding_text(node.name, node.signature, node.body)
            vector = (await dummy_embedder.embed_text(text)).embedding
            await embedding_store.upsert(PROJECT, node.name, node.file_path, vector)
        engine = QueryEngine(graph_store, dummy_embedder, embedding_store)

        query = build_embedding_text(
            "parse_header", "void parse_header(void)", "void parse_header(void) { }"
        )
        (result,) = await engine.search_code(query, limit=5, project=PROJECT)

        assert result.hit.score == pytest.approx(1.0, abs=1e-5)
        assert result.node.file_path == "hdr.c"
        assert result.to_dict()["name"] == "parse_header"

    @pytest.mark.asyncio
    async def test_stale_hit_has_no_node(self, graph_store, dummy_embedder, embedding_store):
        await embedding_store.upsert("gone", "old", "old.c", [1.0] * 16)
        engine = QueryEngine(graph_store, dummy_embedder, embedding_store)

        results = await engine.search_code("anything")

        assert len(results) == 1
        assert results[0].node is None

    @pytest.mark.asyncio
    async def test_embedding_failure_raises(self, graph_store, dummy_embedder, embedding_store):
        dummy_embedder.fail_on = "boom"
        engine = QueryEngine(graph_store, dummy_embedder, embedding_store)

        with pytest.raises(IndexingError):
            await engine.search_code("boom")

    @pytest.mark.asyncio
    async def test_requires_embedder(self, graph_store):
        with pytest.raises(RuntimeError):
            await QueryEngine(graph_store).search_code("x")


class TestRawCypher:
    """Test ad-hoc query handling."""

    @pytest.mark.asyncio
    async def test_write_rejected_before_execution(self, graph_store, engine):
        await graph_store.ensure_project(PROJECT)

        with pytest.raises(ReadOnlyQueryError):
            await engine.run_raw_cypher("MATCH (n) DETACH DELETE n", PROJECT)
        assert graph_store.calls == []

    @pytest.mark.asyncio
    async def test_rows_decoded(self, graph_store, engine):
        await graph_store.ensure_project(PROJECT)
        graph_store.cypher_rows = ['"main"', '["a", 1]']

        result = await engine.run_raw_cypher("MATCH (n) RETURN n.created_at", PROJECT)

        assert result.to_dict() == {"row_count": 2, "rows": ["main", ["a", 1]]}

    @pytest.mark.asyncio
    async def test_database_error_wrapped(self, graph_store, engine):
        graph_store.run_cypher = AsyncMock(
            side_effect=asyncpg.PostgresError("return row and column definition list do not match")
        )

        with pytest.raises(CypherQueryError) as exc_info:
            await engine.run_raw_cypher("MATCH (a)-[r]->(b) RETURN a, b", PROJECT)
        assert exc_info.value.exit_code == 2
