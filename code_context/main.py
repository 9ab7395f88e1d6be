"""Component wiring for code-context."""

from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass

from .analysis.parser import ParserRegistry
from .config.models import IndexerConfig
from .embeddings.base import Embedder
from .embeddings.registry import create_embedder_from_config
from .graph.connection import GraphConnection
from .graph.query import QueryEngine
from .graph.store import GraphStore
from .indexer_logging import get_logger
from .indexing.change_detector import (
    ChangeDetector,
    FileHashStore,
    GraphFileHashStore,
    TableFileHashStore,
)
from .indexing.orchestrator import IndexingOrchestrator
from .storage.base import EmbeddingStore
from .storage.qdrant import QdrantEmbeddingStore

logger = get_logger()


@dataclass
class Components:
    """Everything a command needs, sharing one connection handle."""

    config: IndexerConfig
    connection: GraphConnection
    graph_store: GraphStore
    embedding_store: EmbeddingStore
    embedder: Embedder
    change_detector: ChangeDetector
    query_engine: QueryEngine
    orchestrator: IndexingOrchestrator


def create_hash_store(
    config: IndexerConfig, connection: GraphConnection, graph_store: GraphStore
) -> FileHashStore:
    if config.file_hash_backend == "table":
        return TableFileHashStore(connection)
    return GraphFileHashStore(graph_store)


def create_embedding_store(config: IndexerConfig) -> EmbeddingStore:
    return QdrantEmbeddingStore(
        url=config.qdrant_url,
        collection_name=config.qdrant_collection,
        vector_size=config.embedding_dimensions,
        api_key=config.qdrant_api_key,
    )


@asynccontextmanager
async def open_components(
    config: IndexerConfig, parser_registry: ParserRegistry | None = None
) -> AsyncIterator[Components]:
    """Open connections, build every component and close them all on exit."""
    async with AsyncExitStack() as stack:
        connection = GraphConnection(config)
        await connection.open()
        stack.push_async_callback(connection.close)

        embedding_store = create_embedding_store(config)
        await embedding_store.open()
        stack.push_async_callback(embedding_store.close)

        embedder = create_embedder_from_config(config)
        stack.push_async_callback(embedder.close)

        graph_store = GraphStore(connection)
        change_detector = ChangeDetector(create_hash_store(config, connection, graph_store))
        logger.debug(
            f"Components ready: graph {config.postgres_dsn}, "
            f"qdrant {config.qdrant_url}, {config.embedding_provider}/{config.embedding_model}"
        )
        yield Components(
            config=config,
            connection=connection,
            graph_store=graph_store,
            embedding_store=embedding_store,
            embedder=embedder,
            change_detector=change_detector,
            query_engine=QueryEngine(graph_store, embedder, embedding_store),
            orchestrator=IndexingOrchestrator(
                config,
                graph_store,
                change_detector,
                embedder,
                embedding_store,
                parser_registry,
            ),
        )
