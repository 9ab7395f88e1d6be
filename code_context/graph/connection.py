"""Connection handle for PostgreSQL with the Apache AGE extension."""

from typing import Any

import asyncpg

from ..analysis.entities import EdgeLabel, VertexLabel
from ..config.models import IndexerConfig
from ..errors import GraphConnectionError
from ..indexer_logging import LogCategory, get_category_logger
from .cypher import graph_name_for_project

logger = get_category_logger(LogCategory.GRAPH)


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Prepare every pooled connection for Cypher queries."""
    await conn.execute("LOAD 'age'")
    await conn.execute('SET search_path = ag_catalog, "$user", public')
    # agtype travels as text and is decoded by parse_agtype
    await conn.set_type_codec(
        "agtype",
        schema="ag_catalog",
        encoder=str,
        decoder=str,
        format="text",
    )


class GraphConnection:
    """Explicitly opened and closed handle on the asyncpg pool.

    Every component receives the same handle; nothing holds a module-level
    pool. Use as an async context manager or call ``open``/``close``.
    """

    def __init__(self, config: IndexerConfig):
        self.config = config
        self._pool: asyncpg.Pool | None = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("GraphConnection is not open")
        return self._pool

    async def open(self) -> "GraphConnection":
        if self._pool is not None:
            return self
        try:
            self._pool = await asyncpg.create_pool(
                host=self.config.postgres_host,
                port=self.config.postgres_port,
                database=self.config.postgres_database,
                user=self.config.postgres_user,
                password=self.config.postgres_password,
                min_size=self.config.pool_min_size,
                max_size=self.config.pool_max_size,
                command_timeout=self.config.command_timeout,
                init=_init_connection,
            )
        except (OSError, asyncpg.PostgresError) as e:
            raise GraphConnectionError(self.config.postgres_dsn, str(e)) from e
        logger.debug(f"Opened connection pool to {self.config.postgres_dsn}")
        return self

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.debug("Closed connection pool")

    async def __aenter__(self) -> "GraphConnection":
        return await self.open()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def graph_name(self, project: str) -> str:
        return graph_name_for_project(project, self.config.graph_prefix)

    # SQL

    async def execute(self, sql: str, *args: Any) -> str:
        async with self.pool.acquire() as conn:
            return await conn.execute(sql, *args)

    async def fetch(self, sql: str, *args: Any) -> list[asyncpg.Record]:
        async with self.pool.acquire() as conn:
            return await conn.fetch(sql, *args)

    async def fetchval(self, sql: str, *args: Any) -> Any:
        async with self.pool.acquire() as conn:
            return await conn.fetchval(sql, *args)

    # Cypher

    async def cypher(self, query: str, project: str) -> list[str]:
        """Run a Cypher query against a project graph.

        The query must return a single column. Rows come back as raw agtype
        text. The caller is responsible for rendering every value in
        ``query`` through ``code_context.graph.cypher``.
        """
        graph_name = self.graph_name(project)
        sql = f"SELECT * FROM cypher('{graph_name}', $$ {query} $$) AS (result agtype)"
        logger.debug(f"cypher[{graph_name}]: {query}")
        rows = await self.fetch(sql)
        return [row["result"] for row in rows]

    # Graph lifecycle

    async def graph_exists(self, project: str) -> bool:
        value = await self.fetchval(
            "SELECT 1 FROM ag_catalog.ag_graph WHERE name = $1",
            self.graph_name(project),
        )
        return value is not None

    async def ensure_graph(self, project: str) -> None:
        """Create the project graph and its labels if missing."""
        graph_name = self.graph_name(project)
        if not await self.graph_exists(project):
            await self.fetch("SELECT create_graph($1)", graph_name)
            logger.info(f"Created graph {graph_name}")

        existing = {
            row["name"]
            for row in await self.fetch(
                """
                SELECT l.name FROM ag_catalog.ag_label l
                JOIN ag_catalog.ag_graph g ON l.graph = g.graphid
                WHERE g.name = $1
                """,
                graph_name,
            )
        }
        for vlabel in VertexLabel:
            if vlabel.value not in existing:
                await self.fetch("SELECT create_vlabel($1, $2)", graph_name, vlabel.value)
        for elabel in EdgeLabel:
            if elabel.value not in existing:
                await self.fetch("SELECT create_elabel($1, $2)", graph_name, elabel.value)

    async def drop_graph(self, project: str) -> bool:
        """Drop the project graph with all its labels. False if it did not exist."""
        if not await self.graph_exists(project):
            return False
        graph_name = self.graph_name(project)
        await self.fetch("SELECT drop_graph($1, true)", graph_name)
        logger.info(f"Dropped graph {graph_name}")
        return True

    async def list_graphs(self) -> list[str]:
        """Names of all graphs carrying the configured prefix."""
        rows = await self.fetch(
            "SELECT name FROM ag_catalog.ag_graph WHERE starts_with(name::text, $1) ORDER BY name",
            f"{self.config.graph_prefix}_",
        )
        return [row["name"] for row in rows]
