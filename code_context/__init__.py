"""code-context: a code dependency graph with semantic search over PostgreSQL/AGE and Qdrant."""

__version__ = "0.1.0"
