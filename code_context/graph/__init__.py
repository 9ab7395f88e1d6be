"""Project graphs on PostgreSQL + Apache AGE."""

from .connection import GraphConnection
from .cypher import (
    WRITE_KEYWORDS,
    escape_cypher_string,
    graph_name_for_project,
    parse_agtype,
    sanitize_project_name,
)
from .query import QueryEngine, RawQueryResult
from .store import GraphStore, ProjectSummary

__all__ = [
    "GraphConnection",
    "GraphStore",
    "ProjectSummary",
    "QueryEngine",
    "RawQueryResult",
    "WRITE_KEYWORDS",
    "escape_cypher_string",
    "graph_name_for_project",
    "parse_agtype",
    "sanitize_project_name",
]
