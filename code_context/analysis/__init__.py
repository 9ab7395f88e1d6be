"""Source extraction: data model and tree-sitter parsers."""

from .entities import (
    CodeNode,
    EdgeLabel,
    FileExtraction,
    NodeKind,
    Relationship,
    RelationshipKind,
    VertexLabel,
    vertex_label_for,
)
from .parser import CodeParser, ParserRegistry

__all__ = [
    "CodeNode",
    "CodeParser",
    "EdgeLabel",
    "FileExtraction",
    "NodeKind",
    "ParserRegistry",
    "Relationship",
    "RelationshipKind",
    "VertexLabel",
    "vertex_label_for",
]
