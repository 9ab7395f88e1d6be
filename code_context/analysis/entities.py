"""Data models for code nodes and relationships extracted from source."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class NodeKind(Enum):
    """Kinds of code nodes an extractor may emit."""

    FUNCTION = "function"
    CLASS = "class"
    TYPE = "type"
    INTERFACE = "interface"
    IMPORT = "import"
    STRUCT = "struct"
    ENUM = "enum"
    TRAIT = "trait"
    IMPL = "impl"
    MODULE = "module"
    CONTRACT = "contract"
    EVENT = "event"
    MODIFIER = "modifier"

    @classmethod
    def parse(cls, value: "str | NodeKind") -> "NodeKind | None":
        """Return the matching kind, or None for an unrecognized string."""
        if isinstance(value, NodeKind):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


class RelationshipKind(Enum):
    """Kinds of relationships an extractor may emit."""

    CALLS = "CALLS"
    IMPORTS = "IMPORTS"
    EXTENDS = "EXTENDS"
    USES = "USES"
    RETURNS = "RETURNS"
    IMPLEMENTS = "IMPLEMENTS"


class VertexLabel(Enum):
    """Vertex labels in a project graph."""

    FUNCTION = "Function"
    CLASS = "Class"
    TYPE = "Type"
    FILE = "File"
    STRUCT = "Struct"
    ENUM = "Enum"
    TRAIT = "Trait"
    IMPL = "Impl"
    MODULE = "Module"
    CONTRACT = "Contract"
    EVENT = "Event"
    MODIFIER = "Modifier"


class EdgeLabel(Enum):
    """Edge labels in a project graph."""

    CALLS = "CALLS"
    IMPORTS = "IMPORTS"
    EXTENDS = "EXTENDS"
    USES = "USES"
    RETURNS = "RETURNS"
    DEFINED_IN = "DEFINED_IN"
    IMPLEMENTS = "IMPLEMENTS"

    @classmethod
    def for_relationship(cls, kind: RelationshipKind) -> "EdgeLabel":
        return cls[kind.name]


_KIND_LABELS: dict[NodeKind, VertexLabel] = {
    NodeKind.FUNCTION: VertexLabel.FUNCTION,
    NodeKind.CLASS: VertexLabel.CLASS,
    NodeKind.TYPE: VertexLabel.TYPE,
    NodeKind.INTERFACE: VertexLabel.TYPE,
    NodeKind.IMPORT: VertexLabel.FILE,
    NodeKind.STRUCT: VertexLabel.STRUCT,
    NodeKind.ENUM: VertexLabel.ENUM,
    NodeKind.TRAIT: VertexLabel.TRAIT,
    NodeKind.IMPL: VertexLabel.IMPL,
    NodeKind.MODULE: VertexLabel.MODULE,
    NodeKind.CONTRACT: VertexLabel.CONTRACT,
    NodeKind.EVENT: VertexLabel.EVENT,
    NodeKind.MODIFIER: VertexLabel.MODIFIER,
}


def vertex_label_for(kind: "NodeKind | str") -> VertexLabel:
    """Map a node kind to its vertex label. Unknown kinds become Function."""
    parsed = NodeKind.parse(kind)
    if parsed is None:
        return VertexLabel.FUNCTION
    return _KIND_LABELS[parsed]


@dataclass(frozen=True)
class CodeNode:
    """One named, locatable unit of code.

    Lines are 1-based and inclusive. A function whose span is a single line
    is treated as a prototype (forward declaration).
    """

    name: str
    file_path: str
    kind: NodeKind
    signature: str = ""
    body: str = ""
    start_line: int = 1
    end_line: int = 1

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("CodeNode name cannot be empty")
        if self.end_line < self.start_line:
            raise ValueError(
                f"end_line {self.end_line} precedes start_line {self.start_line}"
            )

    @property
    def label(self) -> VertexLabel:
        return vertex_label_for(self.kind)

    @property
    def is_prototype(self) -> bool:
        """Single-line function nodes are forward declarations."""
        return self.kind is NodeKind.FUNCTION and self.start_line == self.end_line

    @property
    def is_definition(self) -> bool:
        return self.kind is NodeKind.FUNCTION and self.end_line > self.start_line


@dataclass(frozen=True)
class Relationship:
    """Directed, typed link between two (name, kind) pairs."""

    source_file_path: str
    source_name: str
    source_kind: NodeKind
    target_name: str
    target_kind: NodeKind
    relationship_kind: RelationshipKind

    def __post_init__(self) -> None:
        if not self.source_name or not self.target_name:
            raise ValueError("Both source_name and target_name must be non-empty")

    @property
    def source_label(self) -> VertexLabel:
        return vertex_label_for(self.source_kind)

    @property
    def target_label(self) -> VertexLabel:
        return vertex_label_for(self.target_kind)

    @property
    def edge_label(self) -> EdgeLabel:
        return EdgeLabel.for_relationship(self.relationship_kind)


@dataclass
class FileExtraction:
    """Nodes and relationships extracted from one file."""

    file_path: str
    nodes: list[CodeNode] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


# Query results


@dataclass(frozen=True)
class NodeSummary:
    """Name, location and kind of a vertex, as returned by adjacency queries."""

    name: str
    file_path: str | None
    kind: str | None
    signature: str | None = None
    start_line: int | None = None
    end_line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "file_path": self.file_path,
            "kind": self.kind,
            "signature": self.signature,
            "start_line": self.start_line,
            "end_line": self.end_line,
        }


@dataclass(frozen=True)
class StoredNode:
    """A code vertex read back from the graph."""

    name: str
    file_path: str
    kind: str
    signature: str
    body: str
    start_line: int
    end_line: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "file_path": self.file_path,
            "kind": self.kind,
            "signature": self.signature,
            "body": self.body,
            "start_line": self.start_line,
            "end_line": self.end_line,
        }


@dataclass
class CallStackEntry:
    """One node in a call-stack tree; depth 1 is a direct callee of the root."""

    name: str
    file_path: str | None
    kind: str | None
    depth: int
    children: list["CallStackEntry"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "file_path": self.file_path,
            "kind": self.kind,
            "depth": self.depth,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True)
class ImpactEntry:
    """A vertex outside a file holding an edge into that file."""

    name: str
    file_path: str
    kind: str | None
    relationship: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "file_path": self.file_path,
            "kind": self.kind,
            "relationship": self.relationship,
        }


@dataclass
class ImpactReport:
    """Nodes defined in a file plus everything that depends on them."""

    file_path: str
    nodes: list[StoredNode]
    impacted_files: dict[str, list[ImpactEntry]]

    @property
    def total_dependents(self) -> int:
        return sum(len(entries) for entries in self.impacted_files.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "nodes": [node.to_dict() for node in self.nodes],
            "impacted_files": {
                path: [entry.to_dict() for entry in entries]
                for path, entries in self.impacted_files.items()
            },
            "total_dependents": self.total_dependents,
        }


@dataclass
class FunctionContext:
    """A function with its direct neighbourhood in the graph."""

    node: StoredNode
    callers: list[NodeSummary]
    callees: list[NodeSummary]
    used_types: list[NodeSummary]

    def to_dict(self) -> dict[str, Any]:
        return {
            "node": self.node.to_dict(),
            "callers": [c.to_dict() for c in self.callers],
            "callees": [c.to_dict() for c in self.callees],
            "used_types": [t.to_dict() for t in self.used_types],
        }


@dataclass(frozen=True)
class EmbeddingHit:
    """A similarity hit from the embedding store."""

    project: str
    node_name: str
    file_path: str
    score: float


@dataclass
class SearchResult:
    """A semantic search hit enriched with its graph vertex, if still present."""

    hit: EmbeddingHit
    node: StoredNode | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.hit.project,
            "name": self.hit.node_name,
            "file_path": self.hit.file_path,
            "score": self.hit.score,
            "node": self.node.to_dict() if self.node else None,
        }
