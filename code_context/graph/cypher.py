"""Safe construction of Cypher text for Apache AGE.

AGE runs Cypher through ``cypher('<graph>', $$ ... $$)``. Parameters can only
be bound for the outer SQL call, so every value that ends up inside the
Cypher body is rendered here. String values always pass through
``escape_cypher_string``; integers are rendered with ``int()``; labels come
from closed enums.
"""

import json
import re
from typing import Any

from ..analysis.entities import EdgeLabel, VertexLabel
from ..errors import ReadOnlyQueryError

WRITE_KEYWORDS = ("CREATE", "DELETE", "SET", "REMOVE", "MERGE", "DROP")

_WRITE_KEYWORD_RE = re.compile(r"\b(" + "|".join(WRITE_KEYWORDS) + r")\b")
_AGTYPE_SUFFIX_RE = re.compile(r"::(vertex|edge|path|numeric)\b")
_GRAPH_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]*$")

_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    # A literal $ could close the $$-quoted body
    "$": "\\u0024",
}


def escape_cypher_string(value: str) -> str:
    """Escape a value for use inside a single-quoted Cypher string literal."""
    out = []
    for ch in str(value):
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ch == "\x00":
            continue
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    return "".join(out)


def cypher_literal(value: Any) -> str:
    """Render a Python value as a Cypher literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, float):
        return repr(float(value))
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(cypher_literal(v) for v in value) + "]"
    return f"'{escape_cypher_string(str(value))}'"


def cypher_properties(properties: dict[str, Any]) -> str:
    """Render a property map, e.g. ``{name: 'x', start_line: 3}``.

    Keys are internal identifiers, never user input.
    """
    for key in properties:
        if not key.isidentifier():
            raise ValueError(f"Invalid property key: {key!r}")
    return "{" + ", ".join(f"{k}: {cypher_literal(v)}" for k, v in properties.items()) + "}"


def label(value: VertexLabel | EdgeLabel) -> str:
    """Render a label from its closed enum."""
    if not isinstance(value, (VertexLabel, EdgeLabel)):
        raise TypeError(f"Labels must come from VertexLabel or EdgeLabel, got {value!r}")
    return value.value


def sanitize_project_name(name: str) -> str:
    """Normalize a project name: lowercase, ``[a-z0-9-]`` only."""
    sanitized = re.sub(r"[^a-z0-9-]", "-", name.lower())
    sanitized = re.sub(r"-+", "-", sanitized)
    return sanitized.strip("-")


def graph_name_for_project(project: str, prefix: str = "code_graph") -> str:
    """AGE graph name holding one project's vertices and edges."""
    sanitized = sanitize_project_name(project)
    if not sanitized:
        raise ValueError(f"Project name {project!r} has no usable characters")
    graph_name = f"{prefix}_{sanitized.replace('-', '_')}"
    if not _GRAPH_NAME_RE.match(graph_name):
        raise ValueError(f"Invalid graph name: {graph_name}")
    return graph_name


def project_from_graph_name(graph_name: str, prefix: str = "code_graph") -> str | None:
    """Inverse of ``graph_name_for_project`` (underscores read back as dashes)."""
    head = f"{prefix}_"
    if not graph_name.startswith(head) or len(graph_name) == len(head):
        return None
    return graph_name[len(head) :].replace("_", "-")


def find_write_keyword(query: str) -> str | None:
    """Return the first write keyword found as a whole word, if any."""
    match = _WRITE_KEYWORD_RE.search(query.upper())
    return match.group(1) if match else None


def ensure_read_only(query: str) -> None:
    """Raise ReadOnlyQueryError unless the query is safe to pass through."""
    keyword = find_write_keyword(query)
    if keyword is not None:
        raise ReadOnlyQueryError(
            "Query contains write operations "
            f"({', '.join(WRITE_KEYWORDS)}). Only read-only queries are allowed.",
            keyword=keyword,
        )
    if "$$" in query:
        raise ReadOnlyQueryError("Query may not contain '$$'")


def parse_agtype(raw: Any) -> Any:
    """Decode an agtype text value into plain Python values.

    Vertex, edge and path values carry ``::vertex``-style suffixes that are not
    JSON; they are stripped before decoding. Undecodable values are returned
    unchanged.
    """
    if raw is None or not isinstance(raw, str):
        return raw
    text = _AGTYPE_SUFFIX_RE.sub("", raw)
    try:
        return json.loads(text)
    except ValueError:
        return raw
