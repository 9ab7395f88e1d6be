"""Cross-file prototype/definition deduplication."""

from collections.abc import Iterable

from ..analysis.entities import CodeNode, FileExtraction


def build_definition_names(
    extractions: Iterable[FileExtraction],
    stored_definitions: Iterable[tuple[str, str]] = (),
    changed_paths: Iterable[str] = (),
) -> set[str]:
    """Names of multi-line function definitions visible to this run.

    Combines definitions extracted now with ``(name, file_path)`` definitions
    already stored for files that are not being rebuilt. Stored definitions
    of changed files are ignored since those files are about to be replaced.
    """
    names = {node.name for ex in extractions for node in ex.nodes if node.is_definition}
    changed = set(changed_paths)
    names.update(name for name, file_path in stored_definitions if file_path not in changed)
    return names


def drop_shadowed_prototypes(
    nodes: list[CodeNode], definition_names: set[str]
) -> tuple[list[CodeNode], int]:
    """Remove single-line function nodes whose name has a definition.

    Returns the surviving nodes and how many were dropped.
    """
    kept = [n for n in nodes if not (n.is_prototype and n.name in definition_names)]
    return kept, len(nodes) - len(kept)
