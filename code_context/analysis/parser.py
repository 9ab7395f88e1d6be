"""Code parsing abstractions with Tree-sitter."""

import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import PurePath
from typing import Any

import tree_sitter

from ..indexer_logging import get_logger
from .entities import FileExtraction

logger = get_logger()


def node_text(node: Any) -> str:
    """Decoded source text of a tree-sitter node."""
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def start_line(node: Any) -> int:
    return node.start_point[0] + 1


def end_line(node: Any) -> int:
    return node.end_point[0] + 1


def find_descendants(node: Any, node_type: str) -> Iterator[Any]:
    """Pre-order walk yielding every descendant (and self) of ``node_type``."""
    if node.type == node_type:
        yield node
    for child in node.children:
        yield from find_descendants(child, node_type)


class CodeParser(ABC):
    """Abstract base class for code parsers."""

    language_name: str = ""

    @abstractmethod
    def get_supported_extensions(self) -> list[str]:
        """Get list of supported file extensions."""
        pass

    @abstractmethod
    def extract(self, file_path: str, source: bytes) -> FileExtraction:
        """Extract nodes and relationships from one file's source."""
        pass

    def can_parse(self, file_path: str | PurePath) -> bool:
        return PurePath(file_path).suffix in self.get_supported_extensions()


class TreeSitterParser(CodeParser):
    """Shared setup for tree-sitter backed parsers."""

    def __init__(self, language_capsule: Any):
        self._language = tree_sitter.Language(language_capsule)
        self._parser = tree_sitter.Parser(self._language)

    def parse_tree(self, source: bytes) -> "tree_sitter.Tree":
        return self._parser.parse(source)

    def has_syntax_errors(self, tree: "tree_sitter.Tree") -> bool:
        """Check if the parse tree contains syntax errors."""
        return tree.root_node.has_error


class ParserRegistry:
    """Registry mapping file extensions to parsers."""

    def __init__(self, parsers: list[CodeParser] | None = None):
        self._parsers: list[CodeParser] = []
        if parsers is None:
            self._register_default_parsers()
        else:
            for parser in parsers:
                self.register(parser)

    def _register_default_parsers(self) -> None:
        from .c_parser import CParser
        from .python_parser import PythonParser

        self.register(CParser())
        self.register(PythonParser())

    def register(self, parser: CodeParser) -> None:
        """Register a new parser."""
        self._parsers.append(parser)

    def get_parser_for_file(self, file_path: str | PurePath) -> CodeParser | None:
        for parser in self._parsers:
            if parser.can_parse(file_path):
                return parser
        return None

    def get_supported_extensions(self) -> set[str]:
        return {ext for parser in self._parsers for ext in parser.get_supported_extensions()}

    def extract(self, file_path: str, source: bytes) -> FileExtraction:
        """Extract with the matching parser; failures land in ``errors``."""
        parser = self.get_parser_for_file(file_path)
        if parser is None:
            return FileExtraction(
                file_path=file_path,
                errors=[f"No parser available for {PurePath(file_path).suffix}"],
            )

        start_time = time.time()
        try:
            extraction = parser.extract(file_path, source)
        except (ValueError, UnicodeError, RuntimeError) as e:
            logger.warning(f"Failed to parse {file_path}: {e}")
            return FileExtraction(file_path=file_path, errors=[f"Parsing failed: {e}"])

        logger.debug(
            f"Parsed {file_path} with {parser.language_name}: "
            f"{len(extraction.nodes)} nodes, {len(extraction.relationships)} relationships "
            f"in {time.time() - start_time:.3f}s"
        )
        return extraction
