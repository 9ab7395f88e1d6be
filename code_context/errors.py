"""Structured error types with recovery suggestions.

Every error raised deliberately by code-context derives from
``CodeContextError``. The CLI formats these with their suggestion and exits
with the error's exit code; anything else is reported as a generic failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Categories of errors for organization and handling."""

    CONNECTION = "connection"  # PostgreSQL/AGE, Qdrant, embedding endpoint
    CONFIGURATION = "configuration"
    FILE_SYSTEM = "file_system"
    VALIDATION = "validation"
    INDEXING = "indexing"
    QUERY = "query"
    RUNTIME = "runtime"


@dataclass
class CodeContextError(Exception):
    """Base class for structured errors with recovery suggestions.

    Attributes:
        category: Error category for grouping.
        message: Human-readable error message.
        suggestion: Optional actionable recovery suggestion.
        details: Optional additional details dict.
        exit_code: Exit code to use when this error causes termination.
    """

    category: ErrorCategory
    message: str
    suggestion: str | None = None
    details: dict[str, Any] | None = field(default_factory=dict)
    exit_code: int = 1

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def format(self, use_color: bool = True) -> str:
        """Format the error for display.

        Args:
            use_color: Whether to include ANSI color codes.

        Returns:
            Formatted error string with suggestion if available.
        """
        red = "\033[91m" if use_color else ""
        cyan = "\033[96m" if use_color else ""
        dim = "\033[2m" if use_color else ""
        reset = "\033[0m" if use_color else ""

        lines = [f"{red}Error:{reset} {self.message}"]

        if self.suggestion:
            lines.append(f"{cyan}Suggestion:{reset} {self.suggestion}")

        if self.details:
            for key, value in self.details.items():
                lines.append(f"{dim}  {key}: {value}{reset}")

        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format(use_color=False)


class GraphConnectionError(CodeContextError):
    """Error connecting to PostgreSQL with the AGE extension."""

    def __init__(self, dsn: str, original_error: str | None = None):
        message = f"Cannot connect to PostgreSQL at {dsn}"
        if original_error:
            message = f"{message}: {original_error}"

        super().__init__(
            category=ErrorCategory.CONNECTION,
            message=message,
            suggestion=(
                "Ensure PostgreSQL with the Apache AGE extension is running and "
                "PGHOST/PGPORT/PGUSER/PGPASSWORD are set correctly"
            ),
            details={"dsn": dsn} if original_error else None,
        )


class EmbeddingStoreConnectionError(CodeContextError):
    """Error connecting to the Qdrant vector database."""

    def __init__(self, url: str, original_error: str | None = None):
        message = f"Cannot connect to Qdrant at {url}"
        if original_error:
            message = f"{message}: {original_error}"

        super().__init__(
            category=ErrorCategory.CONNECTION,
            message=message,
            suggestion=(
                "Ensure Qdrant is running. Start with: "
                "docker run -p 6333:6333 qdrant/qdrant"
            ),
            details={"url": url} if original_error else None,
        )


class ConfigurationError(CodeContextError):
    """Error in configuration file or settings."""

    def __init__(
        self,
        message: str,
        config_file: str | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(
            category=ErrorCategory.CONFIGURATION,
            message=message,
            suggestion=suggestion
            or "Check your settings file syntax and environment variables",
            details={"config_file": config_file} if config_file else None,
        )


class DirectoryNotFoundError(CodeContextError):
    """Error when the directory to index doesn't exist."""

    def __init__(self, path: str):
        super().__init__(
            category=ErrorCategory.FILE_SYSTEM,
            message=f"Directory not found: {path}",
            suggestion="Verify the path exists and you have read permissions",
            details={"path": path},
        )


class ProjectNotFoundError(CodeContextError):
    """Error when the requested project has never been indexed."""

    def __init__(self, project: str, available: list[str] | None = None):
        super().__init__(
            category=ErrorCategory.VALIDATION,
            message=f'Project "{project}" not found',
            suggestion="Run 'code-context projects' to list indexed projects",
            details={"available": ", ".join(available)} if available else None,
        )


class NodeNotFoundError(CodeContextError):
    """Error when a named symbol is not in the project graph."""

    def __init__(self, name: str, project: str):
        super().__init__(
            category=ErrorCategory.QUERY,
            message=f'"{name}" not found in the index of project "{project}"',
            suggestion="Check the spelling or re-index the project",
            details={"name": name, "project": project},
        )


class ReadOnlyQueryError(CodeContextError):
    """An ad-hoc graph query was rejected before execution."""

    def __init__(self, message: str, keyword: str | None = None):
        super().__init__(
            category=ErrorCategory.QUERY,
            message=message,
            suggestion="Only read-only MATCH ... RETURN queries are accepted",
            details={"keyword": keyword} if keyword else None,
            exit_code=2,
        )


class CypherQueryError(CodeContextError):
    """The graph substrate rejected an ad-hoc query."""

    def __init__(self, message: str, query: str | None = None):
        super().__init__(
            category=ErrorCategory.QUERY,
            message=message,
            suggestion=(
                "Queries must return exactly one column; "
                "wrap several values in a list: RETURN [a.name, b.name]"
            ),
            details={"query": query} if query else None,
            exit_code=2,
        )


class IndexingError(CodeContextError):
    """Error during an indexing run."""

    def __init__(self, message: str, file_path: str | None = None):
        super().__init__(
            category=ErrorCategory.INDEXING,
            message=message,
            suggestion="Re-run the index command; unchanged files are skipped",
            details={"file": file_path} if file_path else None,
        )


def handle_exception(
    error: BaseException,
    use_color: bool = True,
    verbose: bool = False,
) -> tuple[str, int]:
    """Convert any exception to formatted output and exit code.

    Args:
        error: The exception to handle.
        use_color: Whether to use color in output.
        verbose: Whether to include full traceback.

    Returns:
        Tuple of (formatted_message, exit_code).
    """
    import traceback

    if isinstance(error, CodeContextError):
        message = error.format(use_color=use_color)
        exit_code = error.exit_code
    else:
        red = "\033[91m" if use_color else ""
        reset = "\033[0m" if use_color else ""
        message = f"{red}Error:{reset} {error}"
        exit_code = 1

    if verbose:
        message += "\n\nTraceback:\n" + "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )

    return message, exit_code
