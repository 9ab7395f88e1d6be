"""Centralized logging configuration for code-context.

Provides:
- Console logging on stderr with quiet/verbose levels
- Optional rotating file log per project
- Structured JSON file format
- Category loggers for the graph, query, indexing and embedding layers
"""

import json
import logging
import logging.handlers
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

ROOT_LOGGER_NAME = "code_context"


class LogCategory(Enum):
    """Log categories for per-component debugging."""

    INDEXER = "indexer"
    GRAPH = "graph"
    QUERY = "query"
    EMBEDDINGS = "embeddings"
    STORAGE = "storage"
    CLI = "cli"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Produces one JSON object per record with a fixed set of fields plus any
    known extra context passed through ``extra=``.
    """

    EXTRA_FIELDS = ("duration_ms", "operation", "file_path", "node_count", "project")

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON.

        Args:
            record: The log record to format.

        Returns:
            JSON string representation of the log entry.
        """
        log_entry: dict = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def get_global_log_dir() -> Path:
    """Get the global log directory (~/.code-context/logs/)."""
    log_dir = Path.home() / ".code-context" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_default_log_file(project_name: str | None = None) -> Path:
    """Get the default log file path, optionally per project."""
    log_dir = get_global_log_dir()
    if project_name:
        return log_dir / f"{project_name}.log"
    return log_dir / "code-context.log"


def setup_logging(
    level: str = "INFO",
    quiet: bool = False,
    verbose: bool = False,
    log_file: Path | None = None,
    enable_file_logging: bool = False,
    project_name: str | None = None,
    log_format: str = "text",
    rotation_count: int = 3,
    max_bytes: int = 10485760,
) -> logging.Logger:
    """Setup global logging configuration.

    Args:
        level: Base log level (DEBUG, INFO, WARNING, ERROR).
        quiet: Suppress console output below ERROR.
        verbose: Enable debug-level console output.
        log_file: Explicit log file path.
        enable_file_logging: Write a rotating log file when no explicit path is given.
        project_name: Project-specific log file naming.
        log_format: File output format ("text" or "json").
        rotation_count: Number of backup files.
        max_bytes: Max file size before rotation.

    Returns:
        Configured root logger for the package.
    """
    import logging.config

    if log_file is None and enable_file_logging:
        log_file = get_default_log_file(project_name)

    if quiet:
        effective_level = "ERROR"
    elif verbose:
        effective_level = "DEBUG"
    else:
        effective_level = level.upper()

    config: dict = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "simple": {"format": "%(levelname)s | %(message)s"},
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "level": effective_level,
                "stream": "ext://sys.stderr",
            }
        },
        "loggers": {
            ROOT_LOGGER_NAME: {
                "handlers": ["console"],
                "level": "DEBUG",
                "propagate": False,
            }
        },
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "json" if log_format == "json" else "detailed",
            "level": "DEBUG",
            "filename": str(log_file),
            "maxBytes": max_bytes,
            "backupCount": rotation_count,
        }
        config["loggers"][ROOT_LOGGER_NAME]["handlers"].append("file")

    logging.config.dictConfig(config)
    return logging.getLogger(ROOT_LOGGER_NAME)


def get_logger() -> logging.Logger:
    """Get the package logger."""
    return logging.getLogger(ROOT_LOGGER_NAME)


def get_category_logger(category: LogCategory) -> logging.Logger:
    """Get a logger for a specific category.

    Example:
        >>> from code_context.indexer_logging import get_category_logger, LogCategory
        >>> logger = get_category_logger(LogCategory.GRAPH)
        >>> logger.debug("cleared vertices")
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{category.value}")
