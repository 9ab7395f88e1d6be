"""Incremental indexing pipeline."""

from .change_detector import (
    ChangeDetector,
    FileChange,
    FileHashStore,
    GraphFileHashStore,
    TableFileHashStore,
)
from .orchestrator import IndexingOrchestrator
from .types import DeletionSummary, IndexingPhase, IndexingResult

__all__ = [
    "ChangeDetector",
    "DeletionSummary",
    "FileChange",
    "FileHashStore",
    "GraphFileHashStore",
    "IndexingOrchestrator",
    "IndexingPhase",
    "IndexingResult",
    "TableFileHashStore",
]
