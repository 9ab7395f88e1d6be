"""Type definitions for the indexing pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IndexingPhase(str, Enum):
    """Phases of an indexing run, in order."""

    COLLECT = "collect"
    DETECT_CHANGES = "detect_changes"
    EXTRACT = "extract"
    DEDUP = "dedup"
    VERTICES = "vertices"
    EDGES = "edges"
    COMMIT = "commit"
    CLEANUP = "cleanup"
    COMPLETE = "complete"


@dataclass
class IndexingResult:
    """Result of an indexing run.

    Attributes:
        project: Sanitized project name
        files_scanned: Files collected from disk
        files_processed: Changed files rebuilt and recorded
        files_skipped: Unchanged files left untouched
        files_failed: Files whose extraction failed (hash not recorded)
        files_deleted: Recorded files no longer on disk, removed from the index
        vertices_created: Code vertices written
        vertices_failed: Vertex writes that raised
        prototypes_dropped: Single-line prototypes removed by dedup
        edges_created: Relationships whose endpoints both existed
        edges_skipped: Relationships with a missing endpoint or a failed write
        embeddings_stored: Vectors written
        embeddings_failed: Nodes left without a vector
    """

    project: str
    success: bool = True
    files_scanned: int = 0
    files_processed: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    files_deleted: int = 0
    vertices_created: int = 0
    vertices_failed: int = 0
    prototypes_dropped: int = 0
    edges_created: int = 0
    edges_skipped: int = 0
    embeddings_stored: int = 0
    embeddings_failed: int = 0
    processing_time: float = 0.0

    processed_files: list[str] = field(default_factory=list)
    failed_files: list[str] = field(default_factory=list)
    deleted_files: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "success": self.success,
            "files_scanned": self.files_scanned,
            "files_processed": self.files_processed,
            "files_skipped": self.files_skipped,
            "files_failed": self.files_failed,
            "files_deleted": self.files_deleted,
            "vertices_created": self.vertices_created,
            "vertices_failed": self.vertices_failed,
            "prototypes_dropped": self.prototypes_dropped,
            "edges_created": self.edges_created,
            "edges_skipped": self.edges_skipped,
            "embeddings_stored": self.embeddings_stored,
            "embeddings_failed": self.embeddings_failed,
            "processing_time": round(self.processing_time, 3),
            "failed_files": self.failed_files,
            "deleted_files": self.deleted_files,
            "errors": self.errors,
        }


@dataclass
class DeletionSummary:
    """What was removed when a project was deleted."""

    project: str
    embeddings_deleted: int = 0
    vertices_deleted: int = 0
    file_records_deleted: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "embeddings_deleted": self.embeddings_deleted,
            "vertices_deleted": self.vertices_deleted,
            "file_records_deleted": self.file_records_deleted,
        }
