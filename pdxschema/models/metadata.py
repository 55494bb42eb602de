"""Metadata models for batch run observability."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Any


@dataclass
class FileMetadata:
    """Metadata for reading and parsing a single save file."""
    source_file: str
    started_at: datetime
    completed_at: datetime
    success: bool

    # Document info
    char_count: int = 0
    property_count: int = 0
    archive_entry: Optional[str] = None

    # Error info
    error: Optional[str] = None

    @property
    def duration_ms(self) -> int:
        """Duration in milliseconds."""
        delta = self.completed_at - self.started_at
        return int(delta.total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        result = {
            "source_file": self.source_file,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_ms": self.duration_ms,
            "success": self.success,
            "char_count": self.char_count,
            "property_count": self.property_count,
        }

        if self.archive_entry:
            result["archive_entry"] = self.archive_entry

        if self.error:
            result["error"] = self.error

        return result


@dataclass
class RunMetadata:
    """Metadata for a complete schema run."""
    schema_name: str
    started_at: datetime
    completed_at: Optional[datetime] = None

    # Aggregates
    files_processed: int = 0
    files_succeeded: int = 0
    files_failed: int = 0
    types_created: int = 0
    diagnostics: int = 0

    # Per-file metadata
    files: list[FileMetadata] = field(default_factory=list)

    @property
    def duration_ms(self) -> int:
        """Duration in milliseconds."""
        if not self.completed_at:
            return 0
        delta = self.completed_at - self.started_at
        return int(delta.total_seconds() * 1000)

    @property
    def total_chars(self) -> int:
        return sum(f.char_count for f in self.files)

    def record(self, file_metadata: FileMetadata) -> None:
        self.files.append(file_metadata)
        self.files_processed += 1
        if file_metadata.success:
            self.files_succeeded += 1
        else:
            self.files_failed += 1

    def to_summary_dict(self) -> dict[str, Any]:
        """Convert to summary dictionary for the run header."""
        result = {
            "_type": "run_summary",
            "schema_name": self.schema_name,
            "started_at": self.started_at.isoformat(),
            "files_processed": self.files_processed,
            "files_succeeded": self.files_succeeded,
            "files_failed": self.files_failed,
            "total_chars": self.total_chars,
            "types_created": self.types_created,
            "diagnostics": self.diagnostics,
        }

        if self.completed_at:
            result["completed_at"] = self.completed_at.isoformat()
            result["duration_ms"] = self.duration_ms

        return result
