"""Results of a sync run."""

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .comparator import SyncAction, SyncDecision


@dataclass
class DirectoryResult:
    """Outcome of syncing one root directory."""

    directory: Path
    """Configured root directory"""

    root_name: str
    """Name used in storage keys"""

    files_scanned: int = 0
    """Number of regular files found"""

    decisions: list[SyncDecision] = field(default_factory=list)
    """Final classification of every file"""

    uploaded: list[str] = field(default_factory=list)
    """Storage keys written in this run"""

    uploaded_bytes: int = 0
    """Total size of the files written in this run"""

    failures: dict[str, str] = field(default_factory=dict)
    """Storage key to error message for failed uploads"""

    error: Optional[str] = None
    """Directory-level error (the directory was not processed)"""

    @property
    def skipped(self) -> list[SyncDecision]:
        return [d for d in self.decisions if d.action == SyncAction.SKIP]

    @property
    def success(self) -> bool:
        return self.error is None and not self.failures

    def decision_for(self, relative_path: str) -> Optional[SyncDecision]:
        for decision in self.decisions:
            if decision.relative_path == relative_path:
                return decision
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "directory": str(self.directory),
            "root_name": self.root_name,
            "files_scanned": self.files_scanned,
            "uploaded": sorted(self.uploaded),
            "uploaded_bytes": self.uploaded_bytes,
            "skipped": {
                d.relative_path: d.reason.value if d.reason else None
                for d in self.skipped
            },
            "failures": dict(self.failures),
            "error": self.error,
        }


@dataclass
class SyncResult:
    """Aggregate outcome of a sync run."""

    bucket: str
    """Bucket that was synced to"""

    directories: list[DirectoryResult] = field(default_factory=list)

    bucket_created: bool = False
    """Whether the bucket was created during the run"""

    dry_run: bool = False

    @property
    def files_scanned(self) -> int:
        return sum(d.files_scanned for d in self.directories)

    @property
    def uploaded(self) -> int:
        return sum(len(d.uploaded) for d in self.directories)

    @property
    def uploaded_bytes(self) -> int:
        return sum(d.uploaded_bytes for d in self.directories)

    @property
    def skipped(self) -> int:
        return sum(len(d.skipped) for d in self.directories)

    @property
    def skip_reasons(self) -> dict[str, int]:
        """Count of skipped files per reason."""
        counts: Counter = Counter()
        for directory in self.directories:
            for decision in directory.skipped:
                if decision.reason is not None:
                    counts[decision.reason.value] += 1
        return dict(counts)

    @property
    def pending_uploads(self) -> int:
        """Files classified for upload (the planned uploads of a dry run)."""
        return sum(
            1
            for directory in self.directories
            for decision in directory.decisions
            if decision.action == SyncAction.UPLOAD
        )

    @property
    def failures(self) -> list[str]:
        """Directory- and file-level error messages."""
        messages: list[str] = []
        for directory in self.directories:
            if directory.error:
                messages.append(f"{directory.directory}: {directory.error}")
            for key, message in sorted(directory.failures.items()):
                messages.append(f"{key}: {message}")
        return messages

    @property
    def success(self) -> bool:
        return all(d.success for d in self.directories)

    def to_dict(self) -> dict[str, Any]:
        return {
            "bucket": self.bucket,
            "bucket_created": self.bucket_created,
            "dry_run": self.dry_run,
            "files_scanned": self.files_scanned,
            "uploaded": self.uploaded,
            "uploaded_bytes": self.uploaded_bytes,
            "skipped": self.skipped,
            "skip_reasons": self.skip_reasons,
            "failures": self.failures,
            "success": self.success,
            "directories": [d.to_dict() for d in self.directories],
        }
