"""File comparison logic for sync operations."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from ..utils import build_storage_key, normalize_fingerprint
from .scanner import LocalFile


class SyncAction(str, Enum):
    """Actions that can be taken during sync."""

    UPLOAD = "upload"
    """Upload local file to remote"""

    SKIP = "skip"
    """Skip file (no action needed)"""


class SkipReason(str, Enum):
    """Why a file was not uploaded."""

    MATCHES_REMOTE = "matches-remote"
    """Remote object already has the same content"""

    VANISHED_LOCALLY = "vanished-locally"
    """Local file was removed before it could be uploaded"""


@dataclass(frozen=True)
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    relative_path: str
    """Path of the file relative to its root directory"""

    key: str
    """Storage key the file maps to"""

    reason: Optional[SkipReason] = None
    """Reason for a skip (None for uploads)"""

    description: str = ""
    """Human-readable explanation"""

    local_file: Optional[LocalFile] = None
    """Local file (if known)"""

    local_fingerprint: Optional[str] = None
    remote_fingerprint: Optional[str] = None

    def skipped(self, reason: SkipReason, description: str) -> "SyncDecision":
        """Return a copy of this decision turned into a skip."""
        return replace(
            self, action=SyncAction.SKIP, reason=reason, description=description
        )


class FileComparator:
    """Compares local fingerprints with remote objects to determine actions.

    Only local paths are classified. Remote objects without a local
    counterpart are never touched.
    """

    def __init__(self, prefix: str = ""):
        """Initialize file comparator.

        Args:
            prefix: Remote path prefix for storage keys
        """
        self.prefix = prefix

    def compare_files(
        self,
        root_name: str,
        local_fingerprints: dict[str, str],
        remote_fingerprints: dict[str, str],
        local_files: Optional[dict[str, LocalFile]] = None,
    ) -> list[SyncDecision]:
        """Classify every local file of one root directory.

        Args:
            root_name: Name of the root directory
            local_fingerprints: Mapping of relative path to local fingerprint
            remote_fingerprints: Mapping of storage key to remote fingerprint
            local_files: Optional mapping of relative path to LocalFile

        Returns:
            List of SyncDecision objects, sorted by relative path
        """
        local_files = local_files or {}
        decisions: list[SyncDecision] = []

        for path in sorted(local_fingerprints):
            key = build_storage_key(self.prefix, root_name, path)
            decision = self._compare_single_file(
                path,
                key,
                local_fingerprints[path],
                remote_fingerprints.get(key),
                local_files.get(path),
            )
            decisions.append(decision)

        return decisions

    def vanished(self, root_name: str, local_file: LocalFile) -> SyncDecision:
        """Skip decision for a scanned file that could not be hashed."""
        return SyncDecision(
            action=SyncAction.SKIP,
            relative_path=local_file.relative_path,
            key=build_storage_key(self.prefix, root_name, local_file.relative_path),
            reason=SkipReason.VANISHED_LOCALLY,
            description="Local file no longer exists",
            local_file=local_file,
        )

    def _compare_single_file(
        self,
        path: str,
        key: str,
        local_fingerprint: str,
        remote_fingerprint: Optional[str],
        local_file: Optional[LocalFile],
    ) -> SyncDecision:
        """Compare a single file and determine action."""
        if remote_fingerprint is None:
            return SyncDecision(
                action=SyncAction.UPLOAD,
                relative_path=path,
                key=key,
                description="New local file",
                local_file=local_file,
                local_fingerprint=local_fingerprint,
            )

        if normalize_fingerprint(local_fingerprint) != normalize_fingerprint(
            remote_fingerprint
        ):
            return SyncDecision(
                action=SyncAction.UPLOAD,
                relative_path=path,
                key=key,
                description="Content changed",
                local_file=local_file,
                local_fingerprint=local_fingerprint,
                remote_fingerprint=remote_fingerprint,
            )

        return SyncDecision(
            action=SyncAction.SKIP,
            relative_path=path,
            key=key,
            reason=SkipReason.MATCHES_REMOTE,
            description="Remote copy is identical",
            local_file=local_file,
            local_fingerprint=local_fingerprint,
            remote_fingerprint=remote_fingerprint,
        )
