"""Directory scanning utilities for sync operations."""

import fnmatch
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..exceptions import ScanError

logger = logging.getLogger(__name__)


@dataclass
class LocalFile:
    """Represents a local file with metadata."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int = 0
    """File size in bytes at scan time"""

    mtime: float = 0.0
    """Last modification time at scan time (Unix timestamp)"""

    @property
    def exists(self) -> bool:
        """Whether the file is still present.

        Checked on every access, since files may disappear between the
        scan and the upload.
        """
        return self.path.is_file()

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalFile instance
        """
        stat = file_path.stat()
        # Use as_posix() to ensure forward slashes on all platforms
        relative_path = file_path.relative_to(base_path).as_posix()

        return cls(
            path=file_path,
            relative_path=relative_path,
            size=stat.st_size,
            mtime=stat.st_mtime,
        )


class DirectoryScanner:
    """Scans a root directory and lists its regular files.

    Symbolic links are never followed and never synced, whether they point
    to files or directories. Sockets, FIFOs and device files are skipped.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> files = scanner.scan_local(Path("/sync/folder"))

        >>> # With ignore patterns
        >>> scanner = DirectoryScanner(ignore_patterns=["*.tmp", "cache/*"])
        >>> files = scanner.scan_local(Path("/sync/folder"))
    """

    def __init__(
        self,
        ignore_patterns: Optional[list[str]] = None,
        exclude_dot_files: bool = False,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: List of glob patterns to ignore (e.g., ["*.log", "temp/*"])
            exclude_dot_files: Whether to exclude files/folders starting with dot
        """
        self.ignore_patterns = ignore_patterns or []
        self.exclude_dot_files = exclude_dot_files

    def should_ignore(self, path: Path, base_path: Path) -> bool:
        """Check if a path should be ignored based on patterns.

        Patterns are matched against both the relative path and the name.

        Args:
            path: Path to check
            base_path: Base path for relative path calculation

        Returns:
            True if path should be ignored
        """
        if self.exclude_dot_files and path.name.startswith("."):
            return True

        if self.ignore_patterns:
            relative_path = path.relative_to(base_path).as_posix()
            for pattern in self.ignore_patterns:
                if fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(
                    path.name, pattern
                ):
                    logger.debug(f"Ignoring (pattern {pattern}): {relative_path}")
                    return True

        return False

    def scan_local(self, directory: Path) -> list[LocalFile]:
        """Recursively scan a local root directory.

        Args:
            directory: Root directory to scan

        Returns:
            List of LocalFile objects sorted by relative path

        Raises:
            ScanError: If the root directory is missing or unreadable
        """
        directory = Path(directory)
        if not directory.exists():
            raise ScanError(str(directory), f"Directory does not exist: {directory}")
        if not directory.is_dir():
            raise ScanError(str(directory), f"Not a directory: {directory}")

        base_path = directory.absolute()
        try:
            entries = list(base_path.iterdir())
        except OSError as e:
            raise ScanError(str(directory), f"Cannot read {directory}: {e}") from e

        files = self._scan_entries(entries, base_path)
        files.sort(key=lambda f: f.relative_path)
        return files

    def _scan_entries(self, entries: list[Path], base_path: Path) -> list[LocalFile]:
        files: list[LocalFile] = []

        for item in entries:
            # stat can fail for entries that were listed (EACCES, ENAMETOOLONG)
            try:
                if item.is_symlink():
                    logger.debug(f"Skipping symlink: {item}")
                    continue
                if self.should_ignore(item, base_path):
                    continue
                is_file = item.is_file()
                is_dir = not is_file and item.is_dir()
            except OSError as e:
                logger.warning(f"Skipping unreadable entry {item}: {e}")
                continue

            if is_file:
                try:
                    files.append(LocalFile.from_path(item, base_path))
                except OSError:
                    # Vanished or unreadable since listing
                    continue
            elif is_dir:
                try:
                    children = list(item.iterdir())
                except OSError as e:
                    logger.warning(f"Skipping unreadable directory {item}: {e}")
                    continue
                files.extend(self._scan_entries(children, base_path))

        return files
