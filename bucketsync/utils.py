"""Utility functions for bucketsync."""

from typing import Optional

# =============================================================================
# Constants for file operations
# =============================================================================

# Read size used when hashing local files (1 MB)
DEFAULT_HASH_CHUNK_SIZE: int = 1024 * 1024

# Parallel workers for hashing and uploads
DEFAULT_MAX_WORKERS: int = 4

# Retry configuration for transient upload errors
DEFAULT_UPLOAD_RETRIES: int = 0
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Region used when none is configured
DEFAULT_REGION: str = "us-east-1"


# =============================================================================
# Storage key utilities
# =============================================================================


def build_storage_key(prefix: str, root_name: str, relative_path: str) -> str:
    """Build the storage key for a local file.

    Non-empty segments are joined with "/" after stripping surrounding
    slashes, so an empty prefix yields ``root_name/relative_path``.

    Args:
        prefix: Configured remote path prefix (may be empty)
        root_name: Name of the configured root directory
        relative_path: POSIX path of the file relative to its root

    Returns:
        Full storage key

    Examples:
        >>> build_storage_key("storage", "tmp", "foo")
        'storage/tmp/foo'
        >>> build_storage_key("/box/", "tmp", "sub/foo")
        'box/tmp/sub/foo'
        >>> build_storage_key("", "tmp", "foo")
        'tmp/foo'
    """
    segments = (prefix.strip("/"), root_name.strip("/"), relative_path.strip("/"))
    return "/".join(segment for segment in segments if segment)


def key_prefix(prefix: str) -> str:
    """Return the listing prefix for a configured path prefix.

    Examples:
        >>> key_prefix("/storage/")
        'storage/'
        >>> key_prefix("")
        ''
    """
    prefix = prefix.strip("/")
    return f"{prefix}/" if prefix else ""


# =============================================================================
# Fingerprint utilities
# =============================================================================


def normalize_fingerprint(fingerprint: Optional[str]) -> str:
    """Normalize a content fingerprint for comparison.

    Storage backends commonly wrap ETags in double quotes and vary the case
    of hex digits.

    Examples:
        >>> normalize_fingerprint('"ABCDEF123"')
        'abcdef123'
        >>> normalize_fingerprint(None)
        ''
    """
    if not fingerprint:
        return ""
    return fingerprint.strip().strip('"').strip().lower()


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
