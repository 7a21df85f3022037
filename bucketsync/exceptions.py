"""Custom exceptions for bucketsync."""

from typing import Optional


class BucketSyncError(Exception):
    """Base exception for all bucketsync errors."""

    pass


class SyncConfigError(BucketSyncError):
    """Raised when the sync configuration is invalid or incomplete."""

    pass


class StorageError(BucketSyncError):
    """Raised when a storage backend operation fails."""

    pass


class StorageConnectionError(StorageError):
    """Raised when the storage connection cannot be established or used."""

    pass


class StorageAuthenticationError(StorageConnectionError):
    """Raised when the storage backend rejects the credentials."""

    pass


class BucketResolutionError(StorageError):
    """Raised when a bucket can neither be found nor created."""

    def __init__(self, bucket: str, message: Optional[str] = None):
        self.bucket = bucket
        super().__init__(message or f"Could not resolve or create bucket: {bucket}")


class TransientUploadError(StorageError):
    """Raised when a single object write fails.

    Uploads are idempotent by content, so the same file can be retried
    without side effects.
    """

    def __init__(self, key: str, message: Optional[str] = None):
        self.key = key
        super().__init__(message or f"Upload failed: {key}")


class ScanError(BucketSyncError):
    """Raised when a configured root directory cannot be read."""

    def __init__(self, directory: str, message: Optional[str] = None):
        self.directory = directory
        super().__init__(message or f"Cannot scan directory: {directory}")
