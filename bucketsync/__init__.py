"""bucketsync - push local directory trees to an S3 bucket."""

from .exceptions import (
    BucketResolutionError,
    BucketSyncError,
    ScanError,
    StorageAuthenticationError,
    StorageConnectionError,
    StorageError,
    SyncConfigError,
    TransientUploadError,
)
from .storage import (
    BucketHandle,
    Credentials,
    MemoryConnection,
    RemoteObject,
    S3Connection,
    StorageConnection,
)
from .utils import build_storage_key, normalize_fingerprint

__version__ = "0.1.0"

__all__ = [
    "BucketHandle",
    "Credentials",
    "MemoryConnection",
    "RemoteObject",
    "S3Connection",
    "StorageConnection",
    "BucketResolutionError",
    "BucketSyncError",
    "ScanError",
    "StorageAuthenticationError",
    "StorageConnectionError",
    "StorageError",
    "SyncConfigError",
    "TransientUploadError",
    "build_storage_key",
    "normalize_fingerprint",
]
