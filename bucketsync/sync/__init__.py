"""Sync engine for bucketsync - one-way push of local directories to a bucket."""

from .comparator import FileComparator, SkipReason, SyncAction, SyncDecision
from .config import SyncConfiguration, load_sync_config_from_json, root_name
from .engine import SyncEngine, SyncPhase
from .hasher import ContentHasher, calculate_md5
from .inventory import RemoteInventory
from .operations import SyncOperations
from .results import DirectoryResult, SyncResult
from .scanner import DirectoryScanner, LocalFile

__all__ = [
    "SyncEngine",
    "SyncPhase",
    "SyncConfiguration",
    "load_sync_config_from_json",
    "root_name",
    "DirectoryScanner",
    "LocalFile",
    "ContentHasher",
    "calculate_md5",
    "RemoteInventory",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "SkipReason",
    "SyncOperations",
    "SyncResult",
    "DirectoryResult",
]
