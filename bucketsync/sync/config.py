"""Sync configuration and JSON config file loading."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from ..exceptions import SyncConfigError
from ..storage import Credentials
from ..utils import DEFAULT_MAX_WORKERS, DEFAULT_REGION, DEFAULT_UPLOAD_RETRIES

# JSON keys accepted in camelCase, mapped to dataclass fields
_JSON_ALIASES = {
    "accessKeyId": "access_key_id",
    "secretAccessKey": "secret_access_key",
    "endpointUrl": "endpoint_url",
    "maxWorkers": "max_workers",
    "excludeDotFiles": "exclude_dot_files",
    "uploadRetries": "upload_retries",
    "dryRun": "dry_run",
    "prefix": "path",
}


@dataclass
class SyncConfiguration:
    """Configuration for one sync run.

    Examples:
        >>> cfg = SyncConfiguration(
        ...     directories=[Path("tmp")],
        ...     path="storage",
        ...     bucket="backups",
        ... )
        >>> cfg.validate()
    """

    directories: list[Path] = field(default_factory=list)
    """Local root directories, synced in order"""

    path: str = ""
    """Remote path prefix for all storage keys"""

    bucket: str = ""
    """Target bucket name"""

    region: str = DEFAULT_REGION
    """Region used to create the bucket and connect"""

    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None

    provider: str = "AWS"
    """Storage provider name"""

    endpoint_url: Optional[str] = None
    """Custom endpoint for S3-compatible services"""

    max_workers: int = DEFAULT_MAX_WORKERS
    """Parallel workers for hashing and uploads"""

    ignore: list[str] = field(default_factory=list)
    """Glob patterns of files to leave out"""

    exclude_dot_files: bool = False
    """Whether to skip files and folders starting with a dot"""

    upload_retries: int = DEFAULT_UPLOAD_RETRIES
    """Retries per file after a failed upload"""

    dry_run: bool = False
    """Classify files without uploading"""

    def __post_init__(self) -> None:
        self.directories = [Path(d) for d in self.directories]
        self.path = (self.path or "").strip("/")

    @property
    def credentials(self) -> Credentials:
        return Credentials(
            access_key_id=self.access_key_id,
            secret_access_key=self.secret_access_key,
            region=self.region,
            provider=self.provider,
            endpoint_url=self.endpoint_url,
        )

    def validate(self) -> None:
        """Check the configuration before a run.

        Raises:
            SyncConfigError: If the configuration cannot be used
        """
        if not self.directories:
            raise SyncConfigError("At least one directory must be configured")
        if not self.bucket:
            raise SyncConfigError("A bucket name must be configured")
        if self.max_workers < 1:
            raise SyncConfigError("max_workers must be at least 1")
        if self.upload_retries < 0:
            raise SyncConfigError("upload_retries cannot be negative")

        # Roots with the same name would write to the same storage keys
        seen: dict[str, Path] = {}
        for directory in self.directories:
            name = root_name(directory)
            if not name:
                raise SyncConfigError(f"Cannot sync filesystem root: {directory}")
            if name in seen:
                raise SyncConfigError(
                    f"Directories {seen[name]} and {directory} share the "
                    f"name '{name}' and would map to the same storage keys"
                )
            seen[name] = directory


def root_name(directory: Union[str, Path]) -> str:
    """Return the name a root directory contributes to storage keys.

    Examples:
        >>> root_name("tmp")
        'tmp'
        >>> root_name("/var/backups/")
        'backups'
    """
    path = Path(os.path.normpath(directory))
    return path.name or path.resolve().name


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {_JSON_ALIASES.get(key, key): value for key, value in data.items()}


def load_sync_config_from_json(
    source: Union[str, Path], base_dir: Optional[Path] = None
) -> SyncConfiguration:
    """Load a sync configuration from a JSON file.

    Relative directories are resolved against ``base_dir`` (defaults to the
    directory containing the file).

    Args:
        source: Path to the JSON file
        base_dir: Base directory for relative directory entries

    Returns:
        SyncConfiguration (not yet validated)

    Raises:
        SyncConfigError: If the file cannot be read or has invalid content

    Examples:
        A config file looks like::

            {
                "directories": ["photos", "/srv/documents"],
                "path": "backups",
                "bucket": "my-bucket",
                "region": "eu-central-1",
                "maxWorkers": 8
            }
    """
    config_path = Path(source)
    try:
        with open(config_path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise SyncConfigError(f"Config file not found: {config_path}") from e
    except json.JSONDecodeError as e:
        raise SyncConfigError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        raise SyncConfigError(f"Cannot read config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise SyncConfigError("Config file must contain a JSON object")

    data = _normalize_keys(data)
    known = set(SyncConfiguration.__dataclass_fields__)
    unknown = sorted(set(data) - known)
    if unknown:
        raise SyncConfigError(f"Unknown config keys: {', '.join(unknown)}")

    directories = data.get("directories", [])
    if isinstance(directories, str):
        directories = [directories]
    if not isinstance(directories, list) or not all(
        isinstance(d, str) for d in directories
    ):
        raise SyncConfigError("'directories' must be a list of paths")

    if base_dir is None:
        base_dir = config_path.parent
    data["directories"] = [
        Path(d) if Path(d).is_absolute() else base_dir / d for d in directories
    ]

    if "ignore" in data and not isinstance(data["ignore"], list):
        raise SyncConfigError("'ignore' must be a list of patterns")
    for name in ("max_workers", "upload_retries"):
        if name in data and not isinstance(data[name], int):
            raise SyncConfigError(f"'{name}' must be an integer")

    return SyncConfiguration(**data)
