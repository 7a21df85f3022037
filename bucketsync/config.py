"""Configuration management for bucketsync.

Credentials are read from environment variables first and then from the
config file at ``~/.config/bucketsync/config`` (``KEY=value`` lines).
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .utils import DEFAULT_REGION

logger = logging.getLogger(__name__)

ACCESS_KEY_ID_VARS = ("BUCKETSYNC_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID")
SECRET_ACCESS_KEY_VARS = ("BUCKETSYNC_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY")
REGION_VARS = ("BUCKETSYNC_REGION", "AWS_DEFAULT_REGION", "AWS_REGION")
BUCKET_VARS = ("BUCKETSYNC_BUCKET",)
ENDPOINT_URL_VARS = ("BUCKETSYNC_ENDPOINT_URL",)


class Config:
    """Credential and default-setting lookup."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ~/.config/bucketsync/
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "bucketsync"
        self.config_dir = config_dir
        self.config_file = config_dir / "config"

    def get_config_path(self) -> Path:
        return self.config_file

    def _read_file(self) -> dict[str, str]:
        values: dict[str, str] = {}
        if not self.config_file.exists():
            return values
        try:
            with open(self.config_file, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    values[key.strip()] = value.strip()
        except OSError as e:
            logger.warning(f"Failed to read config file {self.config_file}: {e}")
        return values

    def _lookup(self, names: tuple[str, ...]) -> Optional[str]:
        for name in names:
            value = os.environ.get(name)
            if value:
                return value
        file_values = self._read_file()
        for name in names:
            if file_values.get(name):
                return file_values[name]
        return None

    @property
    def access_key_id(self) -> Optional[str]:
        return self._lookup(ACCESS_KEY_ID_VARS)

    @property
    def secret_access_key(self) -> Optional[str]:
        return self._lookup(SECRET_ACCESS_KEY_VARS)

    @property
    def region(self) -> str:
        return self._lookup(REGION_VARS) or DEFAULT_REGION

    @property
    def bucket(self) -> Optional[str]:
        return self._lookup(BUCKET_VARS)

    @property
    def endpoint_url(self) -> Optional[str]:
        return self._lookup(ENDPOINT_URL_VARS)

    def is_configured(self) -> bool:
        """Check whether both access keys are available."""
        return bool(self.access_key_id and self.secret_access_key)

    def save_credentials(
        self,
        access_key_id: str,
        secret_access_key: str,
        region: Optional[str] = None,
        bucket: Optional[str] = None,
    ) -> None:
        """Write credentials to the config file, readable by the owner only."""
        values = self._read_file()
        values[ACCESS_KEY_ID_VARS[0]] = access_key_id
        values[SECRET_ACCESS_KEY_VARS[0]] = secret_access_key
        if region:
            values[REGION_VARS[0]] = region
        if bucket:
            values[BUCKET_VARS[0]] = bucket

        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            for key, value in values.items():
                f.write(f"{key}={value}\n")
        self.config_file.chmod(0o600)


config = Config()
