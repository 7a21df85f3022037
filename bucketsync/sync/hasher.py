"""Content hashing for local files."""

import hashlib
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Union

from ..utils import DEFAULT_HASH_CHUNK_SIZE, DEFAULT_MAX_WORKERS
from .scanner import DirectoryScanner, LocalFile

logger = logging.getLogger(__name__)


def calculate_md5(
    file_path: Union[str, Path], chunk_size: int = DEFAULT_HASH_CHUNK_SIZE
) -> str:
    """Calculate the hex MD5 digest of a file.

    S3 reports the MD5 of an object uploaded in a single request as its
    ETag, so this digest can be compared with listed objects directly.

    Args:
        file_path: Path to the file
        chunk_size: Number of bytes read at a time

    Returns:
        Lower-case hex digest

    Raises:
        OSError: If the file cannot be read
    """
    digest = hashlib.md5()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


class ContentHasher:
    """Fingerprints all files of a root directory in one batch.

    Files are hashed in-process on a bounded thread pool. A file that
    disappears or becomes unreadable before it is hashed is left out of the
    result.
    """

    def __init__(
        self,
        max_workers: int = DEFAULT_MAX_WORKERS,
        chunk_size: int = DEFAULT_HASH_CHUNK_SIZE,
    ):
        self.max_workers = max_workers
        self.chunk_size = chunk_size

    def _hash_one(self, local_file: LocalFile) -> Optional[str]:
        try:
            return calculate_md5(local_file.path, self.chunk_size)
        except OSError as e:
            logger.debug(f"Not hashing {local_file.relative_path}: {e}")
            return None

    def hash_files(self, files: list[LocalFile]) -> dict[str, str]:
        """Compute fingerprints for a batch of files.

        Args:
            files: Files of one root directory

        Returns:
            Mapping of relative path to MD5 hex digest
        """
        if not files:
            return {}

        start = time.time()
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            digests = list(executor.map(self._hash_one, files))

        fingerprints = {
            local_file.relative_path: digest
            for local_file, digest in zip(files, digests)
            if digest is not None
        }
        logger.debug(
            "Hashed %d of %d file(s) in %.2fs",
            len(fingerprints),
            len(files),
            time.time() - start,
        )
        return fingerprints

    def hash_directory(
        self, directory: Path, scanner: Optional[DirectoryScanner] = None
    ) -> dict[str, str]:
        """Scan a root directory and fingerprint every file in it.

        Raises:
            ScanError: If the directory cannot be scanned
        """
        scanner = scanner or DirectoryScanner()
        return self.hash_files(scanner.scan_local(directory))
