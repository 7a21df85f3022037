"""Core sync engine for executing sync runs."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from ..exceptions import (
    BucketSyncError,
    ScanError,
    StorageConnectionError,
    TransientUploadError,
)
from ..output import OutputFormatter
from ..storage import BucketHandle, Credentials, S3Connection, StorageConnection
from ..utils import DEFAULT_RETRY_DELAY, key_prefix
from .comparator import FileComparator, SyncAction, SyncDecision
from .config import SyncConfiguration, root_name
from .hasher import ContentHasher
from .inventory import RemoteInventory
from .operations import SyncOperations
from .results import DirectoryResult, SyncResult
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[Credentials], StorageConnection]


class SyncPhase(str, Enum):
    """Phases of a sync run."""

    IDLE = "idle"
    CONNECTION_ESTABLISHED = "connection_established"
    BUCKET_RESOLVED = "bucket_resolved"
    SCANNING = "scanning"
    HASHING = "hashing"
    DIFFING = "diffing"
    UPLOADING = "uploading"
    DONE = "done"
    FAILED = "failed"


class SyncEngine:
    """Core sync engine that pushes local directories to a bucket.

    A run opens one storage connection, resolves the bucket and lists the
    remote objects once, then scans, hashes, compares and uploads each
    configured directory in turn. A directory that cannot be scanned is
    reported and the remaining directories still run.

    Examples:
        >>> cfg = SyncConfiguration(directories=[Path("tmp")], path="storage",
        ...                         bucket="backups")
        >>> result = SyncEngine(cfg).run()
        >>> print(f"Uploaded {result.uploaded} file(s)")
    """

    def __init__(
        self,
        configuration: SyncConfiguration,
        connection_factory: Optional[ConnectionFactory] = None,
        output: Optional[OutputFormatter] = None,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ):
        """Initialize sync engine.

        Args:
            configuration: What to sync and where
            connection_factory: Creates the storage connection from credentials
                (defaults to S3Connection.from_credentials)
            output: Output formatter for displaying progress/status
            retry_delay: Initial delay between upload retries in seconds
        """
        self.configuration = configuration
        self.connection_factory = connection_factory or S3Connection.from_credentials
        self.output = output or OutputFormatter()
        self.retry_delay = retry_delay
        self.phase = SyncPhase.IDLE
        self.phase_history: list[SyncPhase] = [SyncPhase.IDLE]

    def _enter(self, phase: SyncPhase) -> None:
        self.phase = phase
        self.phase_history.append(phase)
        logger.debug("Sync phase: %s", phase.value)

    def _connect(self) -> StorageConnection:
        try:
            return self.connection_factory(self.configuration.credentials)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageConnectionError(f"Could not connect to storage: {e}") from e

    def run(self) -> SyncResult:
        """Run one sync pass over all configured directories.

        Returns:
            SyncResult with per-directory outcomes

        Raises:
            SyncConfigError: If the configuration is invalid
            StorageConnectionError: If the connection cannot be established
            BucketResolutionError: If the bucket can neither be found nor created
            StorageError: If the remote objects cannot be listed
        """
        self.configuration.validate()
        start_time = time.time()

        try:
            connection = self._connect()
        except StorageConnectionError:
            self._enter(SyncPhase.FAILED)
            raise
        self._enter(SyncPhase.CONNECTION_ESTABLISHED)

        try:
            with connection:
                result = self._run_with_connection(connection)
        except (BucketSyncError, KeyboardInterrupt):
            self._enter(SyncPhase.FAILED)
            raise

        self._enter(SyncPhase.DONE)
        logger.debug(f"Sync run finished in {time.time() - start_time:.2f}s")
        if not self.output.quiet:
            self._display_summary(result)
        return result

    def _run_with_connection(self, connection: StorageConnection) -> SyncResult:
        cfg = self.configuration

        inventory = RemoteInventory(connection)
        bucket = inventory.resolve(cfg.bucket, cfg.region)
        self._enter(SyncPhase.BUCKET_RESOLVED)
        if bucket.created and not self.output.quiet:
            self.output.info(f"Created bucket {bucket.name} in {bucket.region}")

        # Built once; uploads made during this run are not re-listed
        remote_fingerprints = inventory.list_objects(
            bucket, prefix=key_prefix(cfg.path)
        )

        result = SyncResult(
            bucket=bucket.name, bucket_created=bucket.created, dry_run=cfg.dry_run
        )
        operations = SyncOperations(connection)

        for directory in cfg.directories:
            result.directories.append(
                self._sync_directory(directory, bucket, remote_fingerprints, operations)
            )

        return result

    def _sync_directory(
        self,
        directory: Path,
        bucket: BucketHandle,
        remote_fingerprints: dict[str, str],
        operations: SyncOperations,
    ) -> DirectoryResult:
        """Scan, hash, compare and upload one root directory.

        Args:
            directory: Root directory
            bucket: Resolved bucket
            remote_fingerprints: Storage key to fingerprint for the whole run
            operations: Upload operations bound to the run's connection

        Returns:
            DirectoryResult for this directory
        """
        cfg = self.configuration
        name = root_name(directory)
        dir_result = DirectoryResult(directory=directory, root_name=name)

        if not self.output.quiet:
            self.output.info(f"Syncing: {directory} -> {bucket.name}/{cfg.path}")

        scanner = DirectoryScanner(
            ignore_patterns=cfg.ignore,
            exclude_dot_files=cfg.exclude_dot_files,
        )
        hasher = ContentHasher(max_workers=cfg.max_workers)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            disable=self.output.quiet,
        ) as progress:
            self._enter(SyncPhase.SCANNING)
            task = progress.add_task(f"Scanning {directory}...", total=None)
            try:
                local_files = scanner.scan_local(directory)
            except (ScanError, OSError) as e:
                logger.warning(f"Skipping directory {directory}: {e}")
                self.output.error(f"Error scanning {directory}: {e}")
                dir_result.error = str(e)
                return dir_result
            dir_result.files_scanned = len(local_files)

            self._enter(SyncPhase.HASHING)
            progress.update(task, description=f"Hashing {len(local_files)} file(s)...")
            fingerprints = hasher.hash_files(local_files)

        self._enter(SyncPhase.DIFFING)
        comparator = FileComparator(cfg.path)
        decisions = comparator.compare_files(
            name,
            fingerprints,
            remote_fingerprints,
            {f.relative_path: f for f in local_files},
        )
        final = {d.relative_path: d for d in decisions}
        for local_file in local_files:
            if local_file.relative_path not in fingerprints:
                # Gone or unreadable before it could be hashed
                final[local_file.relative_path] = comparator.vanished(
                    name, local_file
                )

        self._enter(SyncPhase.UPLOADING)
        uploads = [d for d in decisions if d.action == SyncAction.UPLOAD]
        if cfg.dry_run:
            for decision in uploads:
                self.output.print(f"  Would upload: {decision.key}")
        elif uploads:
            self._execute_uploads(uploads, bucket, operations, dir_result, final)

        dir_result.decisions = [final[path] for path in sorted(final)]
        return dir_result

    def _execute_uploads(
        self,
        uploads: list[SyncDecision],
        bucket: BucketHandle,
        operations: SyncOperations,
        dir_result: DirectoryResult,
        final: dict[str, SyncDecision],
    ) -> None:
        """Execute upload decisions in parallel using ThreadPoolExecutor.

        Args:
            uploads: Decisions with action UPLOAD
            bucket: Target bucket
            operations: Upload operations
            dir_result: Directory result (modified in place)
            final: Decisions by relative path (modified in place)
        """
        cfg = self.configuration
        logger.debug(
            f"Uploading {len(uploads)} file(s) with {cfg.max_workers} workers"
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            transient=True,
            disable=self.output.quiet,
        ) as progress:
            task = progress.add_task("Uploading...", total=len(uploads))

            with ThreadPoolExecutor(max_workers=cfg.max_workers) as executor:
                futures = {
                    executor.submit(
                        operations.upload_with_retry,
                        bucket,
                        decision,
                        cfg.upload_retries,
                        self.retry_delay,
                    ): decision
                    for decision in uploads
                }

                try:
                    for future in as_completed(futures):
                        decision = futures[future]
                        progress.update(task, advance=1)
                        try:
                            outcome = future.result()
                        except TransientUploadError as e:
                            logger.debug(f"Failed {decision.key}: {e}")
                            self.output.error(
                                f"Error syncing {decision.relative_path}: {e}"
                            )
                            dir_result.failures[decision.key] = str(e)
                            continue

                        final[outcome.relative_path] = outcome
                        if outcome.action == SyncAction.UPLOAD:
                            dir_result.uploaded.append(outcome.key)
                            if outcome.local_file is not None:
                                dir_result.uploaded_bytes += outcome.local_file.size
                except KeyboardInterrupt:
                    # Uploads already running finish as whole objects
                    for future in futures:
                        future.cancel()
                    if not self.output.quiet:
                        self.output.warning("\nSync cancelled by user")
                    raise

    def _display_summary(self, result: SyncResult) -> None:
        """Display sync summary."""
        self.output.print("")
        if result.dry_run:
            self.output.success("Dry run complete!")
            self.output.info(f"Would upload: {result.pending_uploads}")
        else:
            self.output.success("Sync complete!")

        self.output.info(f"Files scanned: {result.files_scanned}")
        if not result.dry_run:
            self.output.info(
                f"  Uploaded: {result.uploaded} "
                f"({self.output.format_size(result.uploaded_bytes)})"
            )
        for reason, count in sorted(result.skip_reasons.items()):
            self.output.info(f"  Skipped ({reason}): {count}")

        for failure in result.failures:
            self.output.warning(f"  Failed: {failure}")
