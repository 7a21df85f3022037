"""Upload operations for sync decisions."""

import logging
import time

from ..exceptions import StorageError, TransientUploadError
from ..storage import BucketHandle, StorageConnection
from ..utils import DEFAULT_RETRY_DELAY
from .comparator import SkipReason, SyncAction, SyncDecision

logger = logging.getLogger(__name__)


class SyncOperations:
    """Executes upload decisions against a storage connection."""

    def __init__(self, connection: StorageConnection):
        """Initialize sync operations.

        Args:
            connection: Storage connection for the current run
        """
        self.connection = connection

    def upload_file(self, bucket: BucketHandle, decision: SyncDecision) -> SyncDecision:
        """Upload the local file of an UPLOAD decision.

        The local file is checked again right before the upload. If it has
        vanished, no remote call is made and a vanished-locally skip is
        returned instead.

        Args:
            bucket: Target bucket
            decision: Decision with action UPLOAD

        Returns:
            The decision that was carried out

        Raises:
            ValueError: If the decision is not an upload of a known local file
            TransientUploadError: If the object write fails
        """
        if decision.action != SyncAction.UPLOAD or decision.local_file is None:
            raise ValueError(f"Not an upload decision: {decision.relative_path}")

        local_file = decision.local_file
        if not local_file.exists:
            logger.debug(f"Skipping {decision.relative_path}: no longer exists")
            return decision.skipped(
                SkipReason.VANISHED_LOCALLY, "Local file no longer exists"
            )

        start = time.time()
        try:
            with open(local_file.path, "rb") as body:
                self.connection.put_object(bucket, decision.key, body)
        except FileNotFoundError:
            # Removed between the existence check and the open
            return decision.skipped(
                SkipReason.VANISHED_LOCALLY, "Local file no longer exists"
            )
        except (StorageError, OSError) as e:
            raise TransientUploadError(
                decision.key, f"Upload of {decision.key} failed: {e}"
            ) from e

        logger.debug(
            "Upload of %s to %s took %.2fs",
            decision.relative_path,
            decision.key,
            time.time() - start,
        )
        return decision

    def upload_with_retry(
        self,
        bucket: BucketHandle,
        decision: SyncDecision,
        retries: int = 0,
        retry_delay: float = DEFAULT_RETRY_DELAY,
    ) -> SyncDecision:
        """Upload a file, retrying transient failures with exponential backoff.

        Args:
            bucket: Target bucket
            decision: Decision with action UPLOAD
            retries: Number of retries after the first attempt
            retry_delay: Initial delay between attempts in seconds

        Returns:
            The decision that was carried out

        Raises:
            TransientUploadError: If the last attempt fails
        """
        for attempt in range(retries + 1):
            try:
                return self.upload_file(bucket, decision)
            except TransientUploadError as e:
                if attempt >= retries:
                    raise
                delay = retry_delay * (2**attempt)
                logger.debug(
                    f"Upload failed (attempt {attempt + 1}/{retries + 1}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                time.sleep(delay)

        raise TransientUploadError(decision.key)  # pragma: no cover
