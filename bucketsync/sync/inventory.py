"""Remote bucket resolution and object listing."""

import logging
import time
from typing import Optional

from ..exceptions import BucketResolutionError, StorageConnectionError, StorageError
from ..storage import BucketHandle, StorageConnection

logger = logging.getLogger(__name__)


class RemoteInventory:
    """Resolves the target bucket and lists the objects stored in it.

    The bucket handle is cached after the first resolution, so a run issues
    at most one lookup and one create call.
    """

    def __init__(self, connection: StorageConnection):
        """Initialize remote inventory.

        Args:
            connection: Storage connection for the current run
        """
        self.connection = connection
        self._bucket: Optional[BucketHandle] = None

    @property
    def bucket(self) -> Optional[BucketHandle]:
        """The resolved bucket, or None before resolve() is called."""
        return self._bucket

    def resolve(self, bucket_name: str, region: Optional[str]) -> BucketHandle:
        """Look up the bucket by name, creating it when absent.

        Args:
            bucket_name: Name of the bucket
            region: Region in which to create the bucket if needed

        Returns:
            BucketHandle for the existing or newly created bucket

        Raises:
            StorageConnectionError: If the connection or credentials fail
            BucketResolutionError: If the bucket can neither be found nor created
        """
        if self._bucket is not None and self._bucket.name == bucket_name:
            return self._bucket

        try:
            bucket = self.connection.get_bucket(bucket_name)
        except (StorageConnectionError, BucketResolutionError):
            raise
        except StorageError as e:
            raise BucketResolutionError(
                bucket_name, f"Could not look up bucket {bucket_name}: {e}"
            ) from e

        if bucket is None:
            logger.info(f"Bucket {bucket_name} not found, creating it in {region}")
            try:
                bucket = self.connection.create_bucket(
                    key=bucket_name, location=region
                )
            except StorageConnectionError:
                raise
            except StorageError as e:
                raise BucketResolutionError(
                    bucket_name, f"Could not create bucket {bucket_name}: {e}"
                ) from e

        self._bucket = bucket
        return bucket

    def list_objects(self, bucket: BucketHandle, prefix: str = "") -> dict[str, str]:
        """List the objects in a bucket.

        Args:
            bucket: Resolved bucket
            prefix: Only list keys starting with this prefix

        Returns:
            Mapping of storage key to normalized fingerprint

        Raises:
            StorageError: If the listing fails
        """
        start = time.time()
        objects = {
            obj.key: obj.fingerprint
            for obj in self.connection.iter_objects(bucket, prefix=prefix)
        }
        logger.debug(
            "Listed %d remote object(s) under '%s' in %.2fs",
            len(objects),
            prefix,
            time.time() - start,
        )
        return objects
