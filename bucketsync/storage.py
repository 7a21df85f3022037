"""Storage connections for S3-compatible object stores.

This module defines the interface the sync engine uses to talk to a bucket,
a boto3-backed implementation for Amazon S3 and S3-compatible services, and
an in-memory implementation with the same contract.
"""

import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, BinaryIO, Iterator, Optional, Union

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    PartialCredentialsError,
)

from .exceptions import (
    BucketResolutionError,
    StorageAuthenticationError,
    StorageConnectionError,
    StorageError,
)
from .utils import DEFAULT_REGION, normalize_fingerprint

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("AWS",)

# Error codes returned by S3 when the bucket does not exist
_NOT_FOUND_CODES = {"404", "NoSuchBucket", "NotFound"}

# head_bucket answers 403 both for foreign buckets and for rejected keys
_FORBIDDEN_CODES = {"403", "AccessDenied"}

# Error codes returned by S3 when the credentials are rejected
_AUTH_ERROR_CODES = {
    "401",
    "403",
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "InvalidToken",
}


@dataclass
class Credentials:
    """Credentials and location used to open a storage connection."""

    access_key_id: Optional[str]
    secret_access_key: Optional[str]
    region: str = DEFAULT_REGION
    provider: str = "AWS"
    endpoint_url: Optional[str] = None


@dataclass(frozen=True)
class BucketHandle:
    """A resolved or newly created bucket."""

    name: str
    """Bucket name"""

    region: Optional[str] = None
    """Bucket region, if known"""

    created: bool = False
    """True if the bucket was created during this run"""


@dataclass(frozen=True)
class RemoteObject:
    """An object stored in a bucket."""

    key: str
    """Full storage key"""

    fingerprint: str
    """Normalized content digest reported by the backend"""

    size: int = 0
    """Object size in bytes"""


class StorageConnection(ABC):
    """Interface to a bucket-based object store.

    A connection is opened once per sync run and closed at its end.
    """

    @abstractmethod
    def get_bucket(self, name: str) -> Optional[BucketHandle]:
        """Look up a bucket by name.

        Returns:
            BucketHandle if the bucket exists, None otherwise
        """

    @abstractmethod
    def create_bucket(self, key: str, location: Optional[str]) -> BucketHandle:
        """Create a bucket named ``key`` in region ``location``."""

    @abstractmethod
    def iter_objects(
        self, bucket: BucketHandle, prefix: str = ""
    ) -> Iterator[RemoteObject]:
        """Yield every object in the bucket whose key starts with ``prefix``.

        Provider pagination is handled by the implementation.
        """

    @abstractmethod
    def put_object(
        self, bucket: BucketHandle, key: str, body: Union[bytes, BinaryIO]
    ) -> None:
        """Write ``body`` as the object stored at ``key``."""

    def close(self) -> None:
        """Release resources held by the connection."""

    def __enter__(self) -> "StorageConnection":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _translate_error(error: Exception, context: str) -> StorageError:
    """Map a boto3/botocore exception to a bucketsync storage error."""
    if isinstance(error, ClientError):
        code = _error_code(error)
        if code in _AUTH_ERROR_CODES:
            return StorageAuthenticationError(f"{context}: access denied ({code})")
        return StorageError(f"{context}: {error}")
    if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
        return StorageAuthenticationError(f"{context}: {error}")
    return StorageConnectionError(f"{context}: {error}")


class S3Connection(StorageConnection):
    """Storage connection backed by a boto3 S3 client.

    Examples:
        >>> credentials = Credentials("my-access", "my-secret", "eu-west-1")
        >>> with S3Connection.from_credentials(credentials) as connection:
        ...     bucket = connection.get_bucket("backups")
    """

    def __init__(self, client: Any, region: str = DEFAULT_REGION):
        """Initialize the connection.

        Args:
            client: boto3 S3 client
            region: Region the client was created for
        """
        self.client = client
        self.region = region

    @classmethod
    def from_credentials(cls, credentials: Credentials) -> "S3Connection":
        """Create a connection from configured credentials.

        Args:
            credentials: Provider, keys and region to connect with

        Returns:
            S3Connection instance

        Raises:
            StorageConnectionError: If the provider is unsupported or the
                client cannot be created
        """
        provider = (credentials.provider or "").upper()
        if provider not in SUPPORTED_PROVIDERS:
            raise StorageConnectionError(
                f"Unsupported storage provider: {credentials.provider}"
            )

        try:
            client = boto3.client(
                "s3",
                aws_access_key_id=credentials.access_key_id,
                aws_secret_access_key=credentials.secret_access_key,
                region_name=credentials.region,
                endpoint_url=credentials.endpoint_url,
            )
        except (BotoCoreError, ValueError) as e:
            raise StorageConnectionError(f"Could not create S3 client: {e}") from e

        logger.debug(
            "Created S3 client (region=%s, endpoint=%s)",
            credentials.region,
            credentials.endpoint_url or "default",
        )
        return cls(client, region=credentials.region)

    def get_bucket(self, name: str) -> Optional[BucketHandle]:
        try:
            response = self.client.head_bucket(Bucket=name)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                logger.debug("Bucket %s does not exist", name)
                return None
            if _error_code(e) in _FORBIDDEN_CODES:
                raise BucketResolutionError(
                    name,
                    f"Access to bucket {name} denied: it may belong to another "
                    "account, or the credentials lack permission to use it",
                ) from e
            raise _translate_error(e, f"Looking up bucket {name}") from e
        except BotoCoreError as e:
            raise _translate_error(e, f"Looking up bucket {name}") from e

        region = response.get("BucketRegion")
        if region is None:
            headers = response.get("ResponseMetadata", {}).get("HTTPHeaders", {})
            region = headers.get("x-amz-bucket-region")
        return BucketHandle(name=name, region=region)

    def create_bucket(self, key: str, location: Optional[str]) -> BucketHandle:
        kwargs: dict[str, Any] = {"Bucket": key}
        # us-east-1 rejects an explicit LocationConstraint
        if location and location != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": location}

        try:
            self.client.create_bucket(**kwargs)
        except ClientError as e:
            if _error_code(e) == "BucketAlreadyOwnedByYou":
                logger.debug("Bucket %s already owned by caller", key)
                return BucketHandle(name=key, region=location)
            raise _translate_error(e, f"Creating bucket {key}") from e
        except BotoCoreError as e:
            raise _translate_error(e, f"Creating bucket {key}") from e

        return BucketHandle(name=key, region=location, created=True)

    def iter_objects(
        self, bucket: BucketHandle, prefix: str = ""
    ) -> Iterator[RemoteObject]:
        kwargs = {"Bucket": bucket.name}
        if prefix:
            kwargs["Prefix"] = prefix

        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**kwargs):
                for obj in page.get("Contents", []):
                    yield RemoteObject(
                        key=obj["Key"],
                        fingerprint=normalize_fingerprint(obj.get("ETag")),
                        size=obj.get("Size", 0),
                    )
        except (ClientError, BotoCoreError) as e:
            raise _translate_error(e, f"Listing bucket {bucket.name}") from e

    def put_object(
        self, bucket: BucketHandle, key: str, body: Union[bytes, BinaryIO]
    ) -> None:
        try:
            self.client.put_object(Bucket=bucket.name, Key=key, Body=body)
        except (ClientError, BotoCoreError) as e:
            raise _translate_error(e, f"Uploading {key}") from e

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if callable(close):
            close()


class MemoryConnection(StorageConnection):
    """In-memory storage connection with the same contract as S3Connection.

    Every call is recorded in ``calls`` as a tuple so callers can inspect
    which remote operations were issued. Objects are stored with the MD5 of
    their body as fingerprint unless one is given explicitly.
    """

    def __init__(self, page_size: int = 1000):
        self.page_size = page_size
        self.buckets: dict[str, dict[str, tuple[bytes, str]]] = {}
        self.regions: dict[str, Optional[str]] = {}
        self.calls: list[tuple] = []
        self.fail_keys: set[str] = set()
        self.closed = False
        self._lock = threading.Lock()

    def add_bucket(self, name: str, region: Optional[str] = None) -> None:
        """Create a bucket without recording a call."""
        self.buckets.setdefault(name, {})
        self.regions[name] = region

    def add_object(
        self,
        bucket: str,
        key: str,
        body: bytes = b"",
        fingerprint: Optional[str] = None,
    ) -> None:
        """Store an object without recording a call."""
        if fingerprint is None:
            fingerprint = hashlib.md5(body).hexdigest()
        self.add_bucket(bucket, self.regions.get(bucket))
        self.buckets[bucket][key] = (body, fingerprint)

    def get_body(self, bucket: str, key: str) -> bytes:
        return self.buckets[bucket][key][0]

    def calls_named(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    def _record(self, *call: Any) -> None:
        if self.closed:
            raise StorageConnectionError("Connection is closed")
        with self._lock:
            self.calls.append(call)

    def get_bucket(self, name: str) -> Optional[BucketHandle]:
        self._record("get_bucket", name)
        if name not in self.buckets:
            return None
        return BucketHandle(name=name, region=self.regions.get(name))

    def create_bucket(self, key: str, location: Optional[str]) -> BucketHandle:
        self._record("create_bucket", key, location)
        if key in self.buckets:
            raise StorageError(f"Bucket already exists: {key}")
        self.add_bucket(key, location)
        return BucketHandle(name=key, region=location, created=True)

    def iter_objects(
        self, bucket: BucketHandle, prefix: str = ""
    ) -> Iterator[RemoteObject]:
        self._record("list_objects", bucket.name, prefix)
        if bucket.name not in self.buckets:
            raise StorageError(f"No such bucket: {bucket.name}")

        keys = sorted(k for k in self.buckets[bucket.name] if k.startswith(prefix))
        for start in range(0, len(keys), self.page_size):
            for key in keys[start : start + self.page_size]:
                body, fingerprint = self.buckets[bucket.name][key]
                yield RemoteObject(
                    key=key,
                    fingerprint=normalize_fingerprint(fingerprint),
                    size=len(body),
                )

    def put_object(
        self, bucket: BucketHandle, key: str, body: Union[bytes, BinaryIO]
    ) -> None:
        self._record("put_object", bucket.name, key)
        if key in self.fail_keys:
            raise StorageError(f"Simulated failure writing {key}")

        data = body if isinstance(body, bytes) else body.read()
        with self._lock:
            self.buckets[bucket.name][key] = (data, hashlib.md5(data).hexdigest())

    def close(self) -> None:
        self.closed = True
