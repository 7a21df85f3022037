"""Tests for RemoteInventory."""

from unittest.mock import Mock

import pytest

from bucketsync.exceptions import (
    BucketResolutionError,
    StorageAuthenticationError,
    StorageConnectionError,
    StorageError,
)
from bucketsync.storage import BucketHandle, MemoryConnection, StorageConnection
from bucketsync.sync.inventory import RemoteInventory


class TestResolve:
    """Tests for bucket resolution."""

    def test_uses_existing_bucket(self):
        """Test that an existing bucket is used without creating one."""
        connection = MemoryConnection()
        connection.add_bucket("leaky", "somewhere")

        bucket = RemoteInventory(connection).resolve("leaky", "elsewhere")

        assert bucket.name == "leaky"
        assert bucket.created is False
        assert connection.calls_named("create_bucket") == []

    def test_creates_missing_bucket(self):
        """Test that a missing bucket is created in the configured region."""
        connection = MemoryConnection()

        bucket = RemoteInventory(connection).resolve("leaky", "elsewhere")

        assert connection.calls_named("create_bucket") == [
            ("create_bucket", "leaky", "elsewhere")
        ]
        assert bucket == BucketHandle("leaky", "elsewhere", created=True)

    def test_handle_is_cached(self):
        """Test that resolving twice issues one lookup and one create."""
        connection = MemoryConnection()
        inventory = RemoteInventory(connection)

        first = inventory.resolve("leaky", "elsewhere")
        second = inventory.resolve("leaky", "elsewhere")

        assert first is second
        assert inventory.bucket is first
        assert len(connection.calls_named("get_bucket")) == 1
        assert len(connection.calls_named("create_bucket")) == 1

    def test_connection_error_propagates(self):
        connection = Mock(spec=StorageConnection)
        connection.get_bucket.side_effect = StorageConnectionError("no route")

        with pytest.raises(StorageConnectionError, match="no route"):
            RemoteInventory(connection).resolve("leaky", "elsewhere")
        connection.create_bucket.assert_not_called()

    def test_authentication_error_propagates(self):
        connection = Mock(spec=StorageConnection)
        connection.get_bucket.side_effect = StorageAuthenticationError("denied")

        with pytest.raises(StorageAuthenticationError):
            RemoteInventory(connection).resolve("leaky", "elsewhere")

    def test_forbidden_bucket_propagates(self):
        """Test that a denied lookup is reported as is, without re-wrapping."""
        error = BucketResolutionError("leaky", "Access to bucket leaky denied")
        connection = Mock(spec=StorageConnection)
        connection.get_bucket.side_effect = error

        with pytest.raises(BucketResolutionError) as exc_info:
            RemoteInventory(connection).resolve("leaky", "elsewhere")
        assert exc_info.value is error
        connection.create_bucket.assert_not_called()

    def test_lookup_failure(self):
        connection = Mock(spec=StorageConnection)
        connection.get_bucket.side_effect = StorageError("boom")

        with pytest.raises(BucketResolutionError) as exc_info:
            RemoteInventory(connection).resolve("leaky", "elsewhere")
        assert exc_info.value.bucket == "leaky"

    def test_create_failure(self):
        """Test that a failed create after a failed lookup is fatal."""
        connection = Mock(spec=StorageConnection)
        connection.get_bucket.return_value = None
        connection.create_bucket.side_effect = StorageError("name taken")

        with pytest.raises(BucketResolutionError, match="name taken"):
            RemoteInventory(connection).resolve("leaky", "elsewhere")

    def test_create_connection_error_propagates(self):
        connection = Mock(spec=StorageConnection)
        connection.get_bucket.return_value = None
        connection.create_bucket.side_effect = StorageConnectionError("reset")

        with pytest.raises(StorageConnectionError):
            RemoteInventory(connection).resolve("leaky", "elsewhere")


class TestListObjects:
    """Tests for object listing."""

    def test_empty_bucket(self):
        connection = MemoryConnection()
        connection.add_bucket("leaky")

        assert RemoteInventory(connection).list_objects(BucketHandle("leaky")) == {}

    def test_lists_across_pages(self):
        """Test that all pages end up in the mapping."""
        connection = MemoryConnection(page_size=2)
        for i in range(5):
            connection.add_object("leaky", f"storage/tmp/f{i}", fingerprint=f"{i}")

        objects = RemoteInventory(connection).list_objects(BucketHandle("leaky"))

        assert len(objects) == 5
        assert objects["storage/tmp/f3"] == "3"

    def test_fingerprints_normalized(self):
        connection = MemoryConnection()
        connection.add_object("leaky", "storage/tmp/foo", fingerprint='"123ABCDEF"')

        objects = RemoteInventory(connection).list_objects(BucketHandle("leaky"))

        assert objects == {"storage/tmp/foo": "123abcdef"}

    def test_prefix_filter(self):
        connection = MemoryConnection()
        connection.add_object("leaky", "storage/tmp/foo")
        connection.add_object("leaky", "other/tmp/foo")

        objects = RemoteInventory(connection).list_objects(
            BucketHandle("leaky"), prefix="storage/"
        )

        assert list(objects) == ["storage/tmp/foo"]

    def test_listing_error_propagates(self):
        connection = MemoryConnection()

        with pytest.raises(StorageError):
            RemoteInventory(connection).list_objects(BucketHandle("missing"))
