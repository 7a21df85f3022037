"""Tests for storage connections."""

import io
from datetime import datetime
from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError

from bucketsync.exceptions import (
    BucketResolutionError,
    StorageAuthenticationError,
    StorageConnectionError,
    StorageError,
)
from bucketsync.storage import (
    BucketHandle,
    Credentials,
    MemoryConnection,
    S3Connection,
)


def client_error(code: str, operation: str = "HeadBucket") -> ClientError:
    """Build a botocore ClientError with the given error code."""
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def mock_client():
    """Create a mock boto3 S3 client."""
    return Mock()


@pytest.fixture
def connection(mock_client):
    """Create an S3 connection around the mock client."""
    return S3Connection(mock_client, region="eu-west-1")


class TestS3ConnectionFromCredentials:
    """Tests for creating S3 connections."""

    @patch("bucketsync.storage.boto3")
    def test_creates_client_with_credentials(self, mock_boto3):
        """Test the client is created with the provided credentials."""
        credentials = Credentials(
            access_key_id="my-access",
            secret_access_key="my-secret",
            region="somewhere",
        )

        connection = S3Connection.from_credentials(credentials)

        mock_boto3.client.assert_called_once_with(
            "s3",
            aws_access_key_id="my-access",
            aws_secret_access_key="my-secret",
            region_name="somewhere",
            endpoint_url=None,
        )
        assert connection.client is mock_boto3.client.return_value
        assert connection.region == "somewhere"

    @patch("bucketsync.storage.boto3")
    def test_custom_endpoint(self, mock_boto3):
        credentials = Credentials("a", "b", "auto", endpoint_url="https://example.com")

        S3Connection.from_credentials(credentials)

        assert mock_boto3.client.call_args.kwargs["endpoint_url"] == (
            "https://example.com"
        )

    def test_unsupported_provider(self):
        credentials = Credentials("a", "b", provider="Rackspace")

        with pytest.raises(StorageConnectionError, match="Unsupported"):
            S3Connection.from_credentials(credentials)

    @patch("bucketsync.storage.boto3")
    def test_provider_is_case_insensitive(self, mock_boto3):
        S3Connection.from_credentials(Credentials("a", "b", provider="aws"))
        mock_boto3.client.assert_called_once()

    @patch("bucketsync.storage.boto3")
    def test_client_creation_failure(self, mock_boto3):
        mock_boto3.client.side_effect = ValueError("Invalid endpoint")

        with pytest.raises(StorageConnectionError, match="Invalid endpoint"):
            S3Connection.from_credentials(Credentials("a", "b"))


class TestS3ConnectionGetBucket:
    """Tests for bucket lookup."""

    def test_existing_bucket(self, connection, mock_client):
        mock_client.head_bucket.return_value = {"BucketRegion": "eu-west-1"}

        bucket = connection.get_bucket("leaky")

        mock_client.head_bucket.assert_called_once_with(Bucket="leaky")
        assert bucket == BucketHandle(name="leaky", region="eu-west-1")
        assert bucket.created is False

    def test_region_from_headers(self, connection, mock_client):
        mock_client.head_bucket.return_value = {
            "ResponseMetadata": {"HTTPHeaders": {"x-amz-bucket-region": "us-west-2"}}
        }

        assert connection.get_bucket("leaky").region == "us-west-2"

    def test_missing_bucket_returns_none(self, connection, mock_client):
        mock_client.head_bucket.side_effect = client_error("404")

        assert connection.get_bucket("leaky") is None

    def test_no_such_bucket_code_returns_none(self, connection, mock_client):
        mock_client.head_bucket.side_effect = client_error("NoSuchBucket")

        assert connection.get_bucket("leaky") is None

    def test_forbidden_bucket_is_resolution_error(self, connection, mock_client):
        """Test that a 403 on lookup names the bucket, not the credentials."""
        mock_client.head_bucket.side_effect = client_error("403")

        with pytest.raises(BucketResolutionError, match="another account") as exc:
            connection.get_bucket("leaky")
        assert exc.value.bucket == "leaky"

    def test_invalid_key_is_authentication_error(self, connection, mock_client):
        mock_client.head_bucket.side_effect = client_error("InvalidAccessKeyId")

        with pytest.raises(StorageAuthenticationError):
            connection.get_bucket("leaky")

    def test_missing_credentials_is_authentication_error(
        self, connection, mock_client
    ):
        mock_client.head_bucket.side_effect = NoCredentialsError()

        with pytest.raises(StorageAuthenticationError):
            connection.get_bucket("leaky")

    def test_endpoint_failure_is_connection_error(self, connection, mock_client):
        mock_client.head_bucket.side_effect = EndpointConnectionError(
            endpoint_url="https://s3.example.com"
        )

        with pytest.raises(StorageConnectionError):
            connection.get_bucket("leaky")

    def test_other_client_error(self, connection, mock_client):
        mock_client.head_bucket.side_effect = client_error("500")

        with pytest.raises(StorageError) as exc_info:
            connection.get_bucket("leaky")
        assert not isinstance(exc_info.value, StorageConnectionError)


class TestS3ConnectionCreateBucket:
    """Tests for bucket creation."""

    def test_create_with_location(self, connection, mock_client):
        bucket = connection.create_bucket(key="leaky", location="eu-central-1")

        mock_client.create_bucket.assert_called_once_with(
            Bucket="leaky",
            CreateBucketConfiguration={"LocationConstraint": "eu-central-1"},
        )
        assert bucket == BucketHandle(
            name="leaky", region="eu-central-1", created=True
        )

    def test_create_in_us_east_1_has_no_constraint(self, connection, mock_client):
        connection.create_bucket(key="leaky", location="us-east-1")

        mock_client.create_bucket.assert_called_once_with(Bucket="leaky")

    def test_already_owned_counts_as_existing(self, connection, mock_client):
        mock_client.create_bucket.side_effect = client_error(
            "BucketAlreadyOwnedByYou", "CreateBucket"
        )

        bucket = connection.create_bucket(key="leaky", location="eu-west-1")

        assert bucket.name == "leaky"
        assert bucket.created is False

    def test_create_failure(self, connection, mock_client):
        mock_client.create_bucket.side_effect = client_error(
            "BucketAlreadyExists", "CreateBucket"
        )

        with pytest.raises(StorageError, match="Creating bucket leaky"):
            connection.create_bucket(key="leaky", location="eu-west-1")


class TestS3ConnectionListing:
    """Tests for object listing."""

    def test_lists_all_pages(self, connection, mock_client):
        """Test that pagination is handled transparently."""
        paginator = Mock()
        paginator.paginate.return_value = [
            {
                "Contents": [
                    {
                        "Key": "storage/tmp/foo",
                        "ETag": '"123ABCDEF"',
                        "Size": 3,
                        "LastModified": datetime(2024, 1, 1),
                    }
                ]
            },
            {"Contents": [{"Key": "storage/tmp/bar", "ETag": '"abc"', "Size": 1}]},
            {},
        ]
        mock_client.get_paginator.return_value = paginator

        objects = list(connection.iter_objects(BucketHandle("leaky"), "storage/"))

        mock_client.get_paginator.assert_called_once_with("list_objects_v2")
        paginator.paginate.assert_called_once_with(Bucket="leaky", Prefix="storage/")
        assert [(o.key, o.fingerprint, o.size) for o in objects] == [
            ("storage/tmp/foo", "123abcdef", 3),
            ("storage/tmp/bar", "abc", 1),
        ]

    def test_no_prefix(self, connection, mock_client):
        paginator = Mock()
        paginator.paginate.return_value = [{}]
        mock_client.get_paginator.return_value = paginator

        assert list(connection.iter_objects(BucketHandle("leaky"))) == []
        paginator.paginate.assert_called_once_with(Bucket="leaky")

    def test_listing_error(self, connection, mock_client):
        paginator = Mock()
        paginator.paginate.side_effect = client_error("500", "ListObjectsV2")
        mock_client.get_paginator.return_value = paginator

        with pytest.raises(StorageError, match="Listing bucket leaky"):
            list(connection.iter_objects(BucketHandle("leaky")))

    def test_listing_access_denied_is_authentication_error(
        self, connection, mock_client
    ):
        paginator = Mock()
        paginator.paginate.side_effect = client_error("AccessDenied", "ListObjectsV2")
        mock_client.get_paginator.return_value = paginator

        with pytest.raises(StorageAuthenticationError):
            list(connection.iter_objects(BucketHandle("leaky")))


class TestS3ConnectionPutObject:
    """Tests for object writes."""

    def test_put_object(self, connection, mock_client):
        body = io.BytesIO(b"content")

        connection.put_object(BucketHandle("leaky"), "storage/tmp/foo", body)

        mock_client.put_object.assert_called_once_with(
            Bucket="leaky", Key="storage/tmp/foo", Body=body
        )

    def test_put_object_failure(self, connection, mock_client):
        mock_client.put_object.side_effect = client_error("500", "PutObject")

        with pytest.raises(StorageError, match="Uploading storage/tmp/foo"):
            connection.put_object(BucketHandle("leaky"), "storage/tmp/foo", b"x")

    def test_close_closes_client(self, connection, mock_client):
        with connection:
            pass

        mock_client.close.assert_called_once()


class TestMemoryConnection:
    """Tests for the in-memory connection."""

    def test_bucket_lookup_and_create(self):
        connection = MemoryConnection()

        assert connection.get_bucket("leaky") is None
        bucket = connection.create_bucket(key="leaky", location="elsewhere")

        assert bucket == BucketHandle("leaky", "elsewhere", created=True)
        assert connection.get_bucket("leaky") == BucketHandle("leaky", "elsewhere")
        assert connection.calls == [
            ("get_bucket", "leaky"),
            ("create_bucket", "leaky", "elsewhere"),
            ("get_bucket", "leaky"),
        ]

    def test_create_existing_bucket_fails(self):
        connection = MemoryConnection()
        connection.add_bucket("leaky")

        with pytest.raises(StorageError):
            connection.create_bucket(key="leaky", location=None)

    def test_put_and_list(self):
        connection = MemoryConnection(page_size=1)
        connection.add_bucket("leaky")
        bucket = BucketHandle("leaky")

        connection.put_object(bucket, "a/one", io.BytesIO(b"1"))
        connection.put_object(bucket, "b/two", b"2")
        objects = list(connection.iter_objects(bucket, prefix="a/"))

        assert [o.key for o in objects] == ["a/one"]
        assert objects[0].fingerprint == "c4ca4238a0b923820dcc509a6f75849b"
        assert connection.get_body("leaky", "b/two") == b"2"

    def test_seeded_fingerprint_is_normalized(self):
        connection = MemoryConnection()
        connection.add_object("leaky", "k", fingerprint='"ABC"')

        objects = list(connection.iter_objects(BucketHandle("leaky")))

        assert objects[0].fingerprint == "abc"

    def test_simulated_failure(self):
        connection = MemoryConnection()
        connection.add_bucket("leaky")
        connection.fail_keys.add("k")

        with pytest.raises(StorageError):
            connection.put_object(BucketHandle("leaky"), "k", b"x")

    def test_closed_connection_rejects_calls(self):
        connection = MemoryConnection()
        with connection:
            pass

        with pytest.raises(StorageConnectionError):
            connection.get_bucket("leaky")
