import unittest
from unittest.mock import patch

from botocore.exceptions import ClientError

from firesafe.storage import (
    InMemoryStorageClient,
    ObjectNotFoundError,
    S3StorageClient,
    StorageError,
    resolve_storage_path,
)


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetObject")


class ResolveStoragePathTests(unittest.TestCase):
    def test_extracts_path_after_folder(self):
        url = "https://cdn.example.com/storage/v1/object/public/house-plans/user%201/plan.png"
        self.assertEqual(
            resolve_storage_path(url, "house-plans"), "house-plans/user 1/plan.png"
        )

    def test_missing_folder(self):
        self.assertIsNone(resolve_storage_path("https://example.com/a.png", "house-plans"))
        self.assertIsNone(resolve_storage_path("https://example.com/house-plans/", "house-plans"))


class InMemoryStorageTests(unittest.TestCase):
    def test_upload_and_get(self):
        storage = InMemoryStorageClient()
        storage.upload_bytes("house-photos/a.png", b"data", "image/png")
        self.assertEqual(storage.get_bytes("house-photos/a.png"), b"data")
        self.assertTrue(storage.public_url("house-photos/a.png").endswith("house-photos/a.png"))
        with self.assertRaises(ObjectNotFoundError):
            storage.get_bytes("house-photos/missing.png")


@patch("firesafe.storage.boto3.client")
class S3StorageTests(unittest.TestCase):
    def make_client(self, **overrides):
        values = dict(
            bucket="firesafe",
            region="eu-west-3",
            endpoint="https://s3.example.com",
            access_key_id="key",
            secret_access_key="secret",
        )
        values.update(overrides)
        return S3StorageClient(**values)

    def test_get_bytes_maps_errors(self, mock_client):
        s3 = mock_client.return_value
        storage = self.make_client()

        s3.get_object.side_effect = client_error("NoSuchKey")
        with self.assertRaises(ObjectNotFoundError):
            storage.get_bytes("house-plans/a.png")

        s3.get_object.side_effect = client_error("AccessDenied")
        with self.assertRaises(StorageError):
            storage.get_bytes("house-plans/a.png")

    def test_public_url(self, mock_client):
        self.assertEqual(
            self.make_client().public_url("house-plans/a.png"),
            "https://s3.example.com/firesafe/house-plans/a.png",
        )
        self.assertEqual(
            self.make_client(public_base_url="https://cdn.example.com/").public_url("x.png"),
            "https://cdn.example.com/x.png",
        )

    def test_public_url_without_endpoint_uses_aws_host(self, mock_client):
        self.assertEqual(
            self.make_client(endpoint="").public_url("house-plans/a.png"),
            "https://firesafe.s3.eu-west-3.amazonaws.com/house-plans/a.png",
        )
        self.assertEqual(
            self.make_client(endpoint="", region="").public_url("a.png"),
            "https://firesafe.s3.us-east-1.amazonaws.com/a.png",
        )

    def test_ensure_bucket_creates_missing_bucket(self, mock_client):
        s3 = mock_client.return_value
        s3.head_bucket.side_effect = client_error("404")

        self.assertTrue(self.make_client().ensure_bucket())
        s3.create_bucket.assert_called_once_with(
            Bucket="firesafe",
            CreateBucketConfiguration={"LocationConstraint": "eu-west-3"},
        )

    def test_ensure_bucket_existing(self, mock_client):
        self.assertFalse(self.make_client().ensure_bucket())
        mock_client.return_value.create_bucket.assert_not_called()


if __name__ == "__main__":
    unittest.main()
