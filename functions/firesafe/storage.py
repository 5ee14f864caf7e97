"""
Storage abstraction for S3-compatible object storage and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import unquote, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError


class StorageError(Exception):
    """Raised when the storage backend cannot serve a request."""


class ObjectNotFoundError(StorageError):
    pass


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def get_bytes(self, path: str) -> bytes:
        ...

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        ...

    def public_url(self, path: str) -> str:
        ...

    def ensure_bucket(self) -> bool:
        ...


def resolve_storage_path(url: str, folder: str) -> Optional[str]:
    """
    Maps a public object URL back to its storage key.

    Returns None when the URL cannot be parsed or does not contain the
    `folder/` marker, so callers can choose another download path.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    parts = parsed.path.split(f"{folder}/", 1)
    if len(parts) < 2 or not parts[1]:
        return None
    return f"{folder}/{unquote(parts[1])}"


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise ObjectNotFoundError(path)
        return stored[0]

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        self.stored_objects[path] = (bytes(data), content_type)

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def ensure_bucket(self) -> bool:
        return False

    def reset(self) -> None:
        self.stored_objects.clear()


@dataclass
class S3StorageClient:
    """
    Storage client for any S3-compatible endpoint.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str = ""

    def __post_init__(self):
        config = Config(signature_version="s3v4")
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def get_bytes(self, path: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=path)
            return response["Body"].read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise ObjectNotFoundError(path) from e
            raise StorageError(str(e)) from e
        except BotoCoreError as e:
            raise StorageError(str(e)) from e

    def upload_bytes(
        self, path: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(str(e)) from e

    def public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{path}"
        # Plain AWS, virtual-hosted style.
        region = self.region or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{path}"

    def ensure_bucket(self) -> bool:
        """Creates the bucket when missing. Returns True if it was created."""
        try:
            self._client.head_bucket(Bucket=self.bucket)
            return False
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") not in ("404", "NoSuchBucket"):
                raise StorageError(str(e)) from e
        try:
            params = {"Bucket": self.bucket}
            if self.region and self.region != "us-east-1":
                params["CreateBucketConfiguration"] = {
                    "LocationConstraint": self.region
                }
            self._client.create_bucket(**params)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(str(e)) from e
        return True
