"""
Storage abstraction for uploaded event images.

Local disk is the default; Tencent COS (S3-compatible) is used when a bucket
is configured, and an in-memory client backs the tests.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from typing import Protocol

import boto3
from botocore.config import Config


def upload_filename(original_filename: str | None, now: float | None = None) -> str:
    """Name an upload by its millisecond timestamp plus the original extension."""
    timestamp = int((time.time() if now is None else now) * 1000)
    _, ext = os.path.splitext(original_filename or "")
    return f"{timestamp}{ext}"


class StorageClient(Protocol):
    """Defines the operations the API needs from file storage."""

    def save_upload(self, filename: str, data: bytes) -> str:
        """Persist an upload and return the path to store on the event."""
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    prefix: str = "uploads"
    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def save_upload(self, filename: str, data: bytes) -> str:
        path = f"{self.prefix}/{upload_filename(filename)}"
        self.stored_objects[path] = data
        return path

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored


@dataclass
class LocalStorageClient:
    """Writes uploads into a directory on local disk."""

    upload_dir: str = "uploads"

    def save_upload(self, filename: str, data: bytes) -> str:
        os.makedirs(self.upload_dir, exist_ok=True)
        path = os.path.join(self.upload_dir, upload_filename(filename))
        with open(path, "wb") as f:
            f.write(data)
        return path


@dataclass
class CosStorageClient:
    """
    S3-compatible storage client for Tencent COS.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    prefix: str = "uploads"

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def save_upload(self, filename: str, data: bytes) -> str:
        key = f"{self.prefix}/{upload_filename(filename)}"
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType="application/octet-stream",
        )
        return key
