"""
Blob storage client.

WHAT: Uploads ticket images to S3-compatible object storage and deletes
them again.

WHY: Ticket attachments are stored as public URLs; the bytes live in a
bucket served through S3_PUBLIC_URL (or the bucket endpoint). The client
is constructed once at startup and passed to whoever needs it.

HOW: boto3 is synchronous, so every call runs in Starlette's threadpool
to keep the event loop free while bytes are in flight.
"""

import logging
import mimetypes
import os
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from helpdesk.core.config import Settings, settings as default_settings
from helpdesk.core.exceptions import StorageError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredBlob:
    """Result of an upload: the public URL and the storage key behind it."""

    secure_url: str
    public_id: str


class BlobStorage(ABC):
    """
    Interface the attachment manager depends on.

    Implementations: S3BlobStorage here, an in-memory double in tests.
    """

    public_base_url: str = ""
    bucket: str = ""

    @abstractmethod
    async def upload(
        self,
        data: bytes,
        folder: str,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> StoredBlob:
        """Store bytes under a fresh key in the folder."""

    @abstractmethod
    async def destroy(self, public_id: str) -> None:
        """Remove the object stored under public_id."""

    def close(self) -> None:
        """Release client resources. Default: nothing to release."""


def _object_key(folder: str, filename: Optional[str], content_type: Optional[str]) -> str:
    """
    Generate a unique object key inside a folder.

    The original filename only contributes its extension; the stem is a
    UUID so keys never collide and never carry user-controlled paths.
    """
    extension = ""
    if filename:
        extension = os.path.splitext(filename)[1].lower()
    if not extension and content_type:
        extension = mimetypes.guess_extension(content_type) or ""
    extension = re.sub(r"[^a-z0-9.]", "", extension)
    return f"{folder.strip('/')}/{uuid.uuid4().hex}{extension}"


class S3BlobStorage(BlobStorage):
    """
    S3-backed blob storage.

    Args:
        client: boto3 S3 client
        bucket: Bucket name
        public_base_url: Base URL objects are served from (no trailing slash)
    """

    def __init__(self, client: BaseClient, bucket: str, public_base_url: str):
        self.client = client
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_settings(cls, config: Settings = default_settings) -> "S3BlobStorage":
        client = boto3.client(
            "s3",
            region_name=config.S3_REGION,
            endpoint_url=config.S3_ENDPOINT,
            aws_access_key_id=config.S3_ACCESS_KEY,
            aws_secret_access_key=config.S3_SECRET_KEY,
        )
        return cls(client, config.S3_BUCKET, config.storage_public_url)

    async def upload(
        self,
        data: bytes,
        folder: str,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> StoredBlob:
        """
        Upload bytes under a fresh key in folder.

        Raises:
            StorageError: If the storage service rejects the upload
        """
        key = _object_key(folder, filename, content_type)
        extra = {"ContentType": content_type} if content_type else {}

        try:
            await run_in_threadpool(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                **extra,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                message="Failed to upload file to storage",
                error=str(e),
            )

        logger.info("Stored %d bytes at %s/%s", len(data), self.bucket, key)
        return StoredBlob(secure_url=f"{self.public_base_url}/{key}", public_id=key)

    async def destroy(self, public_id: str) -> None:
        """
        Delete an object by key.

        Raises:
            StorageError: If the storage service rejects the delete
        """
        try:
            await run_in_threadpool(self.client.delete_object, Bucket=self.bucket, Key=public_id)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(
                message="Failed to delete file from storage",
                error=str(e),
            )

    def close(self) -> None:
        self.client.close()
