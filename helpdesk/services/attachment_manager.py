"""
Attachment manager.

WHAT: Everything between an uploaded image and an attachment row: MIME
and size validation, uploading to blob storage, de-duplicating URLs,
deriving display filenames and storage keys from URLs, and best-effort
cleanup of remote objects.

WHY: The ticket service deals in URLs and rows. Keeping the blob storage
rules here means upload limits and URL parsing live in one place and
can be tested without a database.
"""

import logging
import posixpath
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence
from urllib.parse import unquote, urlparse

from helpdesk.core.config import settings
from helpdesk.core.exceptions import StorageError, UploadRejectedError
from helpdesk.services.storage import BlobStorage


logger = logging.getLogger(__name__)

FALLBACK_FILENAME = "attachment"


@dataclass(frozen=True)
class IncomingFile:
    """An uploaded file read from a multipart request."""

    filename: Optional[str]
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class UploadedImage:
    """An image that is now in blob storage."""

    original_filename: str
    url: str
    mime_type: str
    size: int


def dedupe_urls(urls: Optional[Iterable[str]]) -> List[str]:
    """
    De-duplicate URLs, keeping first-occurrence order.

    Blank entries are dropped; surrounding whitespace is ignored.
    """
    seen = set()
    unique = []
    for url in urls or []:
        cleaned = (url or "").strip()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            unique.append(cleaned)
    return unique


def filename_from_url(url: str) -> str:
    """
    Derive a display filename from the last path segment of a URL.

    >>> filename_from_url("https://cdn.example.com/helpdesk/tickets/screen%20shot.png?v=2")
    'screen shot.png'
    """
    path = urlparse(url).path if url else ""
    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return FALLBACK_FILENAME
    return unquote(segments[-1]) or FALLBACK_FILENAME


class AttachmentManager:
    """
    Validates, uploads and discards ticket images.

    Args:
        storage: Blob storage client
        max_upload_size: Per-file limit in bytes
        max_batch_files: Maximum files per request
    """

    def __init__(
        self,
        storage: BlobStorage,
        max_upload_size: int = settings.MAX_UPLOAD_SIZE_BYTES,
        max_batch_files: int = settings.MAX_BATCH_UPLOAD_FILES,
    ):
        self.storage = storage
        self.max_upload_size = max_upload_size
        self.max_batch_files = max_batch_files

    def public_id_from_url(self, url: str) -> Optional[str]:
        """
        Recover the storage key from a stored attachment URL.

        Handles URLs under the storage public base URL as well as
        path-style bucket URLs (https://host/<bucket>/<key>).

        Returns:
            The object key, or None when the URL has no usable path
        """
        if not url:
            return None

        base = self.storage.public_base_url.rstrip("/")
        if base and url.startswith(base + "/"):
            key = urlparse(url[len(base) + 1:]).path
        else:
            key = urlparse(url).path.lstrip("/")
            bucket = self.storage.bucket
            if bucket and key.startswith(bucket + "/"):
                key = key[len(bucket) + 1:]

        key = unquote(key).strip("/")
        if not key or key != posixpath.normpath(key):
            return None
        return key

    def validate_image_upload(self, files: Sequence[IncomingFile]) -> None:
        """
        Check a batch of uploads against the image rules.

        Raises:
            UploadRejectedError: If the batch is empty or too large, or any
                file is not an image or exceeds the size limit
        """
        if not files:
            raise UploadRejectedError("No image files were uploaded")

        if len(files) > self.max_batch_files:
            raise UploadRejectedError(
                f"At most {self.max_batch_files} images can be uploaded at once",
                file_count=len(files),
            )

        for incoming in files:
            if not (incoming.content_type or "").startswith("image/"):
                raise UploadRejectedError(
                    "Only image files are allowed",
                    filename=incoming.filename,
                    content_type=incoming.content_type,
                )
            if incoming.size > self.max_upload_size:
                raise UploadRejectedError(
                    f"Image exceeds the {self.max_upload_size // (1024 * 1024)}MB size limit",
                    filename=incoming.filename,
                )

    async def upload_images(self, files: Sequence[IncomingFile], folder: str) -> List[UploadedImage]:
        """
        Validate and upload a batch of images.

        If any upload fails, the images already stored for this batch are
        discarded before the error is raised.

        Raises:
            UploadRejectedError: If validation fails (nothing is uploaded)
            StorageError: If the storage service fails
        """
        self.validate_image_upload(files)

        uploaded: List[UploadedImage] = []
        try:
            for incoming in files:
                blob = await self.storage.upload(
                    incoming.data,
                    folder,
                    filename=incoming.filename,
                    content_type=incoming.content_type,
                )
                uploaded.append(
                    UploadedImage(
                        original_filename=incoming.filename or filename_from_url(blob.secure_url),
                        url=blob.secure_url,
                        mime_type=incoming.content_type,
                        size=incoming.size,
                    )
                )
        except StorageError:
            logger.warning("Upload batch failed after %d of %d files", len(uploaded), len(files))
            await self.discard_all(image.url for image in uploaded)
            raise

        return uploaded

    async def discard(self, url: str) -> None:
        """
        Best-effort delete of a stored object. Never raises.
        """
        public_id = self.public_id_from_url(url)
        if public_id is None:
            logger.warning("Cannot derive a storage key from %s; skipping remote delete", url)
            return

        try:
            await self.storage.destroy(public_id)
        except Exception:
            logger.warning("Remote delete failed for %s", public_id, exc_info=True)

    async def discard_all(self, urls: Iterable[str]) -> None:
        for url in urls:
            await self.discard(url)
