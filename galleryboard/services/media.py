"""Image uploads to object storage."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable

from galleryboard.platforms import Identity, ObjectStorage
from galleryboard.services.models import ProgressListener, UploadTask
from galleryboard.utils.file_helper import guess_content_type
from galleryboard.utils.logging import get_logger

LOGGER = get_logger(__name__)


class IdentityMissingError(RuntimeError):
    """Raised when an upload or post is attempted while signed out."""

    def __init__(self, message: str = "No user authenticated") -> None:
        super().__init__(message)


class UnsupportedMediaError(ValueError):
    """Raised before any transfer when a file is not an image."""

    def __init__(self, filename: str, content_type: str) -> None:
        super().__init__(f"{filename} is not an image ({content_type or 'unknown type'})")
        self.filename = filename
        self.content_type = content_type


def destination_path(owner_id: str, filename: str, timestamp_ms: int) -> str:
    """``posts/{owner}/{millis}_{filename}``; identical inputs map to the same object."""
    return f"posts/{owner_id}/{timestamp_ms}_{filename}"


class MediaUploader:
    """Streams one file per call and resolves to its download URL.

    Transfer errors propagate exactly as the storage backend raised them and
    are never retried here.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._clock = clock

    def upload(
        self,
        file: Path,
        owner: Identity | None,
        on_progress: ProgressListener | None = None,
    ) -> str:
        if owner is None or not owner.uid:
            raise IdentityMissingError()
        content_type = guess_content_type(file, default="")
        if not content_type.startswith("image/"):
            raise UnsupportedMediaError(file.name, content_type)

        task = UploadTask(
            source=file,
            destination=destination_path(owner.uid, file.name, int(self._clock() * 1000)),
            total_bytes=file.stat().st_size,
            listener=on_progress,
        )
        LOGGER.info(
            "Uploading image",
            extra={"event": "media.upload", "path": task.destination, "bytes": task.total_bytes},
        )
        try:
            stored = self._storage.upload_resumable(
                task.destination,
                file,
                content_type=content_type,
                on_progress=task.advance,
            )
            url = self._storage.download_url(stored)
            task.resolve(url)
        except Exception as exc:
            task.fail(exc)
            LOGGER.warning(
                "Image upload failed",
                extra={
                    "event": "media.failed",
                    "path": task.destination,
                    "error_type": type(exc).__name__,
                },
            )
            raise

        LOGGER.info("Image uploaded", extra={"event": "media.done", "path": task.destination})
        return url
