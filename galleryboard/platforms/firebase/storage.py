"""Cloud Storage for Firebase: resumable uploads over REST."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable
from urllib.parse import quote

import requests

from galleryboard.platforms.base import (
    ProgressCallback,
    TransferError,
    UploadedObject,
)
from galleryboard.utils.logging import get_logger

from .api import json_body, send

LOGGER = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 256 * 1024


class FirebaseStorageBucket:
    """Uploads files with the Google resumable upload protocol.

    A session is opened with ``start``; the file is then sent in
    ``chunk_size`` pieces with ``upload`` and the last piece carries
    ``upload, finalize``. Progress is reported after every accepted chunk.
    A failed chunk is terminal: the caller decides whether to start over.
    """

    _BASE_URL = "https://firebasestorage.googleapis.com/v0/b"

    def __init__(
        self,
        *,
        bucket: str,
        token_source: Callable[[], str | None],
        http: requests.Session | None = None,
        timeout: float = 30.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if not bucket:
            raise RuntimeError("Storage requires a bucket; set firebase.storage_bucket")
        self._bucket = bucket
        self._token_source = token_source
        self._http = http or requests.Session()
        self._timeout = timeout
        self._chunk_size = chunk_size

    @property
    def objects_url(self) -> str:
        return f"{self._BASE_URL}/{self._bucket}/o"

    def upload_resumable(
        self,
        destination: str,
        source: Path,
        *,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> UploadedObject:
        total = source.stat().st_size
        session_url = self._start(destination, total, content_type)
        LOGGER.debug(
            "Upload session opened",
            extra={"event": "storage.start", "path": destination, "bytes": total},
        )

        offset = 0
        metadata: dict[str, Any] = {}
        with source.open("rb") as stream:
            while True:
                chunk = stream.read(self._chunk_size)
                is_last = offset + len(chunk) >= total
                command = "upload, finalize" if is_last else "upload"
                response = self._transfer(
                    lambda: self._http.post(
                        session_url,
                        data=chunk,
                        headers={
                            **self._headers(),
                            "X-Goog-Upload-Command": command,
                            "X-Goog-Upload-Offset": str(offset),
                        },
                        timeout=self._timeout,
                    ),
                    "Chunk upload failed",
                )
                offset += len(chunk)
                if on_progress is not None:
                    on_progress(offset, total)
                if is_last:
                    metadata = self._final_metadata(response)
                    break
                if response.headers.get("X-Goog-Upload-Status") == "final":
                    raise TransferError(
                        "Upload session closed early",
                        code="storage/unknown",
                        details={"path": destination, "offset": offset},
                    )

        LOGGER.info(
            "Upload finished",
            extra={"event": "storage.finalize", "path": destination, "bytes": total},
        )
        return UploadedObject(
            path=destination,
            size=int(metadata.get("size", total)),
            content_type=str(metadata.get("contentType", content_type)),
            download_tokens=metadata.get("downloadTokens") or None,
        )

    def download_url(self, obj: UploadedObject) -> str:
        token = obj.download_tokens
        if not token:
            response = self._transfer(
                lambda: self._http.get(
                    self._object_url(obj.path), headers=self._headers(), timeout=self._timeout
                ),
                "Failed to read object metadata",
            )
            token = json_body(response, "Failed to parse object metadata").get("downloadTokens")
        if not token:
            raise TransferError(
                "Object has no download token", code="storage/no-download-url", details={"path": obj.path}
            )
        return f"{self._object_url(obj.path)}?alt=media&token={token.split(',')[0]}"

    def _object_url(self, path: str) -> str:
        return f"{self.objects_url}/{quote(path, safe='')}"

    def _start(self, destination: str, total: int, content_type: str) -> str:
        response = self._transfer(
            lambda: self._http.post(
                self.objects_url,
                params={"name": destination},
                data=json.dumps({"name": destination, "contentType": content_type}),
                headers={
                    **self._headers(),
                    "Content-Type": "application/json; charset=utf-8",
                    "X-Goog-Upload-Protocol": "resumable",
                    "X-Goog-Upload-Command": "start",
                    "X-Goog-Upload-Header-Content-Length": str(total),
                    "X-Goog-Upload-Header-Content-Type": content_type,
                },
                timeout=self._timeout,
            ),
            "Could not open upload session",
        )
        session_url = response.headers.get("X-Goog-Upload-URL")
        if not session_url:
            raise TransferError(
                "Upload session URL missing", code="storage/unknown", details={"path": destination}
            )
        return session_url

    def _final_metadata(self, response: requests.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        data = json_body(response, "Failed to parse upload metadata")
        return data if isinstance(data, dict) else {}

    def _transfer(self, call: Callable[[], requests.Response], message: str) -> requests.Response:
        return send(call, message, error_cls=TransferError, code_prefix="storage/")

    def _headers(self) -> dict[str, str]:
        token = self._token_source()
        return {"Authorization": f"Firebase {token}"} if token else {}
