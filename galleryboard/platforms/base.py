"""Base contracts for the backends the board talks to."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, Sequence


class BackendError(RuntimeError):
    """Raised when a backend call fails."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "unknown",
        details: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = dict(details or {})

    def __str__(self) -> str:
        base = super().__str__()
        if not self.details:
            return f"{base} [{self.code}]"
        try:
            detail_repr = json.dumps(self.details, ensure_ascii=False, default=str)
        except TypeError:
            detail_repr = str(self.details)
        return f"{base} [{self.code}] | details: {detail_repr}"


class PermissionDeniedError(BackendError):
    """The backend rejected the caller; no further detail is available."""

    def __init__(
        self, message: str = "Permission denied", *, details: Mapping[str, Any] | None = None
    ) -> None:
        super().__init__(message, code="permission-denied", details=details)


class TransferError(BackendError):
    """An object upload failed (network, quota or storage rules)."""


class ConnectivityError(BackendError):
    """The backend could not be reached."""

    def __init__(
        self, message: str = "Backend unreachable", *, details: Mapping[str, Any] | None = None
    ) -> None:
        super().__init__(message, code="unavailable", details=details)


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()
"""Field placeholder resolved to the commit time by the document store."""


@dataclass(slots=True, frozen=True)
class Identity:
    """The signed-in user as exposed by the authentication provider."""

    uid: str
    email: str | None = None

    @property
    def display(self) -> str:
        return self.email or "Anonymous"


@dataclass(slots=True)
class Document:
    """A single record returned by a standing query."""

    id: str
    data: dict[str, Any] = field(default_factory=dict)
    has_pending_writes: bool = False


@dataclass(slots=True)
class UploadedObject:
    """Outcome of a completed object upload."""

    path: str
    size: int
    content_type: str
    download_tokens: str | None = None


SnapshotCallback = Callable[[Sequence[Document]], None]
ErrorCallback = Callable[[BackendError], None]
ProgressCallback = Callable[[int, int], None]


class ListenerRegistration(Protocol):
    """Handle for a standing query."""

    def remove(self) -> None:
        """Release the standing query; idempotent."""


class AuthProvider(Protocol):
    """Opaque source of the current identity."""

    def current_identity(self) -> Identity | None:
        """Return the signed-in identity, or ``None`` when signed out."""

    def sign_out(self) -> None:
        """Forget the current identity."""


class DocumentStore(Protocol):
    """Record collection with server timestamps and standing queries."""

    def listen(
        self,
        collection: str,
        *,
        order_by: str,
        descending: bool,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> ListenerRegistration:
        """Deliver the full ordered result set on every change."""

    def add(self, collection: str, fields: Mapping[str, Any]) -> str:
        """Insert one record and return its backend-assigned id."""

    def delete(self, collection: str, doc_id: str) -> None:
        """Remove one record by id."""


class ObjectStorage(Protocol):
    """Path-addressed object store with resumable uploads."""

    def upload_resumable(
        self,
        destination: str,
        source: Path,
        *,
        content_type: str,
        on_progress: ProgressCallback | None = None,
    ) -> UploadedObject:
        """Stream ``source`` to ``destination`` reporting bytes after each chunk."""

    def download_url(self, obj: UploadedObject) -> str:
        """Return a stable, publicly fetchable URL for an uploaded object."""


class EditorSurface(Protocol):
    """Rich-text authoring surface."""

    def content(self) -> str:
        """Return the serialized markup."""

    def selection_index(self) -> int | None:
        """Return the cursor index, or ``None`` without a selection."""

    def insert_embed(self, index: int, kind: str, value: str) -> None:
        """Embed ``value`` at ``index``."""
