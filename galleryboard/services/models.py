"""Data models for the board's feed and publishing workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable

from galleryboard.platforms import Document
from galleryboard.utils.logging import get_logger

LOGGER = get_logger(__name__)

ANONYMOUS_LABEL = "Anonymous"


@dataclass(slots=True, frozen=True)
class Post:
    """A feed entry as stored under the ``posts`` collection."""

    id: str
    title: str
    content: str
    author_id: str
    author_display: str = ANONYMOUS_LABEL
    image_url: str | None = None
    created_at: datetime | None = None
    pending: bool = False
    undated: bool = False

    @classmethod
    def from_document(cls, document: Document) -> "Post":
        data = document.data
        created_at = data.get("createdAt")
        undated = created_at is not None and not isinstance(created_at, datetime)
        if undated:
            LOGGER.warning(
                "Post has a non-timestamp createdAt",
                extra={
                    "event": "feed.bad_timestamp",
                    "post_id": document.id,
                    "value_type": type(created_at).__name__,
                },
            )
        return cls(
            id=document.id,
            title=str(data.get("title", "")),
            content=str(data.get("content", "")),
            author_id=str(data.get("authorId", "")),
            author_display=str(data.get("authorEmail") or ANONYMOUS_LABEL),
            image_url=data.get("imageUrl") or None,
            created_at=created_at if isinstance(created_at, datetime) else None,
            pending=document.has_pending_writes,
            undated=undated,
        )

    @property
    def author_handle(self) -> str:
        return self.author_display.split("@", 1)[0]


def _newest_first(post: Post) -> tuple[int, float]:
    # Uncommitted posts carry no timestamp and are always the newest;
    # records with an unreadable timestamp go last.
    if post.undated:
        return (2, 0.0)
    if post.created_at is None:
        return (0, 0.0)
    return (1, -post.created_at.timestamp())


def order_posts(posts: Iterable[Post]) -> tuple[Post, ...]:
    """Order by ``created_at`` descending with ``None`` first and undated last; stable for ties."""
    return tuple(sorted(posts, key=_newest_first))


@dataclass(slots=True, frozen=True)
class FeedSnapshot:
    """Complete, ordered view of the feed at one delivery."""

    posts: tuple[Post, ...] = ()

    @classmethod
    def from_documents(cls, documents: Iterable[Document]) -> "FeedSnapshot":
        return cls(order_posts(Post.from_document(doc) for doc in documents))

    def __len__(self) -> int:
        return len(self.posts)

    def __iter__(self):
        return iter(self.posts)

    def ids(self) -> list[str]:
        return [post.id for post in self.posts]

    def get(self, post_id: str) -> Post | None:
        for post in self.posts:
            if post.id == post_id:
                return post
        return None


@dataclass(slots=True, frozen=True)
class UploadProgress:
    """One advisory progress tick."""

    bytes_transferred: int
    total_bytes: int

    @property
    def percent(self) -> float:
        if self.total_bytes <= 0:
            return 100.0
        return self.bytes_transferred / self.total_bytes * 100


ProgressListener = Callable[[UploadProgress], None]


class UploadState(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class UploadTask:
    """A single in-flight transfer owned by the upload call that created it."""

    source: Path
    destination: str
    total_bytes: int
    bytes_transferred: int = 0
    state: UploadState = UploadState.RUNNING
    url: str | None = None
    error: BaseException | None = None
    listener: ProgressListener | None = field(default=None, repr=False)

    def advance(self, transferred: int, total: int) -> None:
        """Record progress; regressions and post-terminal ticks are dropped."""
        if self.state is not UploadState.RUNNING or transferred < self.bytes_transferred:
            return
        self.bytes_transferred = transferred
        self.total_bytes = total
        if self.listener is not None:
            self.listener(UploadProgress(transferred, total))

    def resolve(self, url: str) -> None:
        self.state = UploadState.SUCCEEDED
        self.url = url

    def fail(self, error: BaseException) -> None:
        self.state = UploadState.FAILED
        self.error = error


class SubmissionState(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    SUBMITTING = "submitting"


class NoticeKind(str, Enum):
    IDENTITY_MISSING = "identity-missing"
    READ_DENIED = "read-denied"
    WRITE_DENIED = "write-denied"
    TRANSFER_FAILED = "transfer-failed"
    CONNECTIVITY = "connectivity"
    NOT_PERMITTED = "not-permitted"
    FAILURE = "failure"
    INLINE_IMAGE_FAILED = "inline-image-failed"
    UNSUPPORTED_MEDIA = "unsupported-media"


NOTICE_MESSAGES: dict[NoticeKind, str] = {
    NoticeKind.IDENTITY_MISSING: "You must be signed in to publish.",
    NoticeKind.READ_DENIED: "Access Denied: Check your Firestore rules.",
    NoticeKind.WRITE_DENIED: "Write Denied: Check Firestore and Storage rules.",
    NoticeKind.TRANSFER_FAILED: "Failed to upload image. Please try again.",
    NoticeKind.CONNECTIVITY: "Connection lost: the feed will stop updating until reloaded.",
    NoticeKind.NOT_PERMITTED: "Permission Denied: You can only delete your own posts.",
    NoticeKind.FAILURE: "Failed to save post. Please try again.",
    NoticeKind.INLINE_IMAGE_FAILED: "Failed to upload image to editor.",
    NoticeKind.UNSUPPORTED_MEDIA: "Only image files can be uploaded.",
}


@dataclass(slots=True, frozen=True)
class Notice:
    """A user-facing condition raised by the controller."""

    kind: NoticeKind
    message: str
    error: Any = None

    @classmethod
    def of(cls, kind: NoticeKind, error: Any = None, *, message: str | None = None) -> "Notice":
        return cls(kind=kind, message=message or NOTICE_MESSAGES[kind], error=error)


@dataclass(slots=True)
class PostDraft:
    """Pending form input for a new post."""

    title: str = ""
    cover: Path | None = None
