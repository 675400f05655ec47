"""Dashboard state: submission, the visible feed and deletion."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from galleryboard.platforms import (
    AuthProvider,
    BackendError,
    DocumentStore,
    Identity,
    PermissionDeniedError,
)
from galleryboard.services.composer import PostComposer, is_valid_submission
from galleryboard.services.editor import HtmlEditor
from galleryboard.services.feed import FeedFailure, FeedSubscription, FeedSynchronizer
from galleryboard.services.media import IdentityMissingError, UnsupportedMediaError
from galleryboard.services.models import (
    FeedSnapshot,
    Notice,
    NoticeKind,
    Post,
    PostDraft,
    SubmissionState,
    UploadProgress,
)
from galleryboard.utils.logging import get_logger

LOGGER = get_logger(__name__)

DELETE_PROMPT = "Are you sure you want to delete this post?"
DELETE_FAILED_MESSAGE = "Failed to delete post. Please try again."


def _decline(_: str) -> bool:
    return False


class PostLifecycleController:
    """Owns the state one dashboard view renders.

    ``mount`` opens the single feed subscription of the view and ``unmount``
    releases it; using the controller as a context manager does both. Every
    user-facing condition is logged and passed to ``notify``.
    """

    def __init__(
        self,
        *,
        auth: AuthProvider,
        store: DocumentStore,
        synchronizer: FeedSynchronizer,
        composer: PostComposer,
        editor: HtmlEditor | None = None,
        notify: Callable[[Notice], None] | None = None,
        confirm: Callable[[str], bool] | None = None,
        on_snapshot: Callable[[FeedSnapshot], None] | None = None,
        on_progress: Callable[[float], None] | None = None,
    ) -> None:
        self._auth = auth
        self._store = store
        self._synchronizer = synchronizer
        self._composer = composer
        self.editor = editor or HtmlEditor()
        self.draft = PostDraft()
        self._notify = notify
        self._confirm = confirm or _decline
        self._on_snapshot = on_snapshot
        self._on_progress = on_progress

        self._subscription: FeedSubscription | None = None
        self._snapshot = FeedSnapshot()
        self._state = SubmissionState.IDLE
        self.is_initial_loading = True
        self.permission_error: str | None = None
        self.upload_progress = 0.0

    def __enter__(self) -> "PostLifecycleController":
        self.mount()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unmount()

    @property
    def snapshot(self) -> FeedSnapshot:
        return self._snapshot

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def is_submitting(self) -> bool:
        return self._state is not SubmissionState.IDLE

    @property
    def mounted(self) -> bool:
        return self._subscription is not None

    def mount(self) -> None:
        if self._subscription is not None:
            LOGGER.debug("Already mounted", extra={"event": "controller.mount_skipped"})
            return
        self.permission_error = None
        self.is_initial_loading = True
        self._subscription = self._synchronizer.subscribe(self._apply_snapshot, self._feed_failed)

    def unmount(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()

    def current_identity(self) -> Identity | None:
        return self._auth.current_identity()

    def can_delete(self, post: Post) -> bool:
        """Whether to offer deletion; the backend still decides."""
        identity = self._auth.current_identity()
        return identity is not None and identity.uid == post.author_id

    def submit(self) -> bool:
        """Publish the current draft; returns ``True`` when a post was created."""
        if self._state is not SubmissionState.IDLE:
            LOGGER.warning(
                "Submission already in flight",
                extra={"event": "controller.submit_rejected", "state": self._state.value},
            )
            return False

        title = self.draft.title
        content = self.editor.content()
        cover = self.draft.cover
        if not is_valid_submission(title, content):
            return False

        identity = self._auth.current_identity()
        if identity is None:
            self._surface(Notice.of(NoticeKind.IDENTITY_MISSING))
            return False

        self.permission_error = None
        self._state = SubmissionState.UPLOADING if cover is not None else SubmissionState.SUBMITTING
        try:
            post_id = self._composer.create_post(
                title,
                content,
                cover,
                identity,
                on_progress=self._track_progress,
                on_uploaded=self._cover_uploaded,
            )
        except PermissionDeniedError as exc:
            notice = Notice.of(NoticeKind.WRITE_DENIED, exc)
            self.permission_error = notice.message
            self._surface(notice)
            return False
        except IdentityMissingError as exc:
            self._surface(Notice.of(NoticeKind.IDENTITY_MISSING, exc))
            return False
        except UnsupportedMediaError as exc:
            self._surface(Notice.of(NoticeKind.UNSUPPORTED_MEDIA, exc))
            return False
        except BackendError as exc:
            kind = NoticeKind.TRANSFER_FAILED if self._state is SubmissionState.UPLOADING else NoticeKind.FAILURE
            self._surface(Notice.of(kind, exc))
            return False
        except Exception as exc:
            LOGGER.exception("Unexpected error creating post", extra={"event": "controller.error"})
            self._surface(Notice.of(NoticeKind.FAILURE, exc))
            return False
        finally:
            self._state = SubmissionState.IDLE
            self._set_progress(0.0)

        if post_id is None:
            return False
        self.draft = PostDraft()
        self.editor.clear()
        return True

    def insert_inline_image(self, file: Path) -> str | None:
        """Upload an image into the editor at its cursor; ``None`` on failure."""
        try:
            return self._composer.insert_inline_image(
                self.editor,
                file,
                self._auth.current_identity(),
                on_progress=self._track_progress,
            )
        except IdentityMissingError as exc:
            self._surface(Notice.of(NoticeKind.IDENTITY_MISSING, exc))
            return None
        except UnsupportedMediaError as exc:
            self._surface(Notice.of(NoticeKind.UNSUPPORTED_MEDIA, exc))
            return None
        except Exception as exc:
            self._surface(Notice.of(NoticeKind.INLINE_IMAGE_FAILED, exc))
            return None
        finally:
            self._set_progress(0.0)

    def delete_post(self, post_id: str, requesting: Identity | None = None) -> bool:
        """Delete after confirmation; ownership is enforced by the backend."""
        if not self._confirm(DELETE_PROMPT):
            return False
        requester = requesting or self._auth.current_identity()
        try:
            self._store.delete(self._synchronizer.collection, post_id)
        except PermissionDeniedError as exc:
            self._surface(Notice.of(NoticeKind.NOT_PERMITTED, exc))
            return False
        except BackendError as exc:
            self._surface(Notice.of(NoticeKind.FAILURE, exc, message=DELETE_FAILED_MESSAGE))
            return False
        LOGGER.info(
            "Post deleted",
            extra={
                "event": "controller.deleted",
                "post_id": post_id,
                "uid": requester.uid if requester else None,
            },
        )
        return True

    def sign_out(self) -> None:
        self.unmount()
        try:
            self._auth.sign_out()
        except Exception:
            LOGGER.exception("Sign-out failed", extra={"event": "controller.sign_out_error"})

    def _apply_snapshot(self, snapshot: FeedSnapshot) -> None:
        self._snapshot = snapshot
        self.is_initial_loading = False
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)

    def _feed_failed(self, failure: FeedFailure) -> None:
        self.is_initial_loading = False
        notice = Notice.of(failure.kind, failure.error)
        if failure.kind is NoticeKind.READ_DENIED:
            self.permission_error = notice.message
        self._surface(notice)

    def _cover_uploaded(self, _: str) -> None:
        self._state = SubmissionState.SUBMITTING

    def _track_progress(self, progress: UploadProgress) -> None:
        self._set_progress(progress.percent)

    def _set_progress(self, percent: float) -> None:
        self.upload_progress = percent
        if self._on_progress is not None:
            self._on_progress(percent)

    def _surface(self, notice: Notice) -> None:
        LOGGER.warning(
            notice.message,
            extra={
                "event": "controller.notice",
                "kind": notice.kind.value,
                "error_type": type(notice.error).__name__ if notice.error else None,
            },
        )
        if self._notify is not None:
            self._notify(notice)
