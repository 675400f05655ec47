from __future__ import annotations

from pathlib import Path

import pytest

from fakes import FakeAuth, FakeObjectStorage, InMemoryDocumentStore
from galleryboard.platforms import (
    BackendError,
    ConnectivityError,
    Identity,
    PermissionDeniedError,
    TransferError,
)
from galleryboard.services.composer import PostComposer
from galleryboard.services.editor import EMPTY_DOCUMENT
from galleryboard.services.feed import FeedSynchronizer
from galleryboard.services.lifecycle import (
    DELETE_FAILED_MESSAGE,
    DELETE_PROMPT,
    PostLifecycleController,
)
from galleryboard.services.media import MediaUploader
from galleryboard.services.models import NOTICE_MESSAGES, Notice, NoticeKind, Post, SubmissionState


class RecordingNotifier:
    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def __call__(self, notice: Notice) -> None:
        self.notices.append(notice)

    @property
    def kinds(self) -> list[NoticeKind]:
        return [notice.kind for notice in self.notices]


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


def _controller(
    store: InMemoryDocumentStore,
    storage: FakeObjectStorage,
    auth: FakeAuth,
    **kwargs,
) -> PostLifecycleController:
    uploader = MediaUploader(storage, clock=lambda: 1.0)
    return PostLifecycleController(
        auth=auth,
        store=store,
        synchronizer=FeedSynchronizer(store),
        composer=PostComposer(store, uploader),
        **kwargs,
    )


def _fill(controller: PostLifecycleController, title: str = "Sunset", cover: Path | None = None) -> None:
    controller.draft.title = title
    controller.draft.cover = cover
    controller.editor.set_content("<p>Golden hour</p>")


def test_mount_subscribes_once_and_tracks_feed(store, storage, alice) -> None:
    controller = _controller(store, storage, FakeAuth(alice))

    controller.mount()
    controller.mount()
    store.seed("posts", "p1", title="Hello", authorId="u2")

    assert len(store.listen_calls) == 1
    assert not controller.is_initial_loading
    assert controller.snapshot.ids() == ["p1"]


def test_unmount_releases_subscription(store, storage, alice) -> None:
    with _controller(store, storage, FakeAuth(alice)) as controller:
        assert controller.mounted
    store.seed("posts", "late", title="Late")

    assert not controller.mounted
    assert store.listeners == []
    assert controller.snapshot.ids() == []


def test_submit_with_cover_moves_through_states(store, image_file, alice) -> None:
    states: list[SubmissionState] = []
    progress: list[float] = []

    class ObservingStorage(FakeObjectStorage):
        def upload_resumable(self, destination, source, *, content_type, on_progress=None):
            states.append(controller.state)
            return super().upload_resumable(
                destination, source, content_type=content_type, on_progress=on_progress
            )

    storage = ObservingStorage(ticks=(0.0, 0.42, 1.0))
    controller = _controller(store, storage, FakeAuth(alice), on_progress=progress.append)
    committing_add = store.add

    def observing_add(collection, fields):
        states.append(controller.state)
        return committing_add(collection, fields)

    store.add = observing_add
    _fill(controller, cover=image_file("sunset.jpg"))

    assert controller.submit() is True

    assert states == [SubmissionState.UPLOADING, SubmissionState.SUBMITTING]
    assert progress == [0.0, 42.0, 100.0, 0.0]
    assert controller.state is SubmissionState.IDLE
    assert controller.draft.title == ""
    assert controller.draft.cover is None
    assert controller.editor.content() == EMPTY_DOCUMENT
    assert store.added[0][1]["imageUrl"] == "https://files.example/posts/uid-alice/1000_sunset.jpg"


def test_second_submit_while_in_flight_is_rejected(store, image_file, alice) -> None:
    results: list[bool] = []

    class ReentrantStorage(FakeObjectStorage):
        def upload_resumable(self, destination, source, *, content_type, on_progress=None):
            results.append(controller.submit())
            return super().upload_resumable(
                destination, source, content_type=content_type, on_progress=on_progress
            )

    controller = _controller(store, ReentrantStorage(), FakeAuth(alice))
    _fill(controller, cover=image_file())

    assert controller.submit() is True
    assert results == [False]
    assert len(store.added) == 1


def test_invalid_submission_is_silent(store, storage, alice, notifier) -> None:
    controller = _controller(store, storage, FakeAuth(alice), notify=notifier)
    _fill(controller, title="   ")

    assert controller.submit() is False
    assert notifier.notices == []
    assert store.added == []


def test_signed_out_submit_surfaces_identity_notice(store, storage, notifier, image_file) -> None:
    controller = _controller(store, storage, FakeAuth(None), notify=notifier)
    _fill(controller, cover=image_file())

    assert controller.submit() is False
    assert notifier.kinds == [NoticeKind.IDENTITY_MISSING]
    assert storage.uploads == []
    assert store.added == []


def test_write_denied_sets_permission_error(store, storage, alice, notifier) -> None:
    store.fail_add = PermissionDeniedError()
    controller = _controller(store, storage, FakeAuth(alice), notify=notifier)
    _fill(controller)

    assert controller.submit() is False
    assert notifier.kinds == [NoticeKind.WRITE_DENIED]
    assert controller.permission_error == NOTICE_MESSAGES[NoticeKind.WRITE_DENIED]
    assert controller.state is SubmissionState.IDLE
    assert controller.draft.title == "Sunset"


def test_cover_failure_surfaces_transfer_notice(store, alice, notifier, image_file) -> None:
    storage = FakeObjectStorage(ticks=(0.0, 0.3), fail_with=TransferError("x", code="storage/unknown"))
    controller = _controller(store, storage, FakeAuth(alice), notify=notifier)
    _fill(controller, cover=image_file())

    assert controller.submit() is False
    assert notifier.kinds == [NoticeKind.TRANSFER_FAILED]
    assert controller.upload_progress == 0.0
    assert store.added == []


def test_record_write_failure_is_generic(store, storage, alice, notifier) -> None:
    store.fail_add = BackendError("boom", code="internal")
    controller = _controller(store, storage, FakeAuth(alice), notify=notifier)
    _fill(controller)

    assert controller.submit() is False
    assert notifier.kinds == [NoticeKind.FAILURE]
    assert controller.permission_error is None


def test_read_denied_is_distinct_from_connectivity(store, storage, alice, notifier) -> None:
    controller = _controller(store, storage, FakeAuth(alice), notify=notifier)
    controller.mount()
    store.fail_listeners(PermissionDeniedError())

    assert notifier.kinds == [NoticeKind.READ_DENIED]
    assert controller.permission_error == "Access Denied: Check your Firestore rules."

    other = InMemoryDocumentStore()
    lost = RecordingNotifier()
    second = _controller(other, storage, FakeAuth(alice), notify=lost)
    second.mount()
    other.fail_listeners(ConnectivityError())

    assert lost.kinds == [NoticeKind.CONNECTIVITY]
    assert second.permission_error is None


def test_delete_requires_confirmation(store, storage, alice) -> None:
    prompts: list[str] = []

    def decline(question: str) -> bool:
        prompts.append(question)
        return False

    store.seed("posts", "p1", title="Mine", authorId=alice.uid)
    controller = _controller(store, storage, FakeAuth(alice), confirm=decline)

    assert controller.delete_post("p1") is False
    assert prompts == [DELETE_PROMPT]
    assert store.deleted == []


def test_delete_removes_exactly_that_post(store, storage, alice) -> None:
    store.seed("posts", "p1", title="Mine", authorId=alice.uid)
    store.seed("posts", "p2", title="Also mine", authorId=alice.uid)
    controller = _controller(store, storage, FakeAuth(alice), confirm=lambda _: True)
    controller.mount()

    assert controller.delete_post("p1") is True

    assert store.deleted == [("posts", "p1")]
    assert controller.snapshot.ids() == ["p2"]


def test_delete_rejected_by_backend(store, storage, alice, notifier) -> None:
    store.fail_delete = PermissionDeniedError()
    controller = _controller(
        store, storage, FakeAuth(alice), notify=notifier, confirm=lambda _: True
    )

    assert controller.delete_post("someone-elses") is False
    assert notifier.kinds == [NoticeKind.NOT_PERMITTED]
    assert notifier.notices[0].message == "Permission Denied: You can only delete your own posts."


def test_delete_transport_failure_uses_delete_message(store, storage, alice, notifier) -> None:
    store.fail_delete = ConnectivityError()
    controller = _controller(
        store, storage, FakeAuth(alice), notify=notifier, confirm=lambda _: True
    )

    assert controller.delete_post("p1") is False
    assert notifier.notices[0].message == DELETE_FAILED_MESSAGE


def test_can_delete_only_own_posts(store, storage, alice) -> None:
    controller = _controller(store, storage, FakeAuth(alice))

    assert controller.can_delete(Post(id="1", title="", content="", author_id=alice.uid))
    assert not controller.can_delete(Post(id="2", title="", content="", author_id="other"))


def test_inline_image_failure_notice(store, alice, notifier, image_file) -> None:
    storage = FakeObjectStorage(fail_with=TransferError("x", code="storage/unknown"))
    controller = _controller(store, storage, FakeAuth(alice), notify=notifier)
    controller.editor.set_content("<p>Hi</p>")

    assert controller.insert_inline_image(image_file()) is None
    assert notifier.kinds == [NoticeKind.INLINE_IMAGE_FAILED]
    assert controller.editor.content() == "<p>Hi</p>"


def test_inline_image_success(store, storage, alice, image_file) -> None:
    controller = _controller(store, storage, FakeAuth(alice))
    controller.editor.set_content("<p>Hi</p>")
    controller.editor.select(2)

    url = controller.insert_inline_image(image_file("pic.png"))

    assert url is not None
    assert controller.editor.image_sources() == [url]


def test_sign_out_releases_feed_first(store, storage) -> None:
    auth = FakeAuth(Identity(uid="u1"))
    controller = _controller(store, storage, auth)
    controller.mount()

    controller.sign_out()

    assert not controller.mounted
    assert store.listeners == []
    assert auth.sign_out_calls == 1


def test_signed_out_inline_image_surfaces_identity_notice(store, storage, notifier, image_file) -> None:
    controller = _controller(store, storage, FakeAuth(None), notify=notifier)

    assert controller.insert_inline_image(image_file()) is None
    assert notifier.kinds == [NoticeKind.IDENTITY_MISSING]
    assert storage.uploads == []


def test_non_image_cover_is_refused(store, storage, alice, notifier, image_file) -> None:
    controller = _controller(store, storage, FakeAuth(alice), notify=notifier)
    _fill(controller, cover=image_file("notes.txt"))

    assert controller.submit() is False
    assert notifier.kinds == [NoticeKind.UNSUPPORTED_MEDIA]
    assert storage.uploads == []
    assert store.added == []
    assert controller.state is SubmissionState.IDLE
