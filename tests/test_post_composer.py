from __future__ import annotations

import pytest

from fakes import FakeObjectStorage, InMemoryDocumentStore
from galleryboard.platforms import SERVER_TIMESTAMP, Identity, TransferError
from galleryboard.services.composer import PostComposer, is_valid_submission
from galleryboard.services.editor import EMPTY_DOCUMENT, HtmlEditor
from galleryboard.services.feed import FeedSynchronizer
from galleryboard.services.media import IdentityMissingError, MediaUploader


def _composer(store: InMemoryDocumentStore, storage: FakeObjectStorage) -> PostComposer:
    return PostComposer(store, MediaUploader(storage, clock=lambda: 1.0))


@pytest.mark.parametrize(
    ("title", "content", "expected"),
    [
        ("Sunset", "<p>Golden hour</p>", True),
        ("", "<p>Body</p>", False),
        ("   ", "<p>Body</p>", False),
        ("Title", EMPTY_DOCUMENT, False),
        ("Title", "", False),
        ("Title", '<p><img src="https://x/y.png"></p>', True),
        ("Title", "<p> </p>", True),
        ("Title", "  \n ", False),
    ],
)
def test_is_valid_submission(title: str, content: str, expected: bool) -> None:
    assert is_valid_submission(title, content) is expected


def test_create_post_without_cover_writes_single_record(store, storage) -> None:
    author = Identity(uid="u1", email="a@x.com")
    post_id = _composer(store, storage).create_post("  Sunset ", "<p>Golden hour</p>", None, author)

    assert post_id == "doc1"
    assert storage.uploads == []
    assert store.added == [
        (
            "posts",
            {
                "title": "Sunset",
                "content": "<p>Golden hour</p>",
                "imageUrl": "",
                "authorId": "u1",
                "authorEmail": "a@x.com",
                "createdAt": SERVER_TIMESTAMP,
            },
        )
    ]
    snapshot_doc = store.collections["posts"][post_id]
    assert snapshot_doc.data["createdAt"] is not None


def test_create_post_with_cover_uploads_before_write(store, image_file) -> None:
    storage = FakeObjectStorage(ticks=(0.0, 0.42, 1.0))
    events: list[str] = []
    progress: list[float] = []

    def on_uploaded(url: str) -> None:
        events.append(f"uploaded:{url}")
        assert store.added == []

    post_id = _composer(store, storage).create_post(
        "Cat",
        "<p>hi</p>",
        image_file("cat.png"),
        Identity(uid="u1", email="a@x.com"),
        on_progress=lambda tick: progress.append(tick.percent),
        on_uploaded=on_uploaded,
    )

    url = "https://files.example/posts/u1/1000_cat.png"
    assert post_id is not None
    assert progress == [0.0, 42.0, 100.0]
    assert events == [f"uploaded:{url}"]
    assert store.added[0][1]["imageUrl"] == url


def test_empty_title_is_a_silent_no_op(store, storage, image_file) -> None:
    result = _composer(store, storage).create_post(
        "", "<p>Body</p>", image_file(), Identity(uid="u1")
    )

    assert result is None
    assert storage.uploads == []
    assert store.added == []


def test_video_only_body_is_published(store, storage) -> None:
    body = '<iframe class="ql-video" frameborder="0" src="https://video.example/v"></iframe>'

    post_id = _composer(store, storage).create_post("Clip", body, None, Identity(uid="u1"))

    assert post_id is not None
    assert store.added[0][1]["content"] == body


def test_cover_failure_creates_no_record(store, image_file) -> None:
    storage = FakeObjectStorage(fail_with=TransferError("boom", code="storage/unknown"))

    with pytest.raises(TransferError):
        _composer(store, storage).create_post("T", "<p>x</p>", image_file(), Identity(uid="u1"))

    assert store.added == []
    assert store.collections == {}


def test_missing_author_raises(store, storage) -> None:
    with pytest.raises(IdentityMissingError):
        _composer(store, storage).create_post("T", "<p>x</p>")
    assert store.added == []


def test_anonymous_author_label(store, storage) -> None:
    _composer(store, storage).create_post("T", "<p>x</p>", None, Identity(uid="u9"))
    assert store.added[0][1]["authorEmail"] == "Anonymous"


def test_inline_image_inserted_at_cursor(store, storage, image_file) -> None:
    editor = HtmlEditor("<p>Hello</p>", cursor=5)

    url = _composer(store, storage).insert_inline_image(
        editor, image_file("inline.png"), Identity(uid="u1")
    )

    assert editor.content() == f'<p>Hello<img src="{url}"/></p>'
    assert editor.selection_index() == 6
    assert store.added == []


def test_inline_image_without_cursor_goes_to_start(store, storage, image_file) -> None:
    editor = HtmlEditor("<p>Hello</p>")

    url = _composer(store, storage).insert_inline_image(editor, image_file(), Identity(uid="u1"))

    assert editor.content() == f'<p><img src="{url}"/>Hello</p>'


def test_inline_image_failure_leaves_editor_untouched(store, image_file) -> None:
    storage = FakeObjectStorage(fail_with=TransferError("boom", code="storage/unknown"))
    editor = HtmlEditor("<p>Hello</p>", cursor=2)

    with pytest.raises(TransferError):
        _composer(store, storage).insert_inline_image(editor, image_file(), Identity(uid="u1"))

    assert editor.content() == "<p>Hello</p>"
    assert editor.selection_index() == 2


def test_new_post_heads_feed_with_null_then_resolved_timestamp(storage) -> None:
    store = InMemoryDocumentStore(auto_commit=False)
    store.seed("posts", "older", title="Older", createdAt=None)
    store.commit("posts", "older")
    snapshots = []
    FeedSynchronizer(store).subscribe(snapshots.append)

    post_id = _composer(store, storage).create_post(
        "Sunset", "<p>Hello</p>", None, Identity(uid="u1", email="a@x.com")
    )

    head = snapshots[-1].posts[0]
    assert (head.id, head.title, head.image_url, head.created_at) == (post_id, "Sunset", None, None)

    store.commit("posts", post_id)
    head = snapshots[-1].posts[0]
    assert head.id == post_id
    assert head.created_at is not None
    assert len(store.added) == 1
