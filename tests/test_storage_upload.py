from __future__ import annotations

from pathlib import Path

import pytest
import requests

from galleryboard.platforms import (
    ConnectivityError,
    PermissionDeniedError,
    TransferError,
    UploadedObject,
)
from galleryboard.platforms.firebase import FirebaseStorageBucket
from http_stubs import StubSession, make_response

OBJECTS_URL = "https://firebasestorage.googleapis.com/v0/b/demo.appspot.com/o"
SESSION_URL = "https://upload.example/session/1"
CHUNK = 256 * 1024


def _bucket(session: StubSession) -> FirebaseStorageBucket:
    return FirebaseStorageBucket(bucket="demo.appspot.com", token_source=lambda: "tok", http=session)


def _started() -> requests.Response:
    return make_response(200, headers={"X-Goog-Upload-URL": SESSION_URL, "X-Goog-Upload-Status": "active"})


def _write(tmp_path: Path, size: int) -> Path:
    path = tmp_path / "photo.jpg"
    path.write_bytes(b"\x01" * size)
    return path


def test_upload_streams_chunks_and_reports_progress(tmp_path: Path) -> None:
    total = 2 * CHUNK + 1000
    session = StubSession(
        _started(),
        make_response(200, headers={"X-Goog-Upload-Status": "active"}),
        make_response(200, headers={"X-Goog-Upload-Status": "active"}),
        make_response(
            200,
            {"name": "posts/u1/1_photo.jpg", "size": str(total), "contentType": "image/jpeg", "downloadTokens": "t1"},
            headers={"X-Goog-Upload-Status": "final"},
        ),
    )
    ticks: list[tuple[int, int]] = []

    uploaded = _bucket(session).upload_resumable(
        "posts/u1/1_photo.jpg",
        _write(tmp_path, total),
        content_type="image/jpeg",
        on_progress=lambda sent, size: ticks.append((sent, size)),
    )

    assert uploaded == UploadedObject(
        path="posts/u1/1_photo.jpg", size=total, content_type="image/jpeg", download_tokens="t1"
    )
    assert ticks == [(CHUNK, total), (2 * CHUNK, total), (total, total)]

    start = session.calls[0]
    assert start["url"] == OBJECTS_URL
    assert start["params"] == {"name": "posts/u1/1_photo.jpg"}
    assert start["headers"]["X-Goog-Upload-Command"] == "start"
    assert start["headers"]["X-Goog-Upload-Header-Content-Length"] == str(total)
    assert start["headers"]["Authorization"] == "Firebase tok"

    chunks = session.calls[1:]
    assert [call["url"] for call in chunks] == [SESSION_URL] * 3
    assert [call["headers"]["X-Goog-Upload-Command"] for call in chunks] == [
        "upload",
        "upload",
        "upload, finalize",
    ]
    assert [call["headers"]["X-Goog-Upload-Offset"] for call in chunks] == [
        "0",
        str(CHUNK),
        str(2 * CHUNK),
    ]
    assert [len(call["data"]) for call in chunks] == [CHUNK, CHUNK, 1000]


def test_empty_file_is_finalized_in_one_request(tmp_path: Path) -> None:
    session = StubSession(_started(), make_response(200))
    ticks: list[tuple[int, int]] = []

    uploaded = _bucket(session).upload_resumable(
        "posts/u1/1_empty.jpg",
        _write(tmp_path, 0),
        content_type="image/jpeg",
        on_progress=lambda sent, size: ticks.append((sent, size)),
    )

    assert ticks == [(0, 0)]
    assert uploaded.download_tokens is None
    assert session.calls[1]["headers"]["X-Goog-Upload-Command"] == "upload, finalize"


def test_missing_session_url_is_a_transfer_error(tmp_path: Path) -> None:
    session = StubSession(make_response(200))
    with pytest.raises(TransferError):
        _bucket(session).upload_resumable("p", _write(tmp_path, 10), content_type="image/jpeg")


def test_chunk_failure_is_terminal(tmp_path: Path) -> None:
    session = StubSession(
        _started(),
        make_response(503, {"error": {"code": 503, "message": "busy"}}),
    )
    ticks: list[tuple[int, int]] = []

    with pytest.raises(TransferError) as excinfo:
        _bucket(session).upload_resumable(
            "p",
            _write(tmp_path, 10),
            content_type="image/jpeg",
            on_progress=lambda sent, size: ticks.append((sent, size)),
        )

    assert excinfo.value.code == "storage/503"
    assert ticks == []
    assert len(session.calls) == 2


def test_storage_rules_rejection_is_permission_denied(tmp_path: Path) -> None:
    session = StubSession(make_response(403, {"error": {"code": 403, "message": "Permission denied."}}))
    with pytest.raises(PermissionDeniedError):
        _bucket(session).upload_resumable("p", _write(tmp_path, 10), content_type="image/jpeg")


def test_network_failure_is_connectivity_error(tmp_path: Path) -> None:
    session = StubSession(requests.ConnectionError("offline"))
    with pytest.raises(ConnectivityError):
        _bucket(session).upload_resumable("p", _write(tmp_path, 10), content_type="image/jpeg")


def test_download_url_uses_first_token() -> None:
    url = _bucket(StubSession()).download_url(
        UploadedObject(path="posts/u1/1_a b.jpg", size=1, content_type="image/jpeg", download_tokens="t1,t2")
    )
    assert url == f"{OBJECTS_URL}/posts%2Fu1%2F1_a%20b.jpg?alt=media&token=t1"


def test_download_url_fetches_metadata_when_token_missing() -> None:
    session = StubSession(make_response(200, {"downloadTokens": "fresh"}))

    url = _bucket(session).download_url(
        UploadedObject(path="posts/u1/1_a.jpg", size=1, content_type="image/jpeg")
    )

    assert url.endswith("?alt=media&token=fresh")
    assert session.calls[0]["method"] == "GET"


def test_download_url_without_any_token_fails() -> None:
    session = StubSession(make_response(200, {}))
    with pytest.raises(TransferError) as excinfo:
        _bucket(session).download_url(
            UploadedObject(path="p", size=1, content_type="image/jpeg")
        )
    assert excinfo.value.code == "storage/no-download-url"
