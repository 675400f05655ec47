from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from fakes import FakeObjectStorage, InMemoryDocumentStore
from galleryboard.platforms import Identity


@pytest.fixture
def alice() -> Identity:
    return Identity(uid="uid-alice", email="alice@example.com")


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def storage() -> FakeObjectStorage:
    return FakeObjectStorage()


@pytest.fixture
def image_file(tmp_path: Path) -> Callable[..., Path]:
    def _make(name: str = "photo.jpg", size: int = 100) -> Path:
        path = tmp_path / name
        path.write_bytes(b"\xff" * size)
        return path

    return _make
