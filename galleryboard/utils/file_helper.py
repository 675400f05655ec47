"""Filesystem helpers."""

from __future__ import annotations

import mimetypes
import os
import tempfile
from pathlib import Path


def ensure_parent(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def guess_content_type(path: Path, *, default: str = "application/octet-stream") -> str:
    return mimetypes.guess_type(path.name)[0] or default


def write_private_text(path: Path, data: str) -> None:
    """Atomically replace ``path`` with ``data``, readable by the owner only."""
    ensure_parent(path)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", delete=False, dir=str(path.parent)
    ) as tmp:
        tmp.write(data)
        tmp_path = Path(tmp.name)
    tmp_path.replace(path)
    if os.name != "nt":  # set stricter permissions on POSIX systems
        os.chmod(path, 0o600)
