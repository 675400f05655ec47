"""Helpers for loading configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import tomllib

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_NAME = "config.toml"
CONFIG_ENV_VAR = "GALLERYBOARD_CONFIG"

_CHUNK_GRANULARITY = 256 * 1024


@dataclass(slots=True)
class FirebaseSettings:
    project_id: str
    storage_bucket: str
    database: str = "(default)"
    api_key: str | None = None


@dataclass(slots=True)
class HttpSettings:
    timeout: float


@dataclass(slots=True)
class UploadSettings:
    chunk_size: int


@dataclass(slots=True)
class FeedSettings:
    collection: str
    poll_interval: float


@dataclass(slots=True)
class PathSettings:
    state_dir: Path
    log_dir: Path
    token_cache: Path
    secrets_file: Path


@dataclass(slots=True)
class AppConfig:
    firebase: FirebaseSettings
    http: HttpSettings
    upload: UploadSettings
    feed: FeedSettings
    paths: PathSettings
    source: Path | None = None


def _to_path(value: str | None, *, fallback: Path) -> Path:
    if not value:
        return fallback
    candidate = Path(value).expanduser()
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _config_path(explicit: str | os.PathLike[str] | None = None) -> Path:
    candidate: Path
    if explicit:
        candidate = Path(explicit)
    else:
        env_value = os.environ.get(CONFIG_ENV_VAR)
        candidate = Path(env_value) if env_value else PROJECT_ROOT / DEFAULT_CONFIG_NAME
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _load_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise FileNotFoundError(f"Config file not found: {path}")
        return {}
    with path.open("rb") as fp:
        return tomllib.load(fp)


def _ensure_directories(paths: Iterable[Path]) -> None:
    for directory in paths:
        directory.mkdir(parents=True, exist_ok=True)


def normalize_chunk_size(value: int) -> int:
    """Round ``value`` up to the resumable protocol's 256 KiB granularity."""
    if value <= 0:
        return _CHUNK_GRANULARITY
    chunks, remainder = divmod(value, _CHUNK_GRANULARITY)
    if remainder:
        chunks += 1
    return chunks * _CHUNK_GRANULARITY


def load_config(config_path: str | os.PathLike[str] | None = None) -> AppConfig:
    """Load settings, falling back to defaults when no file is present.

    An explicitly requested file must exist; the implicit ``config.toml``
    lookup is optional.
    """
    path = _config_path(config_path)
    data = _load_toml(path, required=bool(config_path))

    firebase_section = data.get("firebase", {})
    http_section = data.get("http", {})
    upload_section = data.get("upload", {})
    feed_section = data.get("feed", {})
    paths_section = data.get("paths", {})

    project_id = str(firebase_section.get("project_id", "")).strip()
    bucket = str(firebase_section.get("storage_bucket", "")).strip()
    if project_id and not bucket:
        bucket = f"{project_id}.appspot.com"

    state_dir = _to_path(paths_section.get("state_dir"), fallback=PROJECT_ROOT / "data" / "state")
    log_dir = _to_path(paths_section.get("log_dir"), fallback=PROJECT_ROOT / "data" / "logs")
    token_cache = _to_path(paths_section.get("token_cache"), fallback=state_dir / "session.json")
    secrets_file = _to_path(paths_section.get("secrets_file"), fallback=state_dir / "secrets.ini")

    _ensure_directories((state_dir, log_dir, token_cache.parent))

    api_key = firebase_section.get("api_key")
    return AppConfig(
        firebase=FirebaseSettings(
            project_id=project_id,
            storage_bucket=bucket,
            database=str(firebase_section.get("database", "(default)")),
            api_key=str(api_key) if api_key else None,
        ),
        http=HttpSettings(timeout=float(http_section.get("timeout", 30))),
        upload=UploadSettings(
            chunk_size=normalize_chunk_size(int(upload_section.get("chunk_size", _CHUNK_GRANULARITY)))
        ),
        feed=FeedSettings(
            collection=str(feed_section.get("collection", "posts")),
            poll_interval=float(feed_section.get("poll_interval", 2.0)),
        ),
        paths=PathSettings(
            state_dir=state_dir,
            log_dir=log_dir,
            token_cache=token_cache,
            secrets_file=secrets_file,
        ),
        source=path if path.exists() else None,
    )
