"""Settings package exports."""

from .loader import (
    AppConfig,
    FeedSettings,
    FirebaseSettings,
    HttpSettings,
    PathSettings,
    UploadSettings,
    load_config,
    normalize_chunk_size,
)

__all__ = [
    "AppConfig",
    "FeedSettings",
    "FirebaseSettings",
    "HttpSettings",
    "PathSettings",
    "UploadSettings",
    "load_config",
    "normalize_chunk_size",
]
