"""Utility exports."""

from .file_helper import ensure_parent, guess_content_type, write_private_text
from .logging import configure_logging, get_logger

__all__ = [
    "ensure_parent",
    "guess_content_type",
    "write_private_text",
    "configure_logging",
    "get_logger",
]
