from __future__ import annotations

import json
import logging
import sys

from galleryboard.utils.logging import JsonFormatter


def _record(msg: str, level: int = logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord("galleryboard.test", level, __file__, 1, msg, (), exc_info)


def test_json_formatter_merges_extra_fields() -> None:
    record = _record("Post created")
    record.event = "composer.created"
    record.post_id = "abc"

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "Post created"
    assert data["level"] == "INFO"
    assert data["event"] == "composer.created"
    assert data["post_id"] == "abc"
    assert "args" not in data
    assert data["timestamp"].endswith("Z")


def test_json_formatter_includes_exception() -> None:
    try:
        raise ValueError("bad")
    except ValueError:
        record = _record("failed", logging.ERROR, sys.exc_info())

    data = json.loads(JsonFormatter().format(record))

    assert "ValueError: bad" in data["exception"]
