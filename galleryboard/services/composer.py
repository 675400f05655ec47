"""Post creation: validation, cover upload and the single record write."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

from galleryboard.platforms import SERVER_TIMESTAMP, DocumentStore, EditorSurface, Identity
from galleryboard.services.editor import is_blank_markup
from galleryboard.services.media import IdentityMissingError, MediaUploader
from galleryboard.services.models import ANONYMOUS_LABEL, ProgressListener
from galleryboard.utils.logging import get_logger

LOGGER = get_logger(__name__)


def is_valid_submission(title: str | None, content: str | None) -> bool:
    """Title must survive trimming; content must not be the empty document."""
    return bool(title and title.strip()) and not is_blank_markup(content)


class PostComposer:
    """Creates posts so that a record exists only with its image already resolved."""

    def __init__(
        self,
        store: DocumentStore,
        uploader: MediaUploader,
        *,
        collection: str = "posts",
    ) -> None:
        self._store = store
        self._uploader = uploader
        self._collection = collection

    def create_post(
        self,
        title: str,
        content: str,
        cover: Path | None = None,
        author: Identity | None = None,
        on_progress: ProgressListener | None = None,
        on_uploaded: Callable[[str], None] | None = None,
    ) -> str | None:
        """
        Create one post and return its id.

        Returns ``None`` without any I/O when the title or content is empty.
        A cover upload failure propagates before anything is written.

        Args:
            title: Post title; stored trimmed.
            content: Serialized HTML from the editor.
            cover: Optional cover image file.
            author: The signed-in identity.
            on_progress: Receives progress ticks of the cover upload.
            on_uploaded: Called with the cover URL before the record write.
        """
        if not is_valid_submission(title, content):
            LOGGER.debug("Ignoring empty submission", extra={"event": "composer.invalid"})
            return None
        if author is None:
            raise IdentityMissingError()

        image_url = ""
        if cover is not None:
            image_url = self._uploader.upload(cover, author, on_progress)
            if on_uploaded is not None:
                on_uploaded(image_url)

        post_id = self._store.add(self._collection, self.build_fields(title, content, image_url, author))
        LOGGER.info(
            "Post created",
            extra={"event": "composer.created", "post_id": post_id, "has_cover": bool(image_url)},
        )
        return post_id

    def build_fields(
        self, title: str, content: str, image_url: str, author: Identity
    ) -> dict[str, Any]:
        return {
            "title": title.strip(),
            "content": content,
            "imageUrl": image_url,
            "authorId": author.uid,
            "authorEmail": author.email or ANONYMOUS_LABEL,
            "createdAt": SERVER_TIMESTAMP,
        }

    def insert_inline_image(
        self,
        editor: EditorSurface,
        file: Path,
        author: Identity | None,
        on_progress: ProgressListener | None = None,
    ) -> str:
        """Upload ``file`` and embed it at the editor's cursor.

        The editor is only touched after the URL is known, so a failed upload
        leaves it exactly as it was.
        """
        url = self._uploader.upload(file, author, on_progress)
        index = editor.selection_index()
        editor.insert_embed(index or 0, "image", url)
        LOGGER.info(
            "Inline image embedded",
            extra={"event": "composer.inline_image", "index": index or 0},
        )
        return url
