"""HTML authoring surface used by the composer's inline image path."""

from __future__ import annotations

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from markdown import markdown

EMPTY_DOCUMENT = "<p><br></p>"

_BLOCK_TAGS = frozenset({"p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "pre"})
_EMBED_KINDS = frozenset({"image"})


def _parse(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def is_blank_markup(html: str | None) -> bool:
    """True for missing or whitespace-only markup and the editor's empty document."""
    return not html or not html.strip() or html.strip() == EMPTY_DOCUMENT


def _append_to_block(block: Tag, image: Tag) -> None:
    children = [child for child in block.children if not _is_ignorable(child)]
    if len(children) == 1 and isinstance(children[0], Tag) and children[0].name == "br":
        children[0].replace_with(image)
    else:
        block.append(image)


def _is_ignorable(node: object) -> bool:
    return isinstance(node, Comment) or (isinstance(node, NavigableString) and not str(node).strip())


def _measure(node: Tag, *, top_level: bool = False) -> int:
    length = 0
    for child in node.children:
        if isinstance(child, Comment):
            continue
        if isinstance(child, NavigableString):
            if top_level and not str(child).strip():
                continue
            length += len(str(child))
        elif isinstance(child, Tag):
            if child.name == "img":
                length += 1
            elif child.name != "br":
                length += _measure(child)
                if child.name in _BLOCK_TAGS:
                    length += 1
    return length


def _insert(node: Tag, index: int, offset: int, image: Tag, *, top_level: bool) -> tuple[bool, int]:
    for child in list(node.children):
        if isinstance(child, Comment):
            continue
        if isinstance(child, NavigableString):
            text = str(child)
            if top_level and not text.strip():
                continue
            if offset <= index < offset + len(text):
                split = index - offset
                before, after = text[:split], text[split:]
                child.insert_before(image)
                if before:
                    image.insert_before(before)
                child.replace_with(after)
                return True, offset
            offset += len(text)
            continue
        if not isinstance(child, Tag):
            continue
        if child.name == "img":
            if offset == index:
                child.insert_before(image)
                return True, offset
            offset += 1
            continue
        if child.name == "br":
            continue
        placed, offset = _insert(child, index, offset, image, top_level=False)
        if placed:
            return True, offset
        if child.name in _BLOCK_TAGS:
            if offset == index:
                _append_to_block(child, image)
                return True, offset
            offset += 1
    return False, offset


class HtmlEditor:
    """Serialized-HTML editor with a Quill-style cursor.

    Cursor indices count text characters, one position per embedded image
    and one for the end of every block, so index ``0`` is the start of the
    document and the end of a paragraph is the index just before its
    newline.
    """

    def __init__(self, html: str = EMPTY_DOCUMENT, *, cursor: int | None = None) -> None:
        self._html = html or EMPTY_DOCUMENT
        self._cursor = cursor

    def content(self) -> str:
        return self._html

    def set_content(self, html: str) -> None:
        self._html = html or EMPTY_DOCUMENT

    def load_markdown(self, text: str) -> None:
        self.set_content(markdown(text, extensions=["extra"]))

    def clear(self) -> None:
        self._html = EMPTY_DOCUMENT
        self._cursor = None

    def is_blank(self) -> bool:
        return is_blank_markup(self._html)

    def length(self) -> int:
        return _measure(_parse(self._html), top_level=True)

    def select(self, index: int | None) -> None:
        self._cursor = None if index is None else max(0, index)

    def selection_index(self) -> int | None:
        return self._cursor

    def image_sources(self) -> list[str]:
        return [str(img.get("src", "")) for img in _parse(self._html).find_all("img")]

    def insert_embed(self, index: int, kind: str, value: str) -> None:
        if kind not in _EMBED_KINDS:
            raise ValueError(f"Unsupported embed kind: {kind}")
        soup = _parse(self._html)
        image = soup.new_tag("img", src=value)
        placed, _ = _insert(soup, max(0, index), 0, image, top_level=True)
        if not placed:
            blocks = soup.find_all(sorted(_BLOCK_TAGS))
            if blocks:
                _append_to_block(blocks[-1], image)
            else:
                paragraph = soup.new_tag("p")
                paragraph.append(image)
                soup.append(paragraph)
        self._html = str(soup)
        if self._cursor is not None and self._cursor >= index:
            self._cursor += 1
