"""Garden document loading: front-matter, tags, visibility."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml
from frontmatter.default_handlers import YAMLHandler
from pydantic import ValidationError
from slugify import slugify

from ..config import DEFAULT_LANG, HIDDEN_MARKER, PUBLIC_TAG
from ..models import Document, DocumentMetadata, normalize_tags
from .md_renderer import typograph

log = logging.getLogger(__name__)

FRONTMATTER_DELIMITER = "---"

# In-body marker that publishes a document without tagging it
PUBLIC_MARKER = "#" + PUBLIC_TAG

_YAML_HANDLER = YAMLHandler()


class ParseError(Exception):
    """Raised when a garden file cannot be read."""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split a leading YAML front-matter block from the body.

    The block only counts when the very first line is exactly the delimiter,
    and it ends at the next line that is exactly the delimiter. A block
    without a closing delimiter, or with invalid YAML, is treated as absent:
    metadata is empty and the whole text is body. The body is everything
    after the closing line, unstripped, so leading indentation survives.

    Returns:
        Tuple of (metadata, body).
    """
    lines = text.split("\n")
    if lines[0].rstrip("\r") != FRONTMATTER_DELIMITER:
        return {}, text

    for end, line in enumerate(lines[1:], start=1):
        if line.rstrip("\r") == FRONTMATTER_DELIMITER:
            break
    else:
        log.warning("Ignoring front-matter without a closing delimiter")
        return {}, text

    block = "\n".join(lines[1:end])
    body = "\n".join(lines[end + 1 :])

    try:
        metadata = _YAML_HANDLER.load(block)
    except yaml.YAMLError as e:
        log.warning("Ignoring malformed front-matter: %s", e)
        return {}, text

    if metadata is None:
        return {}, body
    if not isinstance(metadata, dict):
        log.warning("Ignoring front-matter that is not a mapping")
        return {}, body

    return dict(metadata), body


def cut_hidden(text: str) -> str:
    """Drop everything from the first hidden-section marker on."""
    index = text.find(HIDDEN_MARKER)
    if index >= 0:
        return text[:index]
    return text


def is_public(tags: list[str] | tuple[str, ...], text: str) -> bool:
    """A document is public when tagged, or when the marker appears anywhere."""
    return PUBLIC_TAG in tags or PUBLIC_MARKER in text


def _validate_metadata(path: Path, raw: dict[str, Any]) -> DocumentMetadata:
    """Validate front-matter, dropping only the fields that fail."""
    try:
        return DocumentMetadata.model_validate(raw)
    except ValidationError as e:
        invalid = {error["loc"][0] for error in e.errors() if error["loc"]}
        errors = ", ".join(
            f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}" for error in e.errors()
        )
        log.warning("Ignoring invalid front-matter fields in %s (%s)", path, errors)

    cleaned = {key: value for key, value in raw.items() if key not in invalid}
    try:
        return DocumentMetadata.model_validate(cleaned)
    except ValidationError:
        return DocumentMetadata()


def load_document(path: Path, root: Path, *, default_lang: str = DEFAULT_LANG) -> Document:
    """Read one garden file into a Document.

    Args:
        path: Absolute (or root-joined) path of the markdown file.
        root: Garden root; the document's identity is its path relative to it.
        default_lang: Language used when the front-matter has none.

    Raises:
        ParseError: If the file does not exist or cannot be decoded.
    """
    if not path.exists():
        raise ParseError(path, "File does not exist")

    if not path.is_file():
        raise ParseError(path, "Path is not a file")

    try:
        text = path.read_text(encoding="utf-8")
        mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=UTC)
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(path, f"Failed to read: {e}") from e

    raw_metadata, body = split_frontmatter(text)
    metadata = _validate_metadata(path, raw_metadata) if raw_metadata else DocumentMetadata()
    # Visibility never depends on the other fields validating
    tags = normalize_tags(raw_metadata.get("tags"))

    rel_path = path.relative_to(root)
    title = rel_path.stem
    lang = metadata.lang or default_lang

    return Document(
        path=rel_path.as_posix(),
        title=title,
        metadata=metadata,
        tags=tuple(tags),
        is_public=is_public(tags, text),
        raw_body=cut_hidden(body),
        source=cut_hidden(text),
        mtime=mtime,
        dirs=tuple(part for part in rel_path.parent.parts if part != "."),
        slug=metadata.slug or slugify(title, lowercase=True),
        lang=lang,
        summary=typograph(metadata.summary, lang=lang),
    )


def scan_documents(root: Path) -> list[Path]:
    """List garden markdown files in a deterministic (path-sorted) order.

    Hidden files and directories (dot-prefixed) are skipped.
    """
    if not root.exists() or not root.is_dir():
        return []

    files = []
    for md_file in root.rglob("*.md"):
        rel_path = md_file.relative_to(root)
        if any(part.startswith(".") for part in rel_path.parts):
            continue
        if md_file.is_file():
            files.append(md_file)

    return sorted(files, key=lambda p: p.relative_to(root).as_posix())


async def load_documents(root: Path, *, default_lang: str = DEFAULT_LANG) -> list[Document]:
    """Load every garden file concurrently, preserving scan order."""
    paths = scan_documents(root)
    return list(
        await asyncio.gather(
            *(asyncio.to_thread(load_document, path, root, default_lang=default_lang) for path in paths)
        )
    )
