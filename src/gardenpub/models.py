"""Data model for garden documents and the records derived from them."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_tags(value: Any) -> list[str]:
    """Normalize a front-matter ``tags`` value to a list of unique tag names.

    Accepts a missing value, a single scalar, or a list. Leading ``#`` markers
    are stripped; empty tags and duplicates are dropped, keeping first-seen order.
    """
    if value is None:
        return []
    if not isinstance(value, (list, tuple, set)):
        value = [value]

    tags: list[str] = []
    for item in value:
        if item is None:
            continue
        tag = str(item).strip().lstrip("#")
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class DocumentMetadata(BaseModel):
    """Front-matter metadata of a garden document.

    Only the keys the site builder understands are typed; anything else is
    kept as an extra field and passed through to templates.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    tags: list[str] = Field(default_factory=list)
    collection: str | None = None  # "posts" publishes the document as a blog post
    slug: str | None = None  # Overrides the slug derived from the title
    summary: str = ""
    date: dt.date | None = None  # Publication date (posts)
    date_formatted: str = Field(default="", alias="dateFormatted")
    lang: str | None = None
    changefreq: str | None = None  # Sitemap hint

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: Any) -> list[str]:
        return normalize_tags(value)

    @field_validator("summary", "date_formatted", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("slug", "collection", "lang", "changefreq", mode="before")
    @classmethod
    def _scalar_to_str(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("date", mode="before")
    @classmethod
    def _datetime_to_date(cls, value: Any) -> Any:
        if isinstance(value, dt.datetime):
            return value.date()
        return value


class TocEntry(NamedTuple):
    """A heading captured for the table of contents."""

    title: str
    id: str
    depth: int


@dataclass(frozen=True)
class Document:
    """One garden source file, as read from disk.

    Constructed fresh on every build. Later pipeline stages derive new
    records with dataclasses.replace rather than mutating.
    """

    path: str  # Relative POSIX path inside the garden root (stable identity)
    title: str  # Filename-derived default
    metadata: DocumentMetadata
    tags: tuple[str, ...]
    is_public: bool
    raw_body: str  # Body without front-matter, cut at the hidden marker
    source: str  # Full source text, cut at the hidden marker
    mtime: dt.datetime
    dirs: tuple[str, ...]
    slug: str
    lang: str
    summary: str
    url: str = ""  # Primary output location
    canonical_url: str = ""  # Used by wiki-links, sitemap and feed
    file_name: str = ""  # Output file name, e.g. "2021-01-01-slug.html" for posts
    is_post: bool = False

    @property
    def collection(self) -> str | None:
        return self.metadata.collection

    @property
    def date(self) -> dt.date | None:
        return self.metadata.date


@dataclass(frozen=True)
class ResolvedDocument:
    """A public document after wiki-link resolution and rendering."""

    document: Document
    title: str
    title_id: str
    html: str
    toc: tuple[TocEntry, ...]
    links: tuple[str, ...]  # Resolved outbound canonical URLs, first-seen order
    has_code_blocks: bool
    unresolved: tuple[str, ...] = ()  # Wiki-link titles missing from the index
    backlinks: tuple[ResolvedDocument, ...] = ()
    lastmod: dt.datetime | None = None

    @property
    def path(self) -> str:
        return self.document.path

    @property
    def url(self) -> str:
        return self.document.url

    @property
    def canonical_url(self) -> str:
        return self.document.canonical_url

    @property
    def mtime(self) -> dt.datetime:
        return self.document.mtime

    @property
    def dirs(self) -> tuple[str, ...]:
        return self.document.dirs

    @property
    def lang(self) -> str:
        return self.document.lang

    @property
    def summary(self) -> str:
        return self.document.summary

    @property
    def metadata(self) -> DocumentMetadata:
        return self.document.metadata

    @property
    def is_post(self) -> bool:
        return self.document.is_post
