"""Title-to-permalink index for resolving wiki-style links.

First pass of a build: every public document gets its canonical URL, and the
index maps document titles to those URLs. The index must be complete before
any document is rendered, since any document may link to any other.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field, replace

from ..models import Document

log = logging.getLogger(__name__)

POSTS_COLLECTION = "posts"


@dataclass
class PermalinkIndex:
    """Result of the first pass.

    Attributes:
        index: Title to canonical URL.
        public_documents: Public documents, in enumeration order, with URLs set.
        collisions: Titles claimed by more than one document, mapped to the
            paths involved. The last path wins.
    """

    index: dict[str, str] = field(default_factory=dict)
    public_documents: list[Document] = field(default_factory=list)
    collisions: dict[str, list[str]] = field(default_factory=dict)


def garden_url(document: Document) -> str:
    """Garden URL: ``/garden`` + lowercased source directory + slug.

    ``Notes/Deep/Some Note.md`` becomes ``/garden/notes/deep/some-note.html``.
    """
    directory = posixpath.dirname("/" + document.path).lower()
    return "/garden" + posixpath.join(directory, document.slug + ".html")


def assign_urls(document: Document) -> Document:
    """Return a copy of ``document`` with its output and canonical URLs set.

    Posts get a date-prefixed file name, a primary ``/posts/`` URL and a
    language-prefixed canonical URL. A post without a date cannot be placed
    and is published as a regular garden document.
    """
    if document.collection == POSTS_COLLECTION:
        if document.date is None:
            log.warning("Post %s has no date; publishing it as a garden document", document.path)
        else:
            file_name = f"{document.date.isoformat()}-{document.slug}.html"
            return replace(
                document,
                url=f"/posts/{file_name}",
                canonical_url=f"/{document.lang}/posts/{file_name}",
                file_name=file_name,
                is_post=True,
            )

    url = garden_url(document)
    return replace(
        document,
        url=url,
        canonical_url=url,
        file_name=posixpath.basename(url),
        is_post=False,
    )


def build_permalink_index(documents: list[Document]) -> PermalinkIndex:
    """Build the title index from every public document.

    Documents are taken in the given order, which callers keep sorted by
    path. When two public documents share a title the later one wins and
    the collision is logged.
    """
    result = PermalinkIndex()
    owners: dict[str, str] = {}

    for document in documents:
        if not document.is_public:
            continue

        document = assign_urls(document)

        if document.title in owners:
            paths = result.collisions.setdefault(document.title, [owners[document.title]])
            paths.append(document.path)
            log.warning(
                "Duplicate title %r: %s overrides %s",
                document.title,
                document.path,
                owners[document.title],
            )

        owners[document.title] = document.path
        result.index[document.title] = document.canonical_url
        result.public_documents.append(document)

    return result
