"""Backlink index and change-aware lastmod."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from ..models import ResolvedDocument


def build_backlink_index(
    documents: Iterable[ResolvedDocument],
) -> dict[str, list[ResolvedDocument]]:
    """Invert outbound links into a mapping of target URL to linking documents.

    Needs every document's outbound links, so it can only run once the whole
    resolution pass is done. Sources keep the order in which they were
    resolved; a source appears once per target however often it links there.

    Args:
        documents: Resolved documents, in processing order.

    Returns:
        Dict mapping canonical URL to the documents linking to it.
    """
    backlinks: dict[str, list[ResolvedDocument]] = {}

    for source in documents:
        for target in dict.fromkeys(source.links):
            backlinks.setdefault(target, []).append(source)

    return backlinks


def compute_lastmod(
    document: ResolvedDocument,
    backlinks: Iterable[ResolvedDocument] = (),
) -> datetime:
    """Freshness of a rendered page.

    A page renders the titles of everything linking to it, so it is as fresh
    as the newest of its own source and its backlinks' sources.
    """
    return max([document.mtime, *(source.mtime for source in backlinks)])


def attach_backlinks(
    documents: list[ResolvedDocument],
    backlink_index: dict[str, list[ResolvedDocument]],
) -> list[ResolvedDocument]:
    """Return copies of ``documents`` with backlinks and lastmod filled in."""
    attached = []
    for document in documents:
        sources = backlink_index.get(document.canonical_url, [])
        attached.append(
            replace(
                document,
                backlinks=tuple(sources),
                lastmod=compute_lastmod(document, sources),
            )
        )
    return attached
