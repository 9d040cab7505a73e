"""Garden parsing: loading, permalink index, link resolution, backlinks."""

from .links import attach_backlinks, build_backlink_index, compute_lastmod
from .markdown import ParseError, load_document, load_documents, scan_documents, split_frontmatter
from .md_renderer import MarkdownResult, render_markdown, resolve_document, typograph
from .title_index import PermalinkIndex, assign_urls, build_permalink_index

__all__ = [
    "load_document",
    "load_documents",
    "scan_documents",
    "split_frontmatter",
    "ParseError",
    "PermalinkIndex",
    "assign_urls",
    "build_permalink_index",
    "MarkdownResult",
    "render_markdown",
    "resolve_document",
    "typograph",
    "build_backlink_index",
    "compute_lastmod",
    "attach_backlinks",
]
