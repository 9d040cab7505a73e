"""Markdown rendering with wiki-link resolution.

Renders a garden document body with markdown-it-py and, in the same pass,
collects everything the site needs to know about it:

- ``[[Title]]`` and ``[[Title||||||Alias]]`` references are resolved against the
  permalink index. Known titles become links and are recorded as outbound
  edges; unknown titles degrade to plain text.
- Headings get stable ids, computed from the raw heading text before the
  typographer rewrites quotes and dashes.
- The table of contents is captured, then the first level-1 heading is
  removed from the body and promoted to the document title.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from markdown_it import MarkdownIt
from markdown_it.rules_core import StateCore
from markdown_it.rules_inline import StateInline
from markdown_it.token import Token
from mdit_py_plugins.footnote import footnote_plugin

from ..config import DEFAULT_LANG
from ..models import Document, ResolvedDocument, TocEntry

log = logging.getLogger(__name__)

WIKILINK_ALIAS_DIVIDER = "||||||"

# Opening/closing double and single quotes per language
QUOTES = {
    "ru": "«»„“",
    "uk": "«»„“",
    "de": "„“‚‘",
    "fr": "«»‹›",
}
DEFAULT_QUOTES = "“”‘’"

_SLUG_STRIP = re.compile(r"[^\w\- ]")


@dataclass
class MarkdownResult:
    """Result of rendering one markdown body."""

    html: str
    title: str | None = None  # Text of the first level-1 heading, if any
    title_id: str = ""
    toc: list[TocEntry] = field(default_factory=list)
    links: list[str] = field(default_factory=list)  # Resolved URLs, one per reference
    unresolved: list[str] = field(default_factory=list)  # Titles missing from the index
    has_code_blocks: bool = False


def heading_slug(text: str, used: set[str]) -> str:
    """GitHub-style heading id, made unique with a numeric suffix."""
    base = _SLUG_STRIP.sub("", text.strip().lower()).replace(" ", "-")
    slug = base
    counter = 1
    while slug in used:
        slug = f"{base}-{counter}"
        counter += 1
    used.add(slug)
    return slug


def _inline_text(token: Token) -> str:
    """Plain text of an inline token, like mdast-util-to-string."""
    parts = []
    for child in token.children or []:
        if child.type in ("text", "text_special", "code_inline"):
            parts.append(child.content)
        elif child.type in ("softbreak", "hardbreak"):
            parts.append("\n")
    return "".join(parts)


def _wikilink_rule(state: StateInline, silent: bool) -> bool:
    """Inline rule for ``[[Target]]`` / ``[[Target||||||Alias]]``."""
    start = state.pos
    if not state.src.startswith("[[", start):
        return False

    end = state.src.find("]]", start + 2)
    if end < 0:
        return False

    inner = state.src[start + 2 : end]
    if "\n" in inner:
        return False

    target, _, alias = inner.partition(WIKILINK_ALIAS_DIVIDER)
    target = target.strip()
    label = alias.strip() or target
    if not target:
        return False

    if not silent:
        permalinks = state.env.get("permalinks") or {}
        url = permalinks.get(target)

        if url is None:
            state.env.setdefault("unresolved", []).append(target)
            # text_special is skipped by the typographer, text_join merges it back
            token = state.push("text_special", "", 0)
            token.content = label
        else:
            state.env.setdefault("links", []).append(url)
            token = state.push("link_open", "a", 1)
            token.attrSet("href", url)
            token.attrSet("class", "internal")
            token.markup = "wikilink"
            token = state.push("text_special", "", 0)
            token.content = label
            token = state.push("link_close", "a", -1)
            token.markup = "wikilink"

    state.pos = end + 2
    return True


def _heading_ids(state: StateCore) -> None:
    """Assign heading ids from the raw text (runs before the typographer)."""
    used: set[str] = state.env.setdefault("heading_slugs", set())
    tokens = state.tokens
    for i, token in enumerate(tokens):
        if token.type == "heading_open":
            token.attrSet("id", heading_slug(_inline_text(tokens[i + 1]), used))


def _outline(state: StateCore) -> None:
    """Capture TOC and code-block presence, then promote the first h1 to title."""
    tokens = state.tokens
    toc: list[TocEntry] = []
    title_index: int | None = None
    has_code_blocks = False

    for i, token in enumerate(tokens):
        if token.type in ("fence", "code_block"):
            has_code_blocks = True
        elif token.type == "heading_open" and token.level == 0:
            depth = int(token.tag[1:])
            toc.append(TocEntry(_inline_text(tokens[i + 1]), str(token.attrGet("id") or ""), depth))
            if depth == 1 and title_index is None:
                title_index = i
                state.env["title"] = toc[-1].title
                state.env["title_id"] = toc[-1].id

    if title_index is not None:
        # heading_open, inline, heading_close
        del tokens[title_index : title_index + 3]

    state.env["toc"] = toc
    state.env["has_code_blocks"] = has_code_blocks


def _render_link_open(self, tokens: list[Token], idx: int, options, env) -> str:
    token = tokens[idx]
    href = str(token.attrGet("href") or "")
    if href.startswith(("http://", "https://")):
        token.attrSet("rel", "noopener")
    return self.renderToken(tokens, idx, options, env)


@lru_cache(maxsize=None)
def create_markdown_parser(lang: str = DEFAULT_LANG) -> MarkdownIt:
    """Create the configured markdown-it parser for a language."""
    md = MarkdownIt(
        "commonmark",
        {"typographer": True, "quotes": QUOTES.get(lang, DEFAULT_QUOTES)},
    )
    md.enable(["table", "strikethrough", "replacements", "smartquotes"])
    md.use(footnote_plugin)
    md.inline.ruler.before("link", "wikilink", _wikilink_rule)
    md.core.ruler.before("replacements", "heading_ids", _heading_ids)
    md.core.ruler.push("outline", _outline)
    md.add_render_rule("link_open", _render_link_open)
    return md


def typograph(text: str, *, lang: str = DEFAULT_LANG) -> str:
    """Apply typographic normalization (quotes, dashes, ellipses) to plain text.

    Inline code keeps its content verbatim; markdown markers are dropped.
    """
    if not text or not text.strip():
        return ""

    tokens = create_markdown_parser(lang).parseInline(text, {})
    return "".join(_inline_text(token) for token in tokens).strip()


def render_markdown(
    content: str,
    permalinks: Mapping[str, str] | None = None,
    *,
    lang: str = DEFAULT_LANG,
) -> MarkdownResult:
    """Render markdown to HTML, resolving wiki-links against ``permalinks``.

    Args:
        content: Markdown body (front-matter already removed).
        permalinks: Title to canonical URL mapping. Missing means every
            wiki-link is unresolved.
        lang: Document language, selects typographic quotes.
    """
    md = create_markdown_parser(lang)
    env: dict[str, Any] = {"permalinks": permalinks or {}, "links": [], "unresolved": []}

    tokens = md.parse(content, env)
    html = md.renderer.render(tokens, md.options, env)

    return MarkdownResult(
        html=html,
        title=env.get("title"),
        title_id=env.get("title_id", ""),
        toc=env.get("toc", []),
        links=env["links"],
        unresolved=env["unresolved"],
        has_code_blocks=env.get("has_code_blocks", False),
    )


def resolve_document(document: Document, permalinks: Mapping[str, str]) -> ResolvedDocument:
    """Second pass for one public document: render and collect outbound links."""
    result = render_markdown(document.raw_body, permalinks, lang=document.lang)

    for target in result.unresolved:
        log.debug("Unresolved wiki-link in %s: [[%s]]", document.path, target)

    return ResolvedDocument(
        document=document,
        title=result.title or document.title,
        title_id=result.title_id,
        html=result.html,
        toc=tuple(result.toc),
        links=tuple(dict.fromkeys(result.links)),
        has_code_blocks=result.has_code_blocks,
        unresolved=tuple(result.unresolved),
    )

