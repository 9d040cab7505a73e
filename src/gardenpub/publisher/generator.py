"""Static site generator for the garden and blog.

Main orchestrator: builds the content graph from the garden root and renders
the complete site into the output directory.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from jinja2 import Environment

from ..config import (
    GARDEN_CHANGEFREQ,
    PAGE_CHANGEFREQ,
    POST_CHANGEFREQ,
    POSTS_INDEX_CHANGEFREQ,
    SiteConfig,
)
from ..models import ResolvedDocument
from ..parser import (
    attach_backlinks,
    build_backlink_index,
    build_permalink_index,
    load_documents,
    resolve_document,
)
from .templates import create_environment, render_string, render_template
from .tree import TreeNode, build_tree

log = logging.getLogger(__name__)

# Never copied from the content directory
IGNORED_CONTENT_FILES = {".DS_Store"}


@dataclass
class SitemapUrl:
    loc: str
    lastmod: str
    changefreq: str


@dataclass
class GardenGraph:
    """The cross-document reference graph of one build."""

    permalinks: dict[str, str]
    documents: list[ResolvedDocument]  # Public documents with backlinks, in path order
    backlinks: dict[str, list[ResolvedDocument]]
    tree: TreeNode
    collisions: dict[str, list[str]] = field(default_factory=dict)

    @property
    def posts(self) -> list[ResolvedDocument]:
        """Posts, newest first."""
        posts = [doc for doc in self.documents if doc.is_post]
        return sorted(posts, key=lambda doc: doc.metadata.date, reverse=True)

    @property
    def garden(self) -> list[ResolvedDocument]:
        return [doc for doc in self.documents if not doc.is_post]


@dataclass
class BuildResult:
    """Result of site generation."""

    documents_published: int
    posts_published: int
    output_dir: str
    urls: list[SitemapUrl]
    unresolved_links: list[dict]  # [{source, target}]
    collisions: dict[str, list[str]]


def isoformat(value: datetime) -> str:
    """UTC timestamp with milliseconds and a ``Z`` suffix."""
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def output_path(output_dir: Path, url: str) -> Path:
    return output_dir / url.lstrip("/")


def source_path(html_path: Path) -> Path:
    """Location of the raw markdown published next to a page."""
    return html_path.with_suffix(".md")


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


async def build_garden_graph(config: SiteConfig) -> GardenGraph:
    """Load the garden and resolve every cross-document reference.

    Each stage is a barrier: all documents are loaded before the permalink
    index is built, the index is complete before any document is rendered,
    and backlinks are inverted only once every document has been rendered.
    """
    documents = await load_documents(config.garden_root, default_lang=config.default_lang)

    permalink_index = build_permalink_index(documents)
    permalinks = permalink_index.index

    resolved = list(
        await asyncio.gather(
            *(
                asyncio.to_thread(resolve_document, document, permalinks)
                for document in permalink_index.public_documents
            )
        )
    )

    backlinks = build_backlink_index(resolved)
    resolved = attach_backlinks(resolved, backlinks)

    log.info(
        "Garden: %d files, %d public, %d links",
        len(documents),
        len(resolved),
        sum(len(doc.links) for doc in resolved),
    )

    return GardenGraph(
        permalinks=permalinks,
        documents=resolved,
        backlinks=backlinks,
        tree=build_tree(doc for doc in resolved if not doc.is_post),
        collisions=permalink_index.collisions,
    )


class SiteGenerator:
    """Generates the static site.

    Orchestrates the full publishing pipeline:
    1. Clean the output directory
    2. Build the garden graph (permalinks, links, backlinks, tree)
    3. Render posts and garden pages, each with its raw markdown
    4. Render content pages and copy static files
    5. Render the posts index, RSS feed and sitemap
    """

    def __init__(self, config: SiteConfig):
        self.config = config
        self.output_dir = config.output_dir
        self.env: Environment = create_environment(config.templates_dir)

    async def generate(self) -> BuildResult:
        """Generate the complete static site."""
        log.info("Building %s", self.output_dir)

        self._prepare_output_dir()

        graph = await build_garden_graph(self.config)
        posts = graph.posts
        garden = graph.garden

        for post in posts:
            await self._write_post(post)

        for document in garden:
            await self._write_garden_document(document, graph.tree)

        await self._render_file("posts/index.html", "posts.html", posts=posts)
        await self._render_file("posts/rss.xml", "rss.xml", posts=posts)

        pages = await self._process_content(posts)

        urls = self._sitemap_urls(posts, garden, pages)
        await self._render_file("sitemap.xml", "sitemap.xml", urls=urls)

        unresolved = [
            {"source": doc.path, "target": target}
            for doc in graph.documents
            for target in doc.unresolved
        ]

        log.info("Published %d garden documents and %d posts", len(garden), len(posts))

        return BuildResult(
            documents_published=len(garden),
            posts_published=len(posts),
            output_dir=str(self.output_dir),
            urls=urls,
            unresolved_links=unresolved,
            collisions=graph.collisions,
        )

    def _prepare_output_dir(self) -> None:
        output = self.output_dir.resolve()
        for protected in (self.config.garden_root, self.config.content_dir):
            protected = protected.resolve()
            if output == protected or output in protected.parents:
                raise ValueError(f"Refusing to use {self.output_dir} as output: it contains {protected}")

        if self.config.clean and self.output_dir.exists():
            shutil.rmtree(self.output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    async def _write(self, url: str, text: str) -> Path:
        path = output_path(self.output_dir, url)
        await asyncio.to_thread(_write_text, path, text)
        return path

    async def _render_file(self, url: str, template: str, **context) -> None:
        html = render_template(self.env, template, site=self.config, **context)
        await self._write(url, html)

    async def _write_post(self, post: ResolvedDocument) -> None:
        html = render_template(self.env, "post.html", site=self.config, post=post)
        for url in (post.url, post.canonical_url):
            path = await self._write(url, html)
            await asyncio.to_thread(_write_text, source_path(path), post.document.source)

    async def _write_garden_document(self, document: ResolvedDocument, tree: TreeNode) -> None:
        html = render_template(self.env, "garden.html", site=self.config, doc=document, tree=tree)
        path = await self._write(document.url, html)
        await asyncio.to_thread(_write_text, source_path(path), document.document.source)

    async def _process_content(self, posts: list[ResolvedDocument]) -> dict[str, datetime]:
        """Render HTML pages and copy everything else from the content directory.

        Returns:
            Dict mapping each rendered page's relative path to its mtime.
        """
        content_dir = self.config.content_dir
        pages: dict[str, datetime] = {}

        if not content_dir.is_dir():
            log.debug("No content directory at %s", content_dir)
            return pages

        for src in sorted(content_dir.rglob("*")):
            if not src.is_file() or src.name in IGNORED_CONTENT_FILES:
                continue

            rel_path = src.relative_to(content_dir).as_posix()
            dist = self.output_dir / rel_path

            if src.suffix == ".html":
                template = await asyncio.to_thread(src.read_text, encoding="utf-8")
                html = render_string(self.env, template, site=self.config, posts=posts)
                await asyncio.to_thread(_write_text, dist, html)
                pages[rel_path] = datetime.fromtimestamp(src.stat().st_mtime, tz=UTC)
            else:
                dist.parent.mkdir(parents=True, exist_ok=True)
                await asyncio.to_thread(shutil.copyfile, src, dist)

        return pages

    def _posts_lastmod(self, posts: list[ResolvedDocument]) -> datetime:
        candidates = [post.mtime for post in posts]
        posts_template = self.config.templates_dir / "posts.html"
        if posts_template.is_file():
            candidates.append(datetime.fromtimestamp(posts_template.stat().st_mtime, tz=UTC))
        return max(candidates, default=datetime.now(UTC))

    def _sitemap_urls(
        self,
        posts: list[ResolvedDocument],
        garden: list[ResolvedDocument],
        pages: dict[str, datetime],
    ) -> list[SitemapUrl]:
        absolute = self.config.absolute_url
        urls: list[SitemapUrl] = []

        if "index.html" in pages:
            urls.append(SitemapUrl(absolute("/"), isoformat(pages["index.html"]), PAGE_CHANGEFREQ))

        urls.append(
            SitemapUrl(absolute("/posts/"), isoformat(self._posts_lastmod(posts)), POSTS_INDEX_CHANGEFREQ)
        )

        for post in posts:
            urls.append(SitemapUrl(absolute(post.canonical_url), isoformat(post.mtime), POST_CHANGEFREQ))

        for document in garden:
            urls.append(
                SitemapUrl(
                    absolute(document.canonical_url),
                    isoformat(document.lastmod or document.mtime),
                    document.metadata.changefreq or GARDEN_CHANGEFREQ,
                )
            )

        for rel_path, mtime in pages.items():
            if rel_path == "index.html":
                continue
            if rel_path.endswith("/index.html"):
                loc = "/" + rel_path[: -len("index.html")]
            else:
                loc = "/" + rel_path
            urls.append(SitemapUrl(absolute(loc), isoformat(mtime), PAGE_CHANGEFREQ))

        return urls
