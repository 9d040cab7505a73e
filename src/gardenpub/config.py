"""Configuration management for gardenpub.

All settings are collected once at process start into a SiteConfig and passed
explicitly to the components that need them. Defaults are documented here
rather than scattered throughout the codebase.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

# Required: root directory of the garden (wiki-linked markdown files)
GARDEN_ROOT_ENV = "GARDEN_ROOT"

DEFAULT_CONTENT_DIR = Path("src/content")
DEFAULT_TEMPLATES_DIR = Path("src/templates")
DEFAULT_OUTPUT_DIR = Path("dist")
DEFAULT_SITE_URL = "https://vslinko.com"
DEFAULT_LANG = "ru"

# Documents tagged with this (or containing "#public") are published
PUBLIC_TAG = "public"

# Everything after this marker stays private
HIDDEN_MARKER = "<!--hidden-->"

# Sitemap change-frequency hints
GARDEN_CHANGEFREQ = "monthly"
POST_CHANGEFREQ = "monthly"
POSTS_INDEX_CHANGEFREQ = "daily"
PAGE_CHANGEFREQ = "monthly"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


@dataclass(frozen=True)
class SiteConfig:
    """Settings for one site build.

    Attributes:
        garden_root: Directory containing the garden markdown files.
        content_dir: Static content (HTML pages, CSS, JS, media).
        templates_dir: Jinja2 templates for garden pages, posts, sitemap, feed.
        output_dir: Build output. Deleted and recreated on every build.
        site_url: Absolute origin used for canonical URLs, without trailing slash.
        default_lang: Language used when a document does not declare one.
        clean: Remove the output directory before building.
    """

    garden_root: Path
    content_dir: Path = DEFAULT_CONTENT_DIR
    templates_dir: Path = DEFAULT_TEMPLATES_DIR
    output_dir: Path = DEFAULT_OUTPUT_DIR
    site_url: str = DEFAULT_SITE_URL
    default_lang: str = DEFAULT_LANG
    clean: bool = True

    def absolute_url(self, url: str) -> str:
        """Prefix a site-relative URL with the site origin."""
        return self.site_url + url


def load_config(
    environ: Mapping[str, str] | None = None,
    *,
    garden_root: str | Path | None = None,
    content_dir: str | Path | None = None,
    templates_dir: str | Path | None = None,
    output_dir: str | Path | None = None,
    site_url: str | None = None,
    default_lang: str | None = None,
    clean: bool = True,
) -> SiteConfig:
    """Build a SiteConfig from the environment, with explicit overrides.

    Explicit keyword arguments (e.g. from CLI options) take precedence over
    environment variables, which take precedence over defaults.

    Args:
        environ: Environment mapping. Defaults to os.environ.

    Raises:
        ConfigurationError: If GARDEN_ROOT is not set or does not exist.
    """
    env = os.environ if environ is None else environ

    root_value = garden_root or env.get(GARDEN_ROOT_ENV, "").strip()
    if not root_value:
        raise ConfigurationError(
            f"Unconfigured {GARDEN_ROOT_ENV}. Set it to the directory containing "
            "your garden, or pass --garden-root."
        )

    root = Path(root_value).expanduser()
    if not root.is_dir():
        raise ConfigurationError(f"{GARDEN_ROOT_ENV} is not a directory: {root}")

    url = site_url or env.get("GARDENPUB_SITE_URL") or DEFAULT_SITE_URL

    return SiteConfig(
        garden_root=root,
        content_dir=Path(content_dir or env.get("GARDENPUB_CONTENT_DIR") or DEFAULT_CONTENT_DIR),
        templates_dir=Path(
            templates_dir or env.get("GARDENPUB_TEMPLATES_DIR") or DEFAULT_TEMPLATES_DIR
        ),
        output_dir=Path(output_dir or env.get("GARDENPUB_OUTPUT_DIR") or DEFAULT_OUTPUT_DIR),
        site_url=url.rstrip("/"),
        default_lang=default_lang or env.get("GARDENPUB_DEFAULT_LANG") or DEFAULT_LANG,
        clean=clean,
    )
