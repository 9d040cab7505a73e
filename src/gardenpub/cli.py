#!/usr/bin/env python3
"""
gardenpub: publish a digital garden and blog as a static site

Usage:
    gardenpub build              # Build once into dist/
    gardenpub watch              # Rebuild on every change
    gardenpub serve              # Build, serve dist/ and rebuild on change
"""

from __future__ import annotations

import asyncio
import difflib
import json
import sys
from collections.abc import Callable
from dataclasses import asdict
from typing import Any

import click
from click.exceptions import UsageError

from . import __version__ as GARDENPUB_VERSION
from .config import ConfigurationError, SiteConfig, load_config


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


class SuggestingGroup(click.Group):
    """Click group that suggests the closest command on a typo."""

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except UsageError as e:
            cmd_name = args[0] if args else ""
            if cmd_name and "No such command" in str(e):
                matches = difflib.get_close_matches(
                    cmd_name, self.list_commands(ctx), n=1, cutoff=0.6
                )
                if matches:
                    raise UsageError(f"No such command '{cmd_name}'. Did you mean '{matches[0]}'?")
            raise


def site_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command that builds the site."""
    options = [
        click.option(
            "--garden-root",
            "-g",
            type=click.Path(file_okay=False),
            help="Garden source directory (default: $GARDEN_ROOT)",
        ),
        click.option(
            "--content-dir",
            type=click.Path(file_okay=False),
            help="Static content directory (default: src/content)",
        ),
        click.option(
            "--templates-dir",
            type=click.Path(file_okay=False),
            help="Templates directory (default: src/templates)",
        ),
        click.option(
            "--output",
            "-o",
            "output_dir",
            type=click.Path(file_okay=False),
            help="Output directory (default: dist)",
        ),
        click.option("--site-url", help="Site origin for canonical URLs (e.g. https://example.com)"),
        click.option(
            "--no-clean",
            is_flag=True,
            help="Don't remove output directory before build",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _load_config(
    garden_root: str | None,
    content_dir: str | None,
    templates_dir: str | None,
    output_dir: str | None,
    site_url: str | None,
    no_clean: bool,
) -> SiteConfig:
    """Load configuration or exit with status 1."""
    try:
        return load_config(
            garden_root=garden_root,
            content_dir=content_dir,
            templates_dir=templates_dir,
            output_dir=output_dir,
            site_url=site_url,
            clean=not no_clean,
        )
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


# ─────────────────────────────────────────────────────────────────────────────
# Main CLI Group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=SuggestingGroup)
@click.version_option(version=GARDENPUB_VERSION, prog_name="gardenpub")
def cli():
    """gardenpub: publish a wiki-linked garden and a blog as a static site.

    \b
    The garden root is read from GARDEN_ROOT (or --garden-root).
    Documents tagged "public" (or containing #public) are published;
    [[Title]] links between them are resolved at build time.

    \b
    Examples:
      GARDEN_ROOT=~/notes gardenpub build
      gardenpub serve --port 8000
    """


@cli.command()
@site_options
@click.option("--json", "as_json", is_flag=True, help="Output build summary as JSON")
def build(
    garden_root: str | None,
    content_dir: str | None,
    templates_dir: str | None,
    output_dir: str | None,
    site_url: str | None,
    no_clean: bool,
    as_json: bool,
):
    """Build the site once."""
    from .core import build as core_build

    config = _load_config(garden_root, content_dir, templates_dir, output_dir, site_url, no_clean)

    try:
        result = run_async(core_build(config))
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(asdict(result), indent=2, ensure_ascii=False))
        return

    click.echo(
        f"Published {result.documents_published} garden documents and "
        f"{result.posts_published} posts to {result.output_dir}"
    )

    for title, paths in result.collisions.items():
        click.echo(f"⚠ Duplicate title {title!r}: {', '.join(paths)} (last wins)")

    unresolved = result.unresolved_links
    if unresolved:
        click.echo(f"Unresolved links ({len(unresolved)}):")
        for link in unresolved[:10]:
            click.echo(f"  - {link['source']} -> [[{link['target']}]]")
        if len(unresolved) > 10:
            click.echo(f"  ... and {len(unresolved) - 10} more")


@cli.command()
@site_options
def watch(
    garden_root: str | None,
    content_dir: str | None,
    templates_dir: str | None,
    output_dir: str | None,
    site_url: str | None,
    no_clean: bool,
):
    """Build, then rebuild whenever content, templates or the garden change.

    Failed builds are logged; watching continues.
    """
    from .core import watch as core_watch

    config = _load_config(garden_root, content_dir, templates_dir, output_dir, site_url, no_clean)

    try:
        run_async(core_watch(config))
    except KeyboardInterrupt:
        click.echo("Stopped.", err=True)


@cli.command()
@site_options
@click.option("--host", default="0.0.0.0", show_default=True, help="Address to listen on")
@click.option("--port", "-p", default=3000, show_default=True, type=click.IntRange(0, 65535))
def serve(
    garden_root: str | None,
    content_dir: str | None,
    templates_dir: str | None,
    output_dir: str | None,
    site_url: str | None,
    no_clean: bool,
    host: str,
    port: int,
):
    """Serve the output directory and rebuild on change."""
    from .core import watch as core_watch
    from .preview import PreviewServer

    config = _load_config(garden_root, content_dir, templates_dir, output_dir, site_url, no_clean)

    try:
        with PreviewServer(config.output_dir, host=host, port=port):
            run_async(core_watch(config))
    except OSError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("Stopped.", err=True)


# ─────────────────────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────────────────────


def main():
    """Entry point for gardenpub CLI."""
    from ._logging import configure_logging

    configure_logging()
    cli()


if __name__ == "__main__":
    main()
