"""Shared test fixtures for the gardenpub test suite.

Design:
- garden: Isolated garden root in a temp directory, GARDEN_ROOT pointed at it
- write_note: Helper writing garden files with optional front-matter
- site_config: SiteConfig with every directory under tmp_path
- Async helpers: pytest-asyncio configured with function scope
"""

import os
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from gardenpub.config import SiteConfig


# ─────────────────────────────────────────────────────────────────────────────
# Markers
# ─────────────────────────────────────────────────────────────────────────────


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def garden(tmp_path: Path) -> Generator[Path, None, None]:
    """Create an isolated garden root.

    Sets GARDEN_ROOT to the temp directory, yields the path, then restores
    the original value.

    Usage:
        def test_something(garden):
            (garden / "Note.md").write_text("#public\\n")
    """
    root = tmp_path / "garden"
    root.mkdir()

    original = os.environ.get("GARDEN_ROOT")
    os.environ["GARDEN_ROOT"] = str(root)

    yield root

    if original is not None:
        os.environ["GARDEN_ROOT"] = original
    else:
        os.environ.pop("GARDEN_ROOT", None)


@pytest.fixture
def write_note(garden: Path) -> Callable[..., Path]:
    """Helper writing a garden file.

    Usage:
        def test_links(write_note):
            write_note("A.md", "See [[B]]", tags=["public"])
    """

    def _write(rel_path: str, body: str = "", *, tags: list[str] | None = None, **meta) -> Path:
        path = garden / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)

        lines = []
        if tags is not None:
            lines.append(f"tags: [{', '.join(tags)}]")
        for key, value in meta.items():
            lines.append(f"{key}: {value}")

        text = body
        if lines:
            text = "---\n" + "\n".join(lines) + "\n---\n\n" + body

        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def site_config(garden: Path, tmp_path: Path) -> SiteConfig:
    """SiteConfig whose content, templates and output all live under tmp_path."""
    content = tmp_path / "content"
    content.mkdir()
    templates = tmp_path / "templates"
    templates.mkdir()

    return SiteConfig(
        garden_root=garden,
        content_dir=content,
        templates_dir=templates,
        output_dir=tmp_path / "dist",
        site_url="https://example.com",
        default_lang="ru",
    )

