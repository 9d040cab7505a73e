"""Tests for the gardenpub CLI."""

import json

import pytest

from gardenpub import __version__
from gardenpub.cli import cli


@pytest.fixture
def build_args(site_config):
    return [
        "build",
        "--content-dir",
        str(site_config.content_dir),
        "--templates-dir",
        str(site_config.templates_dir),
        "--output",
        str(site_config.output_dir),
        "--site-url",
        "https://example.com",
    ]


class TestBuildCommand:
    """Tests for 'gardenpub build'."""

    def test_missing_garden_root_exits_1(self, runner, monkeypatch):
        monkeypatch.delenv("GARDEN_ROOT", raising=False)

        result = runner.invoke(cli, ["build"])

        assert result.exit_code == 1
        assert "Error: Unconfigured GARDEN_ROOT" in result.output

    def test_garden_root_option(self, runner, garden, write_note, build_args, monkeypatch):
        monkeypatch.delenv("GARDEN_ROOT", raising=False)
        write_note("A.md", "#public")

        result = runner.invoke(cli, [*build_args, "--garden-root", str(garden)])

        assert result.exit_code == 0, result.output
        assert "Published 1 garden documents and 0 posts" in result.output

    def test_builds_site(self, runner, site_config, write_note, build_args):
        write_note("A.md", "[[B]] and [[Missing]]", tags=["public"])
        write_note("B.md", "#public")

        result = runner.invoke(cli, build_args)

        assert result.exit_code == 0, result.output
        assert "Published 2 garden documents" in result.output
        assert "A.md -> [[Missing]]" in result.output
        assert (site_config.output_dir / "garden" / "a.html").exists()

    def test_reports_collisions(self, runner, write_note, build_args):
        write_note("x/Same.md", "#public")
        write_note("y/Same.md", "#public")

        result = runner.invoke(cli, build_args)

        assert result.exit_code == 0, result.output
        assert "Duplicate title 'Same'" in result.output

    def test_json_output(self, runner, write_note, build_args):
        write_note("A.md", "#public")

        result = runner.invoke(cli, [*build_args, "--json"])

        data = json.loads(result.output)
        assert data["documents_published"] == 1
        assert data["urls"][0]["changefreq"] == "daily"

    def test_build_failure_exits_1(self, runner, garden, write_note, monkeypatch):
        """An output directory that contains the garden is refused."""
        write_note("A.md", "#public")

        result = runner.invoke(cli, ["build", "--output", str(garden.parent)])

        assert result.exit_code == 1
        assert "Error: Refusing" in result.output
        assert (garden / "A.md").exists()


class TestCliGroup:
    """Tests for the command group itself."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])

        for command in ("build", "watch", "serve"):
            assert command in result.output

    def test_typo_suggests_command(self, runner):
        result = runner.invoke(cli, ["biuld"])

        assert result.exit_code != 0
        assert "Did you mean 'build'?" in result.output
