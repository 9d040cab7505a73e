"""Tests for gardenpub.watcher."""

import threading
from dataclasses import replace

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from gardenpub.watcher import ChangeHandler, SiteWatcher, watch_roots


class Counter:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1


class TestChangeHandler:
    """Tests for ChangeHandler event filtering."""

    def test_content_changes_reported(self, tmp_path):
        counter = Counter()
        handler = ChangeHandler(counter)
        path = str(tmp_path / "note.md")

        handler.dispatch(FileCreatedEvent(path))
        handler.dispatch(FileModifiedEvent(path))
        handler.dispatch(FileDeletedEvent(path))
        handler.dispatch(FileMovedEvent(path, str(tmp_path / "renamed.md")))
        handler.dispatch(DirModifiedEvent(str(tmp_path)))

        assert counter.count == 5

    def test_access_events_ignored(self, tmp_path):
        counter = Counter()
        handler = ChangeHandler(counter)

        handler.dispatch(FileClosedEvent(str(tmp_path / "note.md")))

        assert counter.count == 0

    def test_output_dir_ignored(self, tmp_path):
        """Writes into the build output never trigger another build."""
        output = tmp_path / "dist"
        output.mkdir()
        counter = Counter()
        handler = ChangeHandler(counter, ignore=[output])

        handler.dispatch(FileModifiedEvent(str(output / "garden" / "a.html")))
        handler.dispatch(FileCreatedEvent(str(output)))

        assert counter.count == 0

    def test_move_out_of_output_dir_reported(self, tmp_path):
        output = tmp_path / "dist"
        output.mkdir()
        counter = Counter()
        handler = ChangeHandler(counter, ignore=[output])

        handler.dispatch(FileMovedEvent(str(output / "a.md"), str(tmp_path / "a.md")))

        assert counter.count == 1

    def test_sibling_with_common_prefix_not_ignored(self, tmp_path):
        output = tmp_path / "dist"
        output.mkdir()
        counter = Counter()
        handler = ChangeHandler(counter, ignore=[output])

        handler.dispatch(FileModifiedEvent(str(tmp_path / "dist-notes" / "a.md")))

        assert counter.count == 1


class TestWatchRoots:
    """Tests for watch_roots."""

    def test_all_existing_dirs(self, site_config):
        roots = watch_roots(site_config)

        assert roots == [
            site_config.content_dir.resolve(),
            site_config.garden_root.resolve(),
            site_config.templates_dir.resolve(),
        ]

    def test_missing_dirs_skipped(self, site_config, tmp_path):
        config = replace(site_config, templates_dir=tmp_path / "missing")

        assert site_config.templates_dir.resolve() not in watch_roots(config)
        assert len(watch_roots(config)) == 2

    def test_nested_roots_collapsed(self, site_config):
        """A directory inside another watched directory is covered by it."""
        nested = site_config.garden_root / "content"
        nested.mkdir()
        config = replace(site_config, content_dir=nested)

        roots = watch_roots(config)

        assert site_config.garden_root.resolve() in roots
        assert nested.resolve() not in roots


class TestSiteWatcher:
    """Tests for SiteWatcher lifecycle."""

    def test_start_stop(self, site_config):
        watcher = SiteWatcher(site_config, Counter())

        watcher.start()
        assert watcher.is_running

        watcher.stop()
        assert not watcher.is_running

    def test_nothing_to_watch(self, site_config, tmp_path):
        config = replace(
            site_config,
            garden_root=tmp_path / "a",
            content_dir=tmp_path / "b",
            templates_dir=tmp_path / "c",
        )

        with SiteWatcher(config, Counter()) as watcher:
            assert not watcher.is_running

    @pytest.mark.slow
    def test_reports_file_change(self, site_config):
        changed = threading.Event()

        with SiteWatcher(site_config, changed.set):
            (site_config.garden_root / "New.md").write_text("#public")

            assert changed.wait(timeout=5)
