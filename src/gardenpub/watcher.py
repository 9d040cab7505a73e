"""File watcher that triggers site rebuilds."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .config import SiteConfig

logger = logging.getLogger(__name__)

# Access notifications (opened/closed) do not change content
CHANGE_EVENT_TYPES = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}


class ChangeHandler(FileSystemEventHandler):
    """Calls ``callback`` for every content change outside the ignored directories."""

    def __init__(self, callback: Callable[[], None], ignore: Iterable[Path] = ()):
        """Initialize the handler.

        Args:
            callback: Called from the observer thread for each change.
            ignore: Directories whose changes are ignored (the build output).
        """
        super().__init__()
        self._callback = callback
        self._ignore = [path.resolve() for path in ignore]

    def _is_ignored(self, path: str | bytes) -> bool:
        resolved = Path(os.fsdecode(path)).resolve()
        return any(resolved == ignored or ignored in resolved.parents for ignored in self._ignore)

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in CHANGE_EVENT_TYPES:
            return

        paths = [event.src_path]
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.append(dest_path)

        if all(self._is_ignored(path) for path in paths):
            return

        self._callback()


def watch_roots(config: SiteConfig) -> list[Path]:
    """Directories to watch: content, garden and templates, without nesting."""
    candidates = [config.content_dir, config.garden_root, config.templates_dir]
    existing = []
    for path in candidates:
        if path.is_dir():
            resolved = path.resolve()
            if resolved not in existing:
                existing.append(resolved)

    # A root inside another root is already covered by the recursive watch
    return [
        root
        for root in existing
        if not any(other != root and other in root.parents for other in existing)
    ]


class SiteWatcher:
    """Watch the site sources and report changes."""

    def __init__(self, config: SiteConfig, on_change: Callable[[], None]):
        """Initialize the watcher.

        Args:
            config: Site configuration naming the directories to watch.
            on_change: Called from the observer thread on every change,
                e.g. RebuildScheduler.notify_threadsafe.
        """
        self._config = config
        self._on_change = on_change
        self._observer: Observer | None = None
        self._running = False

    def start(self) -> None:
        """Start watching for file changes."""
        if self._running:
            return

        roots = watch_roots(self._config)
        if not roots:
            logger.warning("Nothing to watch: no source directories exist")
            return

        handler = ChangeHandler(self._on_change, ignore=[self._config.output_dir])
        self._observer = Observer()
        for root in roots:
            self._observer.schedule(handler, str(root), recursive=True)
            logger.info("Started watching: %s", root)
        self._observer.start()
        self._running = True

    def stop(self) -> None:
        """Stop watching for file changes."""
        if not self._running or self._observer is None:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        self._running = False
        logger.info("Stopped file watcher")

    @property
    def is_running(self) -> bool:
        """Check if watcher is running."""
        return self._running

    def __enter__(self) -> SiteWatcher:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
