"""Build and watch entry points shared by the CLI.

One-shot builds let failures propagate. Watch mode runs every build
through the RebuildScheduler, which logs failures and keeps watching, so
a preview server keeps serving the last good output.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .config import SiteConfig
from .publisher import BuildResult, SiteGenerator
from .scheduler import RebuildScheduler
from .watcher import SiteWatcher

log = logging.getLogger(__name__)


async def build(config: SiteConfig) -> BuildResult:
    """Run the whole pipeline once."""
    return await SiteGenerator(config).generate()


def make_build(config: SiteConfig) -> Callable[[], Awaitable[BuildResult]]:
    """A fresh build per call: nothing is carried over between builds."""

    async def run() -> BuildResult:
        result = await build(config)
        log.info("Built %d pages into %s", len(result.urls), result.output_dir)
        return result

    return run


async def watch(
    config: SiteConfig,
    *,
    stop_event: asyncio.Event | None = None,
    scheduler: RebuildScheduler | None = None,
) -> RebuildScheduler:
    """Build once, then rebuild on every change until ``stop_event`` is set.

    Args:
        config: Site configuration.
        stop_event: Ends watching when set. Without one, watches until cancelled.
        scheduler: Scheduler to use; defaults to one running a full build.

    Returns:
        The scheduler, for its build counters.
    """
    scheduler = scheduler or RebuildScheduler(make_build(config))
    runner = asyncio.create_task(scheduler.run())

    # Initial build goes through the scheduler like any other change
    scheduler.notify()

    watcher = SiteWatcher(config, scheduler.notify_threadsafe)
    try:
        watcher.start()
        if stop_event is None:
            await runner
        else:
            await stop_event.wait()
    finally:
        watcher.stop()
        scheduler.stop()
        await runner

    return scheduler
