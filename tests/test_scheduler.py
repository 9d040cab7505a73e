"""Tests for gardenpub.scheduler: single-flight, coalescing rebuilds."""

import asyncio

import pytest
import pytest_asyncio

from gardenpub.scheduler import (
    TRANSITIONS,
    Message,
    RebuildScheduler,
    SchedulerState,
    transition,
)


class GatedBuild:
    """Build function that blocks until its gate opens."""

    def __init__(self, fail: bool = False):
        self.calls = 0
        self.fail = fail
        self.started = asyncio.Event()
        self.gate = asyncio.Event()

    async def __call__(self):
        self.calls += 1
        self.started.set()
        await self.gate.wait()
        if self.fail:
            raise RuntimeError("boom")


async def settle(rounds: int = 20) -> None:
    """Let queued messages be handled."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest_asyncio.fixture
async def running():
    """Start a scheduler with a gated build; stop it afterwards."""
    build = GatedBuild()
    scheduler = RebuildScheduler(build)
    runner = asyncio.create_task(scheduler.run())

    yield scheduler, build

    build.gate.set()
    scheduler.stop()
    await asyncio.wait_for(runner, timeout=5)


# ─────────────────────────────────────────────────────────────────────────────
# Transition table
# ─────────────────────────────────────────────────────────────────────────────


class TestTransitions:
    """Tests for the pure transition function."""

    def test_idle_change_starts_build(self):
        assert transition(SchedulerState.IDLE, Message.CHANGE) == (SchedulerState.BUILDING, True)

    def test_change_while_building_sets_pending(self):
        assert transition(SchedulerState.BUILDING, Message.CHANGE) == (
            SchedulerState.BUILDING_WITH_PENDING,
            False,
        )
        assert transition(SchedulerState.BUILDING_WITH_PENDING, Message.CHANGE) == (
            SchedulerState.BUILDING_WITH_PENDING,
            False,
        )

    def test_done_with_pending_starts_one_more(self):
        assert transition(SchedulerState.BUILDING_WITH_PENDING, Message.BUILD_DONE) == (
            SchedulerState.BUILDING,
            True,
        )

    def test_done_returns_to_idle(self):
        assert transition(SchedulerState.BUILDING, Message.BUILD_DONE) == (
            SchedulerState.IDLE,
            False,
        )

    def test_done_while_idle_is_invalid(self):
        with pytest.raises(ValueError, match="while idle"):
            transition(SchedulerState.IDLE, Message.BUILD_DONE)

    def test_table_is_complete(self):
        assert len(TRANSITIONS) == 5


# ─────────────────────────────────────────────────────────────────────────────
# Running scheduler
# ─────────────────────────────────────────────────────────────────────────────


class TestRebuildScheduler:
    """Tests for RebuildScheduler."""

    @pytest.mark.asyncio
    async def test_single_change_single_build(self, running):
        scheduler, build = running

        scheduler.notify()
        await build.started.wait()
        assert scheduler.state is SchedulerState.BUILDING

        build.gate.set()
        await asyncio.wait_for(scheduler.wait_idle(), timeout=5)

        assert build.calls == 1
        assert scheduler.state is SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_burst_coalesces_into_one_followup(self, running):
        """Five changes during a build produce exactly one more build."""
        scheduler, build = running

        scheduler.notify()
        await build.started.wait()

        for _ in range(5):
            scheduler.notify()
        await settle()

        assert scheduler.state is SchedulerState.BUILDING_WITH_PENDING
        assert build.calls == 1

        build.gate.set()
        await asyncio.wait_for(scheduler.wait_idle(), timeout=5)

        assert build.calls == 2
        assert scheduler.builds_started == 2
        assert scheduler.state is SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_never_overlaps(self):
        """At most one build runs at any moment."""
        active = 0
        peak = 0

        async def build():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        scheduler = RebuildScheduler(build)
        runner = asyncio.create_task(scheduler.run())
        for _ in range(3):
            scheduler.notify()
            await asyncio.sleep(0.005)
        await asyncio.wait_for(scheduler.wait_idle(), timeout=5)
        scheduler.stop()
        await runner

        assert peak == 1

    @pytest.mark.asyncio
    async def test_failure_releases_state(self):
        """A failed build is logged and the next change builds again."""
        build = GatedBuild(fail=True)
        build.gate.set()
        scheduler = RebuildScheduler(build)
        runner = asyncio.create_task(scheduler.run())

        scheduler.notify()
        await asyncio.wait_for(scheduler.wait_idle(), timeout=5)

        assert scheduler.state is SchedulerState.IDLE
        assert scheduler.builds_failed == 1

        scheduler.notify()
        await asyncio.wait_for(scheduler.wait_idle(), timeout=5)

        assert build.calls == 2
        assert scheduler.builds_failed == 2

        scheduler.stop()
        await asyncio.wait_for(runner, timeout=5)

    @pytest.mark.asyncio
    async def test_failure_with_pending_runs_followup(self):
        build = GatedBuild(fail=True)
        scheduler = RebuildScheduler(build)
        runner = asyncio.create_task(scheduler.run())

        scheduler.notify()
        await build.started.wait()
        scheduler.notify()
        await settle()
        build.gate.set()
        await asyncio.wait_for(scheduler.wait_idle(), timeout=5)

        assert build.calls == 2
        assert scheduler.builds_failed == 2

        scheduler.stop()
        await asyncio.wait_for(runner, timeout=5)

    @pytest.mark.asyncio
    async def test_stop_drops_pending_build(self):
        """Stopping waits for the in-flight build but skips the follow-up."""
        build = GatedBuild()
        scheduler = RebuildScheduler(build)
        runner = asyncio.create_task(scheduler.run())

        scheduler.notify()
        await build.started.wait()
        scheduler.notify()
        scheduler.stop()
        await settle()

        assert not runner.done()

        build.gate.set()
        await asyncio.wait_for(runner, timeout=5)

        assert build.calls == 1
        assert scheduler.state is SchedulerState.IDLE

    @pytest.mark.asyncio
    async def test_stop_when_idle(self):
        scheduler = RebuildScheduler(GatedBuild())
        runner = asyncio.create_task(scheduler.run())

        scheduler.stop()
        await asyncio.wait_for(runner, timeout=5)

        assert scheduler.builds_started == 0

    @pytest.mark.asyncio
    async def test_notify_threadsafe(self, running):
        """Changes reported from another thread reach the loop."""
        scheduler, build = running
        build.gate.set()
        await settle()

        await asyncio.to_thread(scheduler.notify_threadsafe)
        await settle()
        await asyncio.wait_for(scheduler.wait_idle(), timeout=5)

        assert build.calls == 1

    def test_notify_threadsafe_before_run_is_ignored(self):
        scheduler = RebuildScheduler(GatedBuild())

        scheduler.notify_threadsafe()

        assert scheduler.builds_started == 0

    @pytest.mark.asyncio
    async def test_changes_after_stop_are_ignored(self):
        """Late notifications from a watcher thread cannot leave it busy."""
        scheduler = RebuildScheduler(GatedBuild())
        runner = asyncio.create_task(scheduler.run())
        scheduler.stop()
        await asyncio.wait_for(runner, timeout=5)

        await asyncio.to_thread(scheduler.notify_threadsafe)
        scheduler.notify()
        await settle()

        await asyncio.wait_for(scheduler.wait_idle(), timeout=1)
        assert scheduler.builds_started == 0
