"""Single-flight, coalescing rebuild scheduler.

File-system changes arrive in bursts. The scheduler runs at most one build
at a time; changes seen while a build is running set a pending flag, and
however many arrive, they produce exactly one follow-up build.

States and transitions:

    idle                   --change-->      building (start build)
    building               --change-->      building-with-pending
    building-with-pending  --change-->      building-with-pending
    building               --build done-->  idle
    building-with-pending  --build done-->  building (start build)

All transitions happen on the event loop, driven by messages on a queue.
The "build done" message is posted whether the build succeeded or failed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

log = logging.getLogger(__name__)


class SchedulerState(Enum):
    IDLE = "idle"
    BUILDING = "building"
    BUILDING_WITH_PENDING = "building-with-pending"


class Message(Enum):
    CHANGE = "change"
    BUILD_DONE = "build-done"
    STOP = "stop"


# (state, message) -> (next state, start a build)
TRANSITIONS: dict[tuple[SchedulerState, Message], tuple[SchedulerState, bool]] = {
    (SchedulerState.IDLE, Message.CHANGE): (SchedulerState.BUILDING, True),
    (SchedulerState.BUILDING, Message.CHANGE): (SchedulerState.BUILDING_WITH_PENDING, False),
    (SchedulerState.BUILDING_WITH_PENDING, Message.CHANGE): (
        SchedulerState.BUILDING_WITH_PENDING,
        False,
    ),
    (SchedulerState.BUILDING, Message.BUILD_DONE): (SchedulerState.IDLE, False),
    (SchedulerState.BUILDING_WITH_PENDING, Message.BUILD_DONE): (SchedulerState.BUILDING, True),
}


def transition(state: SchedulerState, message: Message) -> tuple[SchedulerState, bool]:
    """Look up the next state for a message.

    Raises:
        ValueError: For a message that cannot occur in ``state``
            (a build finishing while idle).
    """
    try:
        return TRANSITIONS[(state, message)]
    except KeyError:
        raise ValueError(f"Unexpected {message.value!r} while {state.value}") from None


class RebuildScheduler:
    """Runs ``build`` on change notifications, one build at a time.

    Usage:
        scheduler = RebuildScheduler(build)
        runner = asyncio.create_task(scheduler.run())
        scheduler.notify()          # from the event loop
        scheduler.notify_threadsafe()  # from a watcher thread
        scheduler.stop()
        await runner
    """

    def __init__(self, build: Callable[[], Awaitable[object]]):
        """Initialize the scheduler.

        Args:
            build: Coroutine function running one complete build. Exceptions
                are logged; they never stop the scheduler.
        """
        self._build = build
        self._queue: asyncio.Queue[Message] = asyncio.Queue()
        self._state = SchedulerState.IDLE
        self._idle = asyncio.Event()
        self._idle.set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task | None = None
        self._stopping = False
        self.builds_started = 0
        self.builds_failed = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    def notify(self) -> None:
        """Record a change. Must be called on the event loop."""
        if self._stopping and self._loop is None:
            log.debug("Change ignored: scheduler has stopped")
            return
        self._idle.clear()
        self._queue.put_nowait(Message.CHANGE)

    def notify_threadsafe(self) -> None:
        """Record a change from another thread (e.g. a file-system observer)."""
        if self._loop is None or self._loop.is_closed():
            log.debug("Change ignored: scheduler is not running")
            return
        self._loop.call_soon_threadsafe(self.notify)

    def stop(self) -> None:
        """Ask run() to return once the in-flight build (if any) has finished.

        A pending follow-up build is dropped.
        """
        self._queue.put_nowait(Message.STOP)

    async def wait_idle(self) -> None:
        """Wait until no build is running or pending and all messages are handled."""
        await self._idle.wait()

    async def run(self) -> None:
        """Process messages until stopped."""
        self._loop = asyncio.get_running_loop()

        try:
            while True:
                message = await self._queue.get()

                if message is Message.STOP:
                    self._stopping = True
                else:
                    self._handle(message)

                if self._stopping and self._state is SchedulerState.IDLE:
                    break

                if self._state is SchedulerState.IDLE and self._queue.empty():
                    self._idle.set()
        finally:
            self._loop = None
            self._idle.set()

    def _handle(self, message: Message) -> None:
        if self._stopping and message is Message.CHANGE:
            return

        state, start_build = transition(self._state, message)
        if self._stopping and start_build:
            state, start_build = SchedulerState.IDLE, False

        log.debug("Scheduler %s --%s--> %s", self._state.value, message.value, state.value)
        self._state = state

        if start_build:
            self._start_build()

    def _start_build(self) -> None:
        self.builds_started += 1
        self._task = asyncio.create_task(self._run_build())

    async def _run_build(self) -> None:
        try:
            await self._build()
        except Exception:
            self.builds_failed += 1
            log.exception("Build failed")
        finally:
            self._queue.put_nowait(Message.BUILD_DONE)
