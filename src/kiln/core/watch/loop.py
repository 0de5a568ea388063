"""
Watch-and-rebuild loop.

Every watched glob is bound to exactly one task. When a poll finds changes
under a glob, the bound task is re-run over its whole input set.

Re-runs of one task never overlap: while a run is in flight further
triggers only mark one pending run, which starts when the current one
finishes. Triggers are never dropped and runs are never cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable

from kiln.core.pipeline.models import TaskResult
from kiln.core.pipeline.runner import PipelineRunner
from kiln.core.watch.watcher import GlobWatcher

logger = logging.getLogger(__name__)

WATCHED_TASKS = ("layout", "styles", "img", "svgSprites", "resources", "fonts", "scripts")


class RerunSlot:
    """
    Serialise the runs of one task with a single pending slot.

    Example:
        >>> slot = RerunSlot("styles", lambda: runner.run_task("styles"))
        >>> slot.trigger()   # starts a run
        >>> slot.trigger()   # marks one pending run
        >>> slot.trigger()   # still one pending run
        >>> await slot.wait_idle()
        >>> slot.runs
        2
    """

    def __init__(
        self,
        name: str,
        run: Callable[[], Awaitable[TaskResult]],
        on_result: Callable[[TaskResult], Awaitable[None]] | None = None,
    ) -> None:
        self.name = name
        self._run = run
        self._on_result = on_result
        self._current: asyncio.Task[None] | None = None
        self._pending = False
        self.runs = 0

    @property
    def busy(self) -> bool:
        return self._current is not None and not self._current.done()

    @property
    def pending(self) -> bool:
        return self._pending

    def trigger(self) -> None:
        """Request a run; must be called from the event loop."""
        if self.busy:
            self._pending = True
            return
        self._current = asyncio.create_task(self._drain())

    async def wait_idle(self) -> None:
        while self._current is not None and not self._current.done():
            await self._current

    async def _drain(self) -> None:
        while True:
            result = await self._run()
            self.runs += 1
            if self._on_result is not None:
                try:
                    await self._on_result(result)
                except Exception:
                    logger.exception(f"After-run hook of {self.name} failed")
            if not self._pending:
                return
            self._pending = False
            logger.debug(f"Running pending re-run of {self.name}")


class WatchLoop:
    """
    Poll watched globs and re-run their tasks.

    Example:
        >>> loop = WatchLoop(runner)
        >>> await loop.run()  # runs until cancelled
    """

    def __init__(
        self,
        runner: PipelineRunner,
        tasks: Iterable[str] = WATCHED_TASKS,
        poll_interval: float | None = None,
    ) -> None:
        """
        Initialize the loop.

        Args:
            runner: Runner whose context and tasks are re-used for re-runs
            tasks: Names of the tasks to watch
            poll_interval: Seconds between polls (default: dev.poll_interval)
        """
        self.runner = runner
        self.ctx = runner.ctx
        self.poll_interval = poll_interval or self.ctx.config.dev.poll_interval

        self.bindings: list[tuple[GlobWatcher, str]] = []
        self.slots: dict[str, RerunSlot] = {}
        for name in tasks:
            for pattern in runner.task(name).watch_globs(self.ctx):
                self.bindings.append((GlobWatcher(pattern), name))
            self.slots[name] = RerunSlot(
                name, lambda name=name: runner.run_task(name), self._after_run
            )

    def changed_tasks(self) -> set[str]:
        """Poll every glob once and return the tasks with changed inputs."""
        changed = set()
        for watcher, name in self.bindings:
            paths = watcher.poll()
            if paths:
                logger.debug(f"{len(paths)} change(s) under {watcher.pattern} -> {name}")
                changed.add(name)
        return changed

    def dispatch(self, names: Iterable[str]) -> None:
        for name in sorted(names):
            self.slots[name].trigger()

    async def prime(self) -> None:
        """Take the baseline snapshot of every glob."""
        await asyncio.to_thread(self.changed_tasks)

    async def run(self) -> None:
        """Poll forever; stops only when cancelled."""
        await self.prime()
        logger.info(f"Watching {len(self.bindings)} pattern(s)")
        while True:
            await asyncio.sleep(self.poll_interval)
            self.dispatch(await asyncio.to_thread(self.changed_tasks))

    async def wait_idle(self) -> None:
        await asyncio.gather(*(slot.wait_idle() for slot in self.slots.values()))

    async def _after_run(self, result: TaskResult) -> None:
        hub = self.ctx.reload_hub
        if hub is not None and result.assets:
            await hub.broadcast(result.assets)
