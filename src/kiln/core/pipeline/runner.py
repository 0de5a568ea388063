"""
Stage-by-stage pipeline execution.

Tasks inside a stage are started together on the event loop and the stage
ends only when all of them have settled, including any nested work they
await. A task that raises unexpectedly is converted into a failed result,
so a stage always settles.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from typing import Protocol

from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import PipelineResult, Stage, StageResult, TaskResult
from kiln.core.tasks.base import BuildTask, get_task

logger = logging.getLogger(__name__)


class PipelineCallback(Protocol):
    """Protocol for pipeline progress events."""

    def on_stage_start(self, index: int, stage: Stage) -> None:
        """Called before the tasks of a stage are started.

        Args:
            index: 0-based stage index
            stage: The stage about to run
        """
        ...

    def on_task_complete(self, result: TaskResult) -> None:
        """Called when a task has settled.

        Args:
            result: The task's result
        """
        ...

    def on_halt(self, index: int, stage_result: StageResult) -> None:
        """Called when the pipeline stops after a failed stage.

        Args:
            index: Index of the failed stage
            stage_result: Its results
        """
        ...


class _NoOpCallback:
    """Default no-op callback implementation."""

    def on_stage_start(self, index: int, stage: Stage) -> None:
        pass

    def on_task_complete(self, result: TaskResult) -> None:
        pass

    def on_halt(self, index: int, stage_result: StageResult) -> None:
        pass


class PipelineRunner:
    """
    Runs stages of tasks against one build context.

    Example:
        >>> runner = PipelineRunner(ctx)
        >>> result = await runner.run([Stage.of("clean"), Stage.of("layout", "scripts")])
        >>> result.ok
        True
    """

    def __init__(
        self,
        ctx: BuildContext,
        callback: PipelineCallback | None = None,
        tasks: Mapping[str, BuildTask] | None = None,
    ) -> None:
        """
        Initialize the runner.

        Args:
            ctx: Build context handed to every task
            callback: Progress events
            tasks: Task instances by name; unknown names come from the registry
        """
        self.ctx = ctx
        self._callback = callback or _NoOpCallback()
        self._tasks: dict[str, BuildTask] = dict(tasks or {})

    def task(self, name: str) -> BuildTask:
        if name not in self._tasks:
            self._tasks[name] = get_task(name)
        return self._tasks[name]

    async def run_task(self, name: str) -> TaskResult:
        """Run one task, timing it and converting unexpected errors."""
        task = self.task(name)
        started = time.monotonic()
        try:
            result = await task.run(self.ctx)
        except Exception as e:
            logger.exception(f"Task {name} raised")
            self.ctx.notifier.error(name, f"{e.__class__.__name__}: {e}")
            result = TaskResult.failed(name, f"{e.__class__.__name__}: {e}")
        result.duration_seconds = time.monotonic() - started
        self._callback.on_task_complete(result)
        return result

    async def run_stage(self, stage: Stage) -> StageResult:
        results = await asyncio.gather(*(self.run_task(name) for name in stage.tasks))
        return StageResult(stage=stage, results=list(results))

    async def run(
        self, stages: Sequence[Stage], *, halt_on_failure: bool = False
    ) -> PipelineResult:
        """
        Run ``stages`` in order.

        Args:
            stages: Stages to run
            halt_on_failure: Stop after the first stage with a failed task

        Returns:
            PipelineResult with every executed stage
        """
        started = time.monotonic()
        pipeline = PipelineResult()

        for index, stage in enumerate(stages):
            self._callback.on_stage_start(index, stage)
            stage_result = await self.run_stage(stage)
            pipeline.stages.append(stage_result)

            if halt_on_failure and not stage_result.ok and index < len(stages) - 1:
                logger.warning(f"Stopping pipeline after failed stage {index}")
                self._callback.on_halt(index, stage_result)
                pipeline.halted = True
                break

        pipeline.total_duration = time.monotonic() - started
        return pipeline
