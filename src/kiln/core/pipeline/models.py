"""
Data models for build pipelines.

A pipeline is an ordered list of stages; a stage is a set of task names
that run concurrently. Each task run produces a TaskResult, which is either
OK (all inputs transformed) or FAILED (some inputs failed, with whatever
assets were still produced).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class Mode(str, Enum):
    """Build mode; selects formatting, source maps and minification."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


@dataclass(frozen=True)
class ModeProfile:
    """
    Mode-dependent transform settings.

    Attributes:
        pretty: Keep markup indented and readable
        source_maps: Emit source maps for styles and scripts
        light_minify: Strip whitespace without moving any source line
        aggressive_minify: Run the second minification pass
        recompress_images: Send raster images to the recompression service
    """

    pretty: bool
    source_maps: bool
    light_minify: bool
    aggressive_minify: bool
    recompress_images: bool


MODE_PROFILES: dict[Mode, ModeProfile] = {
    Mode.DEVELOPMENT: ModeProfile(
        pretty=True,
        source_maps=True,
        light_minify=True,
        aggressive_minify=False,
        recompress_images=False,
    ),
    Mode.PRODUCTION: ModeProfile(
        pretty=False,
        source_maps=False,
        light_minify=False,
        aggressive_minify=True,
        recompress_images=True,
    ),
}


class TaskStatus(str, Enum):
    """Outcome of a single task run."""

    OK = "ok"
    FAILED = "failed"


@dataclass
class TaskResult:
    """
    Result from one task run.

    A failed run still lists the assets it managed to write, so a stage
    can report partial output.

    Attributes:
        task: Name of the task
        assets: Output files written by this run
        errors: Error messages, one per failed input (empty when OK)
        duration_seconds: Wall-clock time of the run
    """

    task: str
    assets: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def status(self) -> TaskStatus:
        return TaskStatus.FAILED if self.errors else TaskStatus.OK

    @property
    def ok(self) -> bool:
        return not self.errors

    @classmethod
    def failed(cls, task: str, error: str, assets: list[Path] | None = None) -> TaskResult:
        """Build a FAILED result from a single error."""
        return cls(task=task, assets=list(assets or []), errors=[error])


@dataclass(frozen=True)
class Stage:
    """A set of tasks run concurrently with no ordering among them."""

    tasks: tuple[str, ...]

    @classmethod
    def of(cls, *tasks: str) -> Stage:
        return cls(tasks=tuple(tasks))


@dataclass
class StageResult:
    """Results of every task in one stage, in declaration order."""

    stage: Stage
    results: list[TaskResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)


@dataclass
class PipelineResult:
    """
    Aggregate result of a pipeline run.

    Attributes:
        stages: Results per executed stage
        halted: True if the pipeline stopped before its last stage
        total_duration: Wall-clock time of the whole run
    """

    stages: list[StageResult] = field(default_factory=list)
    halted: bool = False
    total_duration: float = 0.0

    @property
    def results(self) -> list[TaskResult]:
        return [r for stage in self.stages for r in stage.results]

    @property
    def ok(self) -> bool:
        return not self.halted and all(stage.ok for stage in self.stages)

    @property
    def tasks_failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    def result_for(self, task: str) -> TaskResult | None:
        for r in self.results:
            if r.task == task:
                return r
        return None
