"""
Build task protocol and registry.

Every transform task (layout, styles, scripts, ...) implements BuildTask
and registers itself under its CLI name. Tasks read the files matching
their globs, run their transform chain, and write into a fixed directory
under the output root.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable

from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import TaskResult

logger = logging.getLogger(__name__)


@runtime_checkable
class BuildTask(Protocol):
    """
    Protocol for build task implementations.

    Tasks must not raise for per-file transform failures: those are sent to
    ``ctx.notifier`` and recorded as errors on the returned TaskResult.
    """

    name: str

    def watch_globs(self, ctx: BuildContext) -> list[str]:
        """
        Glob patterns (absolute) whose changes should re-run this task.

        Returns:
            One pattern per watched file kind
        """
        ...

    async def run(self, ctx: BuildContext) -> TaskResult:
        """
        Run the task once over its whole input set.

        Args:
            ctx: Build context (config, mode, notifier)

        Returns:
            TaskResult listing written assets and per-file errors
        """
        ...


_tasks: dict[str, type[BuildTask]] = {}


def register_task(name: str) -> Callable[[type[BuildTask]], type[BuildTask]]:
    """
    Decorator to register a build task implementation.

    Usage:
        @register_task("styles")
        class StylesTask:
            name = "styles"
            ...
    """

    def decorator(task_class: type[BuildTask]) -> type[BuildTask]:
        _tasks[name] = task_class
        return task_class

    return decorator


def get_task(name: str) -> BuildTask:
    """
    Get a build task by name.

    Raises:
        ValueError: If no task is registered under that name
    """
    task_class = _tasks.get(name)
    if task_class is None:
        raise ValueError(
            f"Task '{name}' not registered. Available tasks: {', '.join(sorted(_tasks))}"
        )
    return task_class()


def list_tasks() -> list[str]:
    """List all registered task names."""
    return list(_tasks.keys())


# ==============================================================================
# File helpers shared by tasks
# ==============================================================================


def select_files(root: Path, patterns: Iterable[str]) -> list[Path]:
    """
    Return the files under ``root`` matching any of ``patterns``, sorted.

    Directories and duplicates are dropped. A missing root matches nothing.
    """
    if not root.is_dir():
        return []
    found: set[Path] = set()
    for pattern in patterns:
        for path in root.glob(pattern):
            if path.is_file():
                found.add(path)
    return sorted(found)


def write_bytes(path: Path, data: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def write_text(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def copy_file(src: Path, dest: Path) -> Path:
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dest)
    return dest


async def copy_tree(
    task: str, ctx: BuildContext, root: Path, files: list[Path], dest_root: Path
) -> TaskResult:
    """
    Copy ``files`` (all under ``root``) into ``dest_root``, keeping layout.

    Used by the plain copy tasks. Copy failures are reported per file.
    """
    result = TaskResult(task=task)
    for src in files:
        dest = dest_root / src.relative_to(root)
        try:
            result.assets.append(await asyncio.to_thread(copy_file, src, dest))
        except OSError as e:
            ctx.notifier.error(task, str(e), src)
            result.errors.append(f"{src}: {e}")
    logger.debug(f"{task}: copied {len(result.assets)} file(s) to {dest_root}")
    return result
