"""Clean task: remove the whole output tree."""

from __future__ import annotations

import asyncio
import logging
import shutil

from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import TaskResult
from kiln.core.tasks.base import register_task

logger = logging.getLogger(__name__)


@register_task("clean")
class CleanTask:
    """
    Delete every prior build artifact.

    There is no partial clean: the output root itself is removed and is
    recreated by whichever task writes first.
    """

    name = "clean"

    def watch_globs(self, ctx: BuildContext) -> list[str]:
        return []

    async def run(self, ctx: BuildContext) -> TaskResult:
        dist = ctx.dist
        if dist.exists():
            await asyncio.to_thread(shutil.rmtree, dist)
            logger.info(f"Removed {dist}")
        return TaskResult(task=self.name)
