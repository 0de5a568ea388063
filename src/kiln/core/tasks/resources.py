"""Resources task: copy raw files verbatim."""

from __future__ import annotations

from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import TaskResult
from kiln.core.tasks.base import copy_tree, register_task, select_files


@register_task("resources")
class ResourcesTask:
    name = "resources"

    def watch_globs(self, ctx: BuildContext) -> list[str]:
        return [str(ctx.source("resources") / "**" / "*")]

    async def run(self, ctx: BuildContext) -> TaskResult:
        root = ctx.source("resources")
        files = select_files(root, ["**/*"])
        return await copy_tree(self.name, ctx, root, files, ctx.dist / "resources")
