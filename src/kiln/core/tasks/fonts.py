"""
Fonts task: convert TrueType fonts to WOFF and WOFF2.

Both conversions of a font run concurrently and the task only finishes
once every conversion has settled.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from fontTools.ttLib import TTFont, TTLibError

from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import TaskResult
from kiln.core.tasks.base import register_task, select_files

logger = logging.getLogger(__name__)

FLAVORS = ("woff", "woff2")


def convert_font(source: Path, dest: Path, flavor: str) -> Path:
    """
    Re-save ``source`` with a web font flavor.

    WOFF2 requires the ``brotli`` package.
    """
    font = TTFont(str(source))
    try:
        font.flavor = flavor
        dest.parent.mkdir(parents=True, exist_ok=True)
        font.save(str(dest))
    finally:
        font.close()
    return dest


@register_task("fonts")
class FontsTask:
    name = "fonts"

    def watch_globs(self, ctx: BuildContext) -> list[str]:
        return [str(ctx.source("fonts") / "**" / "*.ttf")]

    async def run(self, ctx: BuildContext) -> TaskResult:
        root = ctx.source("fonts")
        out_root = ctx.dist / "fonts"
        result = TaskResult(task=self.name)

        jobs: list[tuple[Path, str]] = [
            (source, flavor)
            for source in select_files(root, ["**/*.ttf"])
            for flavor in FLAVORS
        ]
        outcomes = await asyncio.gather(
            *(
                asyncio.to_thread(
                    convert_font,
                    source,
                    (out_root / source.relative_to(root)).with_suffix(f".{flavor}"),
                    flavor,
                )
                for source, flavor in jobs
            ),
            return_exceptions=True,
        )

        for (source, flavor), outcome in zip(jobs, outcomes):
            if isinstance(outcome, (TTLibError, OSError, ImportError)):
                message = f"{flavor} conversion failed: {outcome}"
                ctx.notifier.error(self.name, message, source)
                result.errors.append(f"{source}: {message}")
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.assets.append(outcome)

        return result
