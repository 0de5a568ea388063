"""
Styles task: compile SCSS entry files to dist/css/<name>.min.css.

Chain per file:
    libsass compile -> optional vendor-prefix command -> rcssmin (production)

Development output uses the "compact" style, one rule per line, so the
embedded source map stays exact. Production output is "compressed".

Partials (files starting with an underscore) are only compiled through the
files that import them. A syntax error in one file is reported and the
remaining files still compile.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from pathlib import Path

import rcssmin
import sass

from kiln.core.exceptions import TransformError
from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import TaskResult
from kiln.core.tasks.base import register_task, select_files, write_text

logger = logging.getLogger(__name__)


def output_name(source: Path, root: Path) -> Path:
    """``<root>/pages/home.scss`` -> ``pages/home.min.css``."""
    rel = source.relative_to(root)
    return rel.with_name(f"{rel.stem}.min.css")


def run_prefixer(command: list[str], css: str, source: Path) -> str:
    """Pipe CSS through an external vendor-prefixing command."""
    try:
        completed = subprocess.run(
            command,
            input=css,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as e:
        raise TransformError("styles", f"Prefix command not found: {command[0]}", source) from e
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise TransformError(
            "styles", f"Prefix command failed ({e.returncode}): {stderr}", source
        ) from e
    return completed.stdout


def output_style(ctx: BuildContext) -> str:
    if ctx.profile.aggressive_minify:
        return "compressed"
    return "compact" if ctx.profile.light_minify else "expanded"


def compile_stylesheet(ctx: BuildContext, source: Path, out: Path) -> str:
    """
    Compile one stylesheet according to the context's mode.

    Raises:
        TransformError: If the preprocessor or prefixer rejects the file
    """
    include_paths = [str(ctx.source("styles"))] + [
        str(ctx.project_root / p) for p in ctx.config.styles.include_paths
    ]
    try:
        if ctx.profile.source_maps:
            css, _ = sass.compile(
                filename=str(source),
                output_style=output_style(ctx),
                include_paths=include_paths,
                source_map_filename=str(out.with_name(out.name + ".map")),
                output_filename_hint=str(out),
                source_map_embed=True,
                source_map_contents=True,
            )
        else:
            css = sass.compile(
                filename=str(source),
                output_style=output_style(ctx),
                include_paths=include_paths,
            )
    except sass.CompileError as e:
        raise TransformError("styles", str(e).strip(), source) from e

    if ctx.config.styles.prefix_command:
        css = run_prefixer(ctx.config.styles.prefix_command, css, source)

    if ctx.profile.aggressive_minify:
        css = rcssmin.cssmin(css)

    return css


@register_task("styles")
class StylesTask:
    name = "styles"

    def watch_globs(self, ctx: BuildContext) -> list[str]:
        return [str(ctx.source("styles") / "**" / "*.scss")]

    async def run(self, ctx: BuildContext) -> TaskResult:
        root = ctx.source("styles")
        sources = [p for p in select_files(root, ["**/*.scss"]) if not p.name.startswith("_")]
        result = TaskResult(task=self.name)

        for source in sources:
            out = ctx.dist / "css" / output_name(source, root)
            try:
                css = await asyncio.to_thread(compile_stylesheet, ctx, source, out)
            except TransformError as e:
                ctx.notifier.error(self.name, e.message, source)
                result.errors.append(str(e))
                continue
            result.assets.append(await asyncio.to_thread(write_text, out, css))

        logger.debug(
            f"styles: {len(result.assets)} compiled, {len(result.errors)} failed"
        )
        return result
