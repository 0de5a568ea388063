"""
Scripts task: bundle the entry script to dist/js/main.min.js.

Chain:
    bundle (builtin or esbuild) -> rjsmin (production)
                                | whitespace pass + source map (development)

Bundler failures never propagate: they go to the error log and the task
reports a failed result, so the stage still completes.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import rjsmin

from kiln.core.bundler import Bundle, Bundler, BuiltinBundler, EsbuildBundler
from kiln.core.exceptions import BundleError
from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import TaskResult
from kiln.core.tasks.base import register_task, write_text

logger = logging.getLogger(__name__)


def get_bundler(ctx: BuildContext) -> Bundler:
    """Build the bundler selected in the scripts config."""
    scripts = ctx.config.scripts
    if scripts.bundler == "esbuild":
        return EsbuildBundler(
            executable=scripts.esbuild_path,
            target=scripts.target,
            minify_whitespace=ctx.profile.light_minify,
        )
    return BuiltinBundler(root=ctx.source("scripts"))


def output_path(ctx: BuildContext) -> Path:
    entry = Path(ctx.config.paths.script_entry)
    return ctx.dist / "js" / f"{entry.stem}.min.js"


def _scan_line(line: str, in_template: bool, in_comment: bool) -> tuple[bool, bool]:
    """Template-literal and block-comment state at the end of ``line``."""
    quote = None
    i = 0
    while i < len(line):
        c = line[i]
        if in_comment:
            end = line.find("*/", i)
            if end == -1:
                return in_template, True
            in_comment = False
            i = end + 2
            continue
        if in_template or quote:
            if c == "\\":
                i += 2
                continue
            if in_template and c == "`":
                in_template = False
            elif c == quote:
                quote = None
        elif c in "'\"":
            quote = c
        elif c == "`":
            in_template = True
        elif line.startswith("//", i):
            break
        elif line.startswith("/*", i):
            in_comment = True
            i += 2
            continue
        i += 1
    return in_template, in_comment


def light_minify(code: str) -> str:
    """
    Whitespace-only minification that keeps every line where it was.

    Indentation, trailing blanks and whole-line ``//`` comments go; ``//#``
    pragmas such as sourceMappingURL stay. Text inside template literals and
    block comments is left untouched, so the line-level source map stays
    exact.
    """
    out: list[str] = []
    in_template = in_comment = False
    for line in code.split("\n"):
        starts_plain = not (in_template or in_comment)
        in_template, in_comment = _scan_line(line, in_template, in_comment)
        ends_plain = not (in_template or in_comment)

        if starts_plain:
            line = line.lstrip()
            if line.startswith("//") and not line.startswith(("//#", "//@")):
                line = ""
        if ends_plain:
            line = line.rstrip()
        out.append(line)
    return "\n".join(out)


def build_script(ctx: BuildContext, bundler: Bundler, entry: Path, out: Path) -> list[Path]:
    """Bundle, then minify or map, then write. Returns the written files."""
    bundle: Bundle = bundler.bundle(entry, out, source_map=ctx.profile.source_maps)
    written: list[Path] = []

    if ctx.profile.aggressive_minify:
        code = rjsmin.jsmin(bundle.code)
        written.append(write_text(out, code))
        return written

    code = bundle.code
    # esbuild applies its own whitespace pass and column-exact map
    if ctx.profile.light_minify and isinstance(bundler, BuiltinBundler):
        code = light_minify(code)
    if bundle.source_map is not None:
        map_path = out.with_name(out.name + ".map")
        code += f"//# sourceMappingURL={map_path.name}\n"
        written.append(write_text(out, code))
        written.append(write_text(map_path, bundle.source_map.to_json()))
    else:
        written.append(write_text(out, code))
    return written


@register_task("scripts")
class ScriptsTask:
    name = "scripts"

    def watch_globs(self, ctx: BuildContext) -> list[str]:
        root = ctx.source("scripts")
        return [str(root / "**" / "*.js"), str(root / "**" / "*.mjs")]

    async def run(self, ctx: BuildContext) -> TaskResult:
        entry = ctx.source("scripts") / ctx.config.paths.script_entry
        out = output_path(ctx)
        bundler = get_bundler(ctx)

        try:
            assets = await asyncio.to_thread(build_script, ctx, bundler, entry, out)
        except BundleError as e:
            logger.error(f"Bundler error: {e}")
            return TaskResult.failed(self.name, str(e))

        logger.debug(f"scripts: wrote {', '.join(p.name for p in assets)}")
        return TaskResult(task=self.name, assets=assets)
