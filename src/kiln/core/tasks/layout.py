"""
Layout task: render the entry template to dist/index.html.

Templates are Jinja2. Development output keeps the template's own
indentation; production output is compacted by dropping whitespace between
tags everywhere except inside pre, textarea, script and style elements.
"""

from __future__ import annotations

import asyncio
import logging
import re

from jinja2 import Environment, FileSystemLoader, TemplateError

from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import TaskResult
from kiln.core.tasks.base import register_task, write_text

logger = logging.getLogger(__name__)

_PRESERVE_RE = re.compile(
    r"(<(pre|textarea|script|style)\b.*?</\2\s*>)", re.IGNORECASE | re.DOTALL
)
_BETWEEN_TAGS_RE = re.compile(r">\s+<")
_LEADING_WS_RE = re.compile(r"^[ \t]+", re.MULTILINE)
_NEWLINES_RE = re.compile(r"\s*\n\s*")


def compact_html(html: str) -> str:
    """
    Remove insignificant whitespace from rendered markup.

    Whitespace between two tags is dropped and line indentation stripped,
    except inside elements whose content is whitespace-sensitive.
    """
    parts = _PRESERVE_RE.split(html)
    out: list[str] = []
    # split() with two groups yields: text, full match, tag name, text, ...
    i = 0
    while i < len(parts):
        text = parts[i]
        text = _LEADING_WS_RE.sub("", text)
        text = _BETWEEN_TAGS_RE.sub("><", text)
        out.append(_NEWLINES_RE.sub(" ", text))
        if i + 1 < len(parts):
            out.append(parts[i + 1])
        i += 3
    return "".join(out).strip()


def render_template(ctx: BuildContext) -> str:
    """Render the configured entry template in the context's mode."""
    env = Environment(
        loader=FileSystemLoader(str(ctx.source("templates"))),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    template = env.get_template(ctx.config.paths.entry)
    html = template.render(
        mode=ctx.mode.value,
        production=not ctx.profile.pretty,
    )
    if not ctx.profile.pretty:
        html = compact_html(html)
    return html


@register_task("layout")
class LayoutTask:
    name = "layout"

    def watch_globs(self, ctx: BuildContext) -> list[str]:
        return [str(ctx.source("templates") / "**" / "*.html")]

    async def run(self, ctx: BuildContext) -> TaskResult:
        result = TaskResult(task=self.name)
        entry = ctx.source("templates") / ctx.config.paths.entry
        try:
            html = await asyncio.to_thread(render_template, ctx)
        except TemplateError as e:
            lineno = getattr(e, "lineno", None)
            message = f"{e.message or e.__class__.__name__}" + (
                f" (line {lineno})" if lineno else ""
            )
            ctx.notifier.error(self.name, message, entry)
            result.errors.append(f"{entry}: {message}")
            return result

        out = ctx.dist / ctx.config.paths.entry
        result.assets.append(await asyncio.to_thread(write_text, out, html))
        logger.debug(f"Rendered {entry} -> {out}")
        return result
