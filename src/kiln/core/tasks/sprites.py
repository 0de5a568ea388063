"""
Icon sprite task: assemble every SVG icon into dist/img/sprite.svg.

The sprite uses the "stack" layout: each icon becomes a nested <svg> with
an id, hidden unless it is the fragment target, so ``sprite.svg#name`` can
be used directly as an image URL.
"""

from __future__ import annotations

import asyncio
import logging
import xml.etree.ElementTree as ET
from pathlib import Path

from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import TaskResult
from kiln.core.tasks.base import register_task, select_files, write_text

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
STACK_STYLE = ":root>svg{display:none}:root>svg:target{display:block}"

ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)


def icon_id(path: Path, root: Path) -> str:
    """``icons/arrow-left.svg`` -> ``icons--arrow-left``."""
    rel = path.relative_to(root).with_suffix("")
    return "--".join(rel.parts)


def _view_box(svg: ET.Element) -> str | None:
    if view_box := svg.get("viewBox"):
        return view_box
    width, height = svg.get("width"), svg.get("height")
    if width and height:
        return f"0 0 {width.removesuffix('px')} {height.removesuffix('px')}"
    return None


def build_sprite(icons: list[tuple[str, ET.Element]]) -> str:
    """Serialize ``(id, <svg> root)`` pairs into one stack sprite."""
    sprite = ET.Element(f"{{{SVG_NS}}}svg")
    style = ET.SubElement(sprite, f"{{{SVG_NS}}}style")
    style.text = STACK_STYLE

    for name, svg in icons:
        attrib = {"id": name}
        if view_box := _view_box(svg):
            attrib["viewBox"] = view_box
        nested = ET.SubElement(sprite, f"{{{SVG_NS}}}svg", attrib)
        nested.extend(list(svg))

    return '<?xml version="1.0" encoding="utf-8"?>' + ET.tostring(sprite, encoding="unicode")


@register_task("svgSprites")
class SpritesTask:
    name = "svgSprites"

    def watch_globs(self, ctx: BuildContext) -> list[str]:
        return [str(ctx.source("images") / "**" / "*.svg")]

    async def run(self, ctx: BuildContext) -> TaskResult:
        root = ctx.source("images")
        result = TaskResult(task=self.name)
        icons: list[tuple[str, ET.Element]] = []

        for path in select_files(root, ["**/*.svg"]):
            try:
                svg = (await asyncio.to_thread(ET.parse, path)).getroot()
            except ET.ParseError as e:
                ctx.notifier.error(self.name, f"invalid SVG: {e}", path)
                result.errors.append(f"{path}: {e}")
                continue
            icons.append((icon_id(path, root), svg))

        if not icons:
            return result

        out = ctx.dist / "img" / "sprite.svg"
        result.assets.append(await asyncio.to_thread(write_text, out, build_sprite(icons)))
        logger.debug(f"svgSprites: {len(icons)} icon(s) -> {out}")
        return result
