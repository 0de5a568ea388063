"""
Images task: copy raster images, recompressing them in production.

Recompression needs a TinyPNG key (images.tinypng_key or KILN_TINYPNG_KEY).
Without one the production build keeps the original files. A failed
recompression keeps the original copy and is reported.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx

from kiln.core.compress import TinifyClient
from kiln.core.exceptions import TransformError
from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import TaskResult
from kiln.core.tasks.base import copy_tree, register_task, select_files, write_bytes

logger = logging.getLogger(__name__)

RASTER_PATTERNS = ["**/*.jpg", "**/*.jpeg", "**/*.png", "**/*.webp"]


@register_task("img")
class ImagesTask:
    name = "img"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    def watch_globs(self, ctx: BuildContext) -> list[str]:
        root = ctx.source("images")
        return [str(root / pattern) for pattern in RASTER_PATTERNS]

    async def run(self, ctx: BuildContext) -> TaskResult:
        root = ctx.source("images")
        files = select_files(root, RASTER_PATTERNS)
        result = await copy_tree(self.name, ctx, root, files, ctx.dist / "img")

        if not ctx.profile.recompress_images or not result.assets:
            return result

        api_key = ctx.config.images.tinypng_key
        if not api_key:
            logger.warning("No TinyPNG key configured, images are not recompressed")
            return result

        await self._recompress(ctx, result.assets, result, api_key)
        return result

    async def _recompress(
        self, ctx: BuildContext, assets: list[Path], result: TaskResult, api_key: str
    ) -> None:
        settings = ctx.config.images
        limit = asyncio.Semaphore(settings.max_concurrency)

        async with httpx.AsyncClient(
            timeout=settings.timeout, transport=self._transport
        ) as http:
            client = TinifyClient(api_key=api_key, http=http, api_url=settings.api_url)

            async def shrink(path: Path) -> None:
                async with limit:
                    data = await asyncio.to_thread(path.read_bytes)
                    try:
                        smaller = await client.compress(data, path)
                    except TransformError as e:
                        ctx.notifier.error(self.name, e.message, path)
                        result.errors.append(str(e))
                        return
                    await asyncio.to_thread(write_bytes, path, smaller)

            await asyncio.gather(*(shrink(p) for p in assets))
