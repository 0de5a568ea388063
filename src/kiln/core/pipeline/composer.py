"""
Pipeline composition: the development and production entry points.

Both pipelines start with a destructive clean, then run the asset stages:

    clean -> layout, scripts, fonts, resources, img, svgSprites -> styles

Development then watches the sources and serves a live-reloading
preview. Production fingerprints the output for cache busting, rewrites
the entry documents and optionally deploys.

Styles run alone in the last stage. They do not read any output of the
earlier stage; the ordering only keeps the declared build order.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from pathlib import Path

import kiln.core.tasks  # noqa: F401  (registers tasks)
from kiln.core.deploy.service import ClientFactory, DeployResult, DeployService
from kiln.core.exceptions import KilnError
from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import Mode, PipelineResult, Stage, TaskResult
from kiln.core.pipeline.runner import PipelineCallback, PipelineRunner
from kiln.core.preview.reload import LiveReloadHub
from kiln.core.preview.server import PreviewServer
from kiln.core.revision.manifest import ManifestBuilder, RevisionResult
from kiln.core.revision.rewrite import load_manifest, rewrite_documents
from kiln.core.watch.loop import WatchLoop

logger = logging.getLogger(__name__)

ASSET_STAGES = (
    Stage.of("layout", "scripts", "fonts", "resources", "img", "svgSprites"),
    Stage.of("styles"),
)


def pipeline_stages() -> list[Stage]:
    """Clean followed by the asset stages."""
    return [Stage.of("clean"), *ASSET_STAGES]


@dataclass
class CacheResult:
    """Manifest build plus the documents whose references were rewritten."""

    revision: RevisionResult
    rewritten: list[Path] = field(default_factory=list)


@dataclass
class ProductionResult:
    """
    Outcome of the production pipeline.

    Attributes:
        pipeline: Task results of the build stages
        cache: Cache-busting outcome (None when halted)
        deploy: Deploy outcome (None unless requested)
    """

    pipeline: PipelineResult
    cache: CacheResult | None = None
    deploy: DeployResult | None = None

    @property
    def halted(self) -> bool:
        return self.pipeline.halted


async def build(
    ctx: BuildContext,
    callback: PipelineCallback | None = None,
    *,
    halt_on_failure: bool = False,
) -> PipelineResult:
    """Run clean and the asset stages in ``ctx.mode``."""
    runner = PipelineRunner(ctx, callback)
    return await runner.run(pipeline_stages(), halt_on_failure=halt_on_failure)


async def run_task(
    ctx: BuildContext, name: str, callback: PipelineCallback | None = None
) -> TaskResult:
    """Run a single task by name."""
    return await PipelineRunner(ctx, callback).run_task(name)


async def run_cache(ctx: BuildContext) -> CacheResult:
    """
    Fingerprint the output tree and rewrite the entry documents.

    Raises:
        KilnError: If there is no output tree
        ManifestError: If the manifest cannot be read back
    """
    if not ctx.dist.is_dir():
        raise KilnError(f"Output directory not found: {ctx.dist}", dist=ctx.dist)

    settings = ctx.config.cache
    builder = ManifestBuilder(ctx.dist, settings)
    revision = await asyncio.to_thread(builder.build)

    manifest = load_manifest(ctx.dist / settings.manifest)
    rewritten = await asyncio.to_thread(rewrite_documents, ctx.dist, manifest, settings.rewrite)
    return CacheResult(revision=revision, rewritten=rewritten)


async def run_deploy(
    ctx: BuildContext, client_factory: ClientFactory | None = None
) -> DeployResult:
    """Upload new and modified output files to the configured remote."""
    return await DeployService(ctx.dist, ctx.config.deploy, client_factory).deploy()


async def run_production(
    ctx: BuildContext,
    callback: PipelineCallback | None = None,
    *,
    deploy: bool = False,
    client_factory: ClientFactory | None = None,
) -> ProductionResult:
    """
    Production pipeline: build, cache busting, optional deploy.

    Failed tasks are tolerated unless ``build.strict`` is set, in which
    case the pipeline stops before cache busting.
    """
    if ctx.mode is not Mode.PRODUCTION:
        ctx = ctx.with_mode(Mode.PRODUCTION)

    strict = ctx.config.build.strict
    pipeline = await build(ctx, callback, halt_on_failure=strict)
    if strict and not pipeline.ok:
        pipeline.halted = True
        logger.warning(f"{pipeline.tasks_failed} task(s) failed; skipping cache busting")
        return ProductionResult(pipeline=pipeline)

    result = ProductionResult(pipeline=pipeline, cache=await run_cache(ctx))
    if deploy:
        result.deploy = await run_deploy(ctx, client_factory)
    return result


async def run_development(
    ctx: BuildContext, callback: PipelineCallback | None = None
) -> PipelineResult:
    """
    Development pipeline: build, then watch and serve until stopped.

    Returns the initial build result once the preview server shuts down.
    """
    if ctx.mode is not Mode.DEVELOPMENT:
        ctx = ctx.with_mode(Mode.DEVELOPMENT)
    ctx.reload_hub = LiveReloadHub(ctx.dist)

    runner = PipelineRunner(ctx, callback)
    pipeline = await runner.run(pipeline_stages())

    settings = ctx.config.dev
    server = PreviewServer(
        ctx.dist,
        ctx.reload_hub,
        host=settings.host,
        port=settings.port,
        open_browser=settings.open_browser,
    )
    watch = asyncio.create_task(WatchLoop(runner).run())
    try:
        await server.serve()
    finally:
        watch.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watch
    return pipeline
