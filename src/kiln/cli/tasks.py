"""
kiln CLI - single task commands.

Each command runs one task in development mode, without the rest of the
pipeline. Errors in individual files are reported and the command still
succeeds.
"""

from kiln.cli.common import ConsoleReporter, build_context, console, run_pipeline
from kiln.core.pipeline.composer import run_task
from kiln.core.pipeline.models import Mode, TaskResult


def _run(name: str) -> TaskResult:
    ctx = build_context(Mode.DEVELOPMENT)
    result = run_pipeline(run_task(ctx, name, ConsoleReporter()))
    if not result.ok:
        console.print(f"[yellow]{name}: {len(result.errors)} file(s) failed[/yellow]")
    return result


def clean() -> None:
    """Remove the whole output tree."""
    _run("clean")


def layout() -> None:
    """Render the page template to dist/index.html."""
    _run("layout")


def styles() -> None:
    """Compile stylesheets to dist/css/*.min.css."""
    _run("styles")


def scripts() -> None:
    """Bundle the entry script to dist/js/main.min.js."""
    _run("scripts")


def fonts() -> None:
    """Convert TrueType fonts to WOFF and WOFF2."""
    _run("fonts")


def svg_sprites() -> None:
    """Assemble SVG icons into dist/img/sprite.svg."""
    _run("svgSprites")


def img() -> None:
    """Copy raster images to dist/img."""
    _run("img")


def resources() -> None:
    """Copy raw resources to dist/resources."""
    _run("resources")
