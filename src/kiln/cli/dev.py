"""
kiln CLI - development server.

Builds everything once, then watches the sources and serves the output
with live reload until interrupted.
"""

import typer

from kiln.cli.common import ConsoleReporter, build_context, console, print_summary, run_pipeline
from kiln.core.pipeline.composer import run_development
from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import Mode


def start_dev(port: int | None = None, no_browser: bool = False) -> None:
    """Run the development pipeline; shared by ``kiln`` and ``kiln dev``."""
    ctx = build_context(Mode.DEVELOPMENT)
    if port is not None or no_browser:
        dev = ctx.config.dev.model_copy(
            update={
                "port": port if port is not None else ctx.config.dev.port,
                "open_browser": ctx.config.dev.open_browser and not no_browser,
            }
        )
        ctx = BuildContext(
            project_root=ctx.project_root,
            config=ctx.config.model_copy(update={"dev": dev}),
            mode=ctx.mode,
            notifier=ctx.notifier,
        )

    settings = ctx.config.dev
    console.print(f"[bold cyan]Preview:[/bold cyan] http://{settings.host}:{settings.port}")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    pipeline = run_pipeline(run_development(ctx, ConsoleReporter()))
    print_summary(ctx, pipeline)
    console.print("\n[yellow]Preview server stopped[/yellow]")


def dev(
    port: int | None = typer.Option(
        None,
        "--port",
        "-p",
        help="Port for the preview server (default: dev.port)",
    ),
    no_browser: bool = typer.Option(
        False,
        "--no-browser",
        help="Don't open a browser automatically",
    ),
) -> None:
    """
    Build, watch the sources and serve a live-reloading preview.

    Examples:
        kiln dev
        kiln dev --port 8080 --no-browser
    """
    start_dev(port=port, no_browser=no_browser)
