"""
kiln CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging

import typer
from rich.console import Console

from kiln import __version__
from kiln.cli import build, deploy, dev, tasks
from kiln.core.config.env import load_layered_env
from kiln.utils.project import resolve_project_root

# Help panel names for command grouping
PANEL_PIPELINES = "Pipelines"
PANEL_TASKS = "Single Tasks"
PANEL_INSTALL = "About"

app = typer.Typer(
    name="kiln",
    help="Static-site asset build pipeline",
    no_args_is_help=False,
    invoke_without_command=True,
    add_completion=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    kiln - static-site asset build pipeline.

    Compiles templates, stylesheets and scripts, converts fonts, copies
    and recompresses images, assembles icon sprites, fingerprints the
    production build and deploys it over FTP.

    When run without a subcommand, kiln cleans the output tree, builds
    every asset in development mode and serves a live-reloading preview.

    Common Workflows:
        kiln                         # Build, watch and serve
        kiln styles                  # Rebuild stylesheets only
        kiln build                   # Production build with cache busting
        kiln build --deploy          # ... and upload over FTP
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env(project_dir=resolve_project_root())

    if debug:
        logging.basicConfig(level=logging.DEBUG)
        console.print("[dim]Debug mode enabled[/dim]")

    ctx.obj = {"debug": debug}

    if ctx.invoked_subcommand is not None:
        return

    dev.start_dev()


# =============================================================================
# Pipelines
# =============================================================================

app.command(name="dev", rich_help_panel=PANEL_PIPELINES)(dev.dev)
app.command(name="build", rich_help_panel=PANEL_PIPELINES)(build.build)
app.command(name="cache", rich_help_panel=PANEL_PIPELINES)(build.cache)
app.command(name="deploy", rich_help_panel=PANEL_PIPELINES)(deploy.deploy)


# =============================================================================
# Single Tasks
# =============================================================================

app.command(name="clean", rich_help_panel=PANEL_TASKS)(tasks.clean)
app.command(name="layout", rich_help_panel=PANEL_TASKS)(tasks.layout)
app.command(name="styles", rich_help_panel=PANEL_TASKS)(tasks.styles)
app.command(name="scripts", rich_help_panel=PANEL_TASKS)(tasks.scripts)
app.command(name="fonts", rich_help_panel=PANEL_TASKS)(tasks.fonts)
app.command(name="svg-sprites", rich_help_panel=PANEL_TASKS)(tasks.svg_sprites)
app.command(name="img", rich_help_panel=PANEL_TASKS)(tasks.img)
app.command(name="resources", rich_help_panel=PANEL_TASKS)(tasks.resources)


@app.command(rich_help_panel=PANEL_INSTALL)
def version() -> None:
    """Show kiln version and exit."""
    console.print(f"kiln version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
