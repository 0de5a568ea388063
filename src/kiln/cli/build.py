"""
kiln CLI - production build and cache busting.
"""

import typer

from kiln.cli.common import ConsoleReporter, build_context, console, print_summary, run_pipeline
from kiln.cli.errors import ExitCode, print_strict_halt_error
from kiln.core.pipeline.composer import CacheResult, run_cache, run_production
from kiln.core.pipeline.models import Mode


def _print_cache(cache: CacheResult) -> None:
    revision = cache.revision
    console.print(
        f"[green]✓[/green] cache [dim]({len(revision.renamed)} fingerprinted, "
        f"{len(revision.manifest)} in {revision.manifest_path.name})[/dim]"
    )
    for path in cache.rewritten:
        console.print(f"  [dim]rewrote {path.name}[/dim]")


def build(
    deploy: bool = typer.Option(
        False,
        "--deploy",
        help="Upload the result to the configured FTP server",
    ),
) -> None:
    """
    Run the production pipeline.

    Cleans the output tree, builds every asset with compact output and
    full minification, fingerprints the result for cache busting and
    rewrites the references in index.html.

    Examples:
        kiln build
        kiln build --deploy
    """
    ctx = build_context(Mode.PRODUCTION)
    result = run_pipeline(run_production(ctx, ConsoleReporter(), deploy=deploy))

    print_summary(ctx, result.pipeline)
    if result.halted:
        print_strict_halt_error(result.pipeline.tasks_failed)
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    if result.cache is not None:
        _print_cache(result.cache)
    if result.deploy is not None:
        console.print(
            f"[green]✓[/green] deploy [dim]({len(result.deploy.uploaded)} uploaded, "
            f"{len(result.deploy.skipped)} unchanged)[/dim]"
        )


def cache() -> None:
    """
    Fingerprint the existing output tree and rewrite references.

    Fails if the manifest cannot be read back after fingerprinting.
    """
    ctx = build_context(Mode.PRODUCTION)
    _print_cache(run_pipeline(run_cache(ctx)))
