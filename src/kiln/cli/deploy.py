"""
kiln CLI - deploy command.
"""

from kiln.cli.common import build_context, console, run_pipeline
from kiln.core.pipeline.composer import run_deploy
from kiln.core.pipeline.models import Mode


def deploy() -> None:
    """
    Upload new and modified output files over FTP.

    A file is sent when it is missing on the server or older there. The
    password is read from KILN_FTP_PASSWORD.
    """
    ctx = build_context(Mode.PRODUCTION)
    console.print(f"[cyan]Deploying {ctx.dist} to {ctx.config.deploy.host}...[/cyan]")
    result = run_pipeline(run_deploy(ctx))

    for rel in result.uploaded:
        console.print(f"  [green]↑[/green] {rel}")
    console.print(
        f"[green]✓[/green] deploy [dim]({len(result.uploaded)} uploaded, "
        f"{len(result.skipped)} unchanged, {result.duration_seconds:.2f}s)[/dim]"
    )
