"""
Shared plumbing for kiln commands: context setup, progress output and
running a pipeline coroutine with the standard error handling.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from kiln.cli.errors import ExitCode, exit_code_for, print_config_error
from kiln.core.config import load_config
from kiln.core.exceptions import KilnError
from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import Mode, PipelineResult, Stage, StageResult, TaskResult
from kiln.core.pipeline.notify import Notifier
from kiln.utils.project import resolve_project_root

T = TypeVar("T")

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)


class ConsoleReporter:
    """Print pipeline progress to the console."""

    def on_stage_start(self, index: int, stage: Stage) -> None:
        console.print(f"[dim]Stage {index + 1}: {', '.join(stage.tasks)}[/dim]")

    def on_task_complete(self, result: TaskResult) -> None:
        files = f"{len(result.assets)} file(s), {result.duration_seconds:.2f}s"
        if result.ok:
            console.print(f"[green]✓[/green] {result.task} [dim]({files})[/dim]")
        else:
            console.print(
                f"[yellow]![/yellow] {result.task} [dim]({files})[/dim] "
                f"[yellow]{len(result.errors)} error(s)[/yellow]"
            )

    def on_halt(self, index: int, stage_result: StageResult) -> None:
        console.print(f"[red]Stopping after stage {index + 1}[/red]")


def build_context(mode: Mode) -> BuildContext:
    """
    Load the project configuration and create a build context.

    Raises:
        typer.Exit: With USER_ERROR if the configuration is invalid
    """
    project_root = resolve_project_root()
    try:
        config = load_config(project_root)
    except ValidationError as e:
        print_config_error(e)
        raise typer.Exit(ExitCode.USER_ERROR) from e

    logger.debug(f"Project root: {project_root}, mode: {mode.value}")
    return BuildContext(
        project_root=project_root,
        config=config,
        mode=mode,
        notifier=Notifier(console=err_console),
    )


def run_pipeline(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run ``coro`` on a fresh event loop, mapping fatal errors to exit codes.

    Raises:
        typer.Exit: On a fatal kiln error or Ctrl+C
    """
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(ExitCode.SIGINT)
    except KilnError as e:
        raise typer.Exit(exit_code_for(e)) from e


def print_summary(ctx: BuildContext, pipeline: PipelineResult) -> None:
    """Summarise a pipeline run; reported errors are listed, not fatal."""
    seconds = f"{pipeline.total_duration:.2f}s"
    if pipeline.ok:
        console.print(f"[bold green]Build finished[/bold green] [dim]in {seconds}[/dim]")
        return

    console.print(
        f"[bold yellow]Build finished with {pipeline.tasks_failed} failed task(s)[/bold yellow] "
        f"[dim]in {seconds}[/dim]"
    )
    for notification in ctx.notifier.records:
        where = f" {notification.path}" if notification.path else ""
        console.print(escape(f"  • [{notification.task}]{where}: {notification.message}"))
