"""
Standardized error handling and exit codes for the kiln CLI.

Recoverable transform errors never reach this module: they are reported
by the notifier and the command still exits 0. Only fatal errors (bad
configuration, unreadable manifest, failed deploy, strict-mode halt) are
printed here and mapped to a non-zero exit code.
"""

from enum import IntEnum

from rich.console import Console
from rich.markup import escape

from kiln.core.exceptions import ConfigError, DeployError, KilnError, ManifestError

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for kiln CLI operations."""

    SUCCESS = 0
    """Operation completed successfully (possibly with reported task errors)."""

    GENERAL_ERROR = 1
    """Fatal build, cache-busting or deploy error."""

    USER_ERROR = 2
    """User configuration or input error (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Cannot rewrite asset references",
        ...     reason="Manifest dist/rev.json: file not found",
        ...     solution="kiln build",
        ... )
    """
    console.print(f"[red]Error:[/red] {escape(problem)}")

    if reason:
        console.print(f"[dim]{escape(reason)}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {escape(solution)}")


def print_config_error(error: Exception) -> None:
    """Print error when the configuration cannot be loaded or used."""
    print_error(
        "Invalid configuration",
        reason=str(error),
        solution="check .kiln.json and KILN_* environment variables",
    )


def print_manifest_error(error: ManifestError) -> None:
    """Print error when the cache-busting manifest cannot be read."""
    print_error(
        "Cannot rewrite asset references",
        reason=str(error),
        solution="kiln build  # produces the output tree and its manifest",
    )


def print_deploy_error(error: DeployError) -> None:
    """Print error when a transfer failed; the remote may be partially updated."""
    print_error(
        "Deploy aborted",
        reason=f"{error}. Files uploaded before the failure stay on the remote.",
        solution="kiln deploy  # only files not yet up to date are sent again",
    )


def print_strict_halt_error(failed: int) -> None:
    """Print error when build.strict stopped the production pipeline."""
    print_error(
        f"Build stopped: {failed} task(s) failed",
        reason="build.strict is enabled, so cache busting was skipped",
        solution="fix the reported errors, or set build.strict to false",
    )


def exit_code_for(error: KilnError) -> ExitCode:
    """Print ``error`` and return the exit code it maps to."""
    if isinstance(error, ConfigError):
        print_config_error(error)
        return ExitCode.USER_ERROR
    if isinstance(error, ManifestError):
        print_manifest_error(error)
    elif isinstance(error, DeployError):
        print_deploy_error(error)
    else:
        print_error(str(error))
    return ExitCode.GENERAL_ERROR


__all__ = [
    "ExitCode",
    "exit_code_for",
    "print_config_error",
    "print_deploy_error",
    "print_error",
    "print_manifest_error",
    "print_strict_halt_error",
]
