"""
Notification side channel for recoverable build errors.

Transform failures do not stop a build. They are reported here instead:
printed to the console and logged. The most recent ones are kept so the
caller can summarise them at the end.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger(__name__)

MAX_RECORDS = 200


@dataclass(frozen=True)
class Notification:
    """A single reported error."""

    task: str
    message: str
    path: Path | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier:
    """
    Collects and displays transform errors.

    Example:
        >>> notifier = Notifier()
        >>> notifier.error("styles", "Invalid CSS after 'a {'", Path("src/scss/a.scss"))
        >>> len(notifier.records)
        1
    """

    def __init__(
        self,
        console: Console | None = None,
        quiet: bool = False,
        max_records: int = MAX_RECORDS,
    ) -> None:
        self.console = console or Console(stderr=True)
        self.quiet = quiet
        # a dev session re-runs tasks indefinitely; only the newest records stay
        self.records: deque[Notification] = deque(maxlen=max_records)

    def error(self, task: str, message: str, path: Path | None = None) -> Notification:
        """Record and display an error from ``task``."""
        notification = Notification(task=task, message=message, path=path)
        self.records.append(notification)

        where = f" {path}" if path is not None else ""
        logger.error(f"[{task}]{where}: {message}")
        if not self.quiet:
            self.console.print(f"[red]✗ {escape(task)}[/red]{escape(where)}")
            self.console.print(f"[dim]{escape(message)}[/dim]")
        return notification

    def for_task(self, task: str) -> list[Notification]:
        return [n for n in self.records if n.task == task]

    def clear(self) -> None:
        self.records.clear()
