"""
Build context passed to every task run.

The context replaces process-wide state: the live-reload connection set
lives on the hub held here, and only exists while a watch loop runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from kiln.core.config.models import KilnConfig
from kiln.core.pipeline.models import MODE_PROFILES, Mode, ModeProfile
from kiln.core.pipeline.notify import Notifier

if TYPE_CHECKING:
    from kiln.core.preview.reload import LiveReloadHub


@dataclass
class BuildContext:
    """
    Everything a task needs to run.

    Attributes:
        project_root: Directory the configured paths are relative to
        config: Loaded configuration
        mode: Development or production
        notifier: Side channel for recoverable errors
        reload_hub: Live-reload hub, set only while the watch loop runs
    """

    project_root: Path
    config: KilnConfig
    mode: Mode = Mode.DEVELOPMENT
    notifier: Notifier = field(default_factory=Notifier)
    reload_hub: LiveReloadHub | None = None

    @property
    def profile(self) -> ModeProfile:
        return MODE_PROFILES[self.mode]

    @property
    def dist(self) -> Path:
        return self.project_root / self.config.paths.dist

    def source(self, key: str) -> Path:
        """Resolve a configured source directory such as ``styles``."""
        return self.project_root / getattr(self.config.paths, key)

    def with_mode(self, mode: Mode) -> BuildContext:
        """Return a copy of this context in another mode, sharing the notifier."""
        return BuildContext(
            project_root=self.project_root,
            config=self.config,
            mode=mode,
            notifier=self.notifier,
            reload_hub=self.reload_hub,
        )
