"""
File-system polling for the watch loop.

Each GlobWatcher tracks the files matching one glob pattern and reports
which of them were added, modified or removed since the previous poll.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

_WILDCARDS = set("*?[")

Snapshot = dict[Path, tuple[float, int]]


def split_glob(pattern: str) -> tuple[Path, str]:
    """
    Split an absolute glob into its literal root and the relative pattern.

    Example:
        >>> split_glob("/site/src/scss/**/*.scss")
        (PosixPath('/site/src/scss'), '**/*.scss')
    """
    parts = Path(pattern).parts
    for index, part in enumerate(parts):
        if _WILDCARDS & set(part):
            root = Path(*parts[:index])
            relative = "/".join(parts[index:])
            break
    else:
        root = Path(*parts[:-1])
        relative = parts[-1]

    # A trailing ** would only match directories
    if relative == "**" or relative.endswith("/**"):
        relative += "/*"
    return root, relative


class GlobWatcher:
    """
    Poll the files matching one glob and detect changes.

    Changes are detected from modification time and size. The first poll
    records a baseline and reports nothing.

    Example:
        >>> watcher = GlobWatcher("/site/src/scss/**/*.scss")
        >>> watcher.poll()  # baseline
        set()
        >>> # ... edit a.scss ...
        >>> watcher.poll()
        {PosixPath('/site/src/scss/a.scss')}
    """

    def __init__(
        self,
        pattern: str,
        on_change: Callable[[set[Path]], None] | None = None,
    ):
        """
        Initialize the watcher.

        Args:
            pattern: Absolute glob pattern
            on_change: Callback invoked with the changed paths
        """
        self.pattern = pattern
        self.root, self.relative = split_glob(pattern)
        self.on_change = on_change

        self._last: Snapshot | None = None

    def snapshot(self) -> Snapshot:
        """Current (mtime, size) of every matching file."""
        if not self.root.is_dir():
            return {}
        snapshot: Snapshot = {}
        for path in self.root.glob(self.relative):
            try:
                stat = path.stat()
            except OSError:
                # Deleted between glob and stat
                continue
            if path.is_file():
                snapshot[path] = (stat.st_mtime, stat.st_size)
        return snapshot

    def poll(self) -> set[Path]:
        """
        Compare the file set against the previous poll.

        Returns:
            Paths added, modified or removed since the last poll
        """
        current = self.snapshot()
        previous, self._last = self._last, current
        if previous is None:
            return set()

        changed = set(current.keys() ^ previous.keys())
        changed.update(
            path for path in current.keys() & previous.keys() if current[path] != previous[path]
        )
        if changed and self.on_change:
            self.on_change(changed)
        return changed
