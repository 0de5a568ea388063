"""Watch loop: polling watchers and serialised task re-runs."""

from kiln.core.watch.loop import WATCHED_TASKS, RerunSlot, WatchLoop
from kiln.core.watch.watcher import GlobWatcher, split_glob

__all__ = ["WATCHED_TASKS", "GlobWatcher", "RerunSlot", "WatchLoop", "split_glob"]
