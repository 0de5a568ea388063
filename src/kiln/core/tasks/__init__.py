"""
Build tasks.

Importing this package registers every task with the task registry.
"""

from kiln.core.tasks import (  # noqa: F401  (registration side effects)
    clean,
    fonts,
    images,
    layout,
    resources,
    scripts,
    sprites,
    styles,
)
from kiln.core.tasks.base import BuildTask, get_task, list_tasks, register_task, select_files

__all__ = ["BuildTask", "get_task", "list_tasks", "register_task", "select_files"]
