"""
Pipeline data model and build context.

The runner and composer live in their own modules and are imported
directly, since they depend on the task registry.
"""

from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import (
    MODE_PROFILES,
    Mode,
    ModeProfile,
    PipelineResult,
    Stage,
    StageResult,
    TaskResult,
    TaskStatus,
)
from kiln.core.pipeline.notify import Notification, Notifier

__all__ = [
    "MODE_PROFILES",
    "BuildContext",
    "Mode",
    "ModeProfile",
    "Notification",
    "Notifier",
    "PipelineResult",
    "Stage",
    "StageResult",
    "TaskResult",
    "TaskStatus",
]
