"""
kiln - static-site asset build pipeline

Compiles templates, stylesheets and scripts, processes fonts, images and
icon sprites, fingerprints production output and deploys it over FTP.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from kiln.core.config.models import KilnConfig
from kiln.core.pipeline.models import Mode, TaskResult, TaskStatus

__all__ = ["KilnConfig", "Mode", "TaskResult", "TaskStatus", "__version__"]
