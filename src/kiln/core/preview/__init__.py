"""Development preview server and live reload."""

from kiln.core.preview.reload import LiveReloadHub
from kiln.core.preview.server import PreviewServer, create_app, inject_client

__all__ = ["LiveReloadHub", "PreviewServer", "create_app", "inject_client"]
