"""
Live-reload hub.

Holds the set of connected preview pages and tells them what changed
after a task re-run. A change that touches only stylesheets is pushed as
a CSS injection; anything else makes the page reload.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

from fastapi import WebSocketDisconnect

logger = logging.getLogger(__name__)


class ReloadClient(Protocol):
    """The part of a websocket the hub uses."""

    async def send_json(self, data: Any, mode: str = "text") -> None: ...


class LiveReloadHub:
    """
    Broadcast change messages to connected preview pages.

    Example:
        >>> hub = LiveReloadHub(Path("dist"))
        >>> hub.message_for([Path("dist/css/main.min.css")])
        {'type': 'css', 'paths': ['css/main.min.css']}
    """

    def __init__(self, dist: Path) -> None:
        self.dist = dist
        self._clients: set[ReloadClient] = set()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def add(self, client: ReloadClient) -> None:
        self._clients.add(client)
        logger.debug(f"Live-reload client connected ({self.client_count} total)")

    def discard(self, client: ReloadClient) -> None:
        self._clients.discard(client)

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.dist).as_posix()
        except ValueError:
            return path.as_posix()

    def message_for(self, assets: Iterable[Path]) -> dict[str, Any]:
        assets = list(assets)
        if assets and all(path.suffix == ".css" for path in assets):
            return {"type": "css", "paths": sorted(self._relative(p) for p in assets)}
        return {"type": "reload"}

    async def broadcast(self, assets: Iterable[Path]) -> dict[str, Any]:
        """
        Send the change message for ``assets`` to every client.

        Clients that cannot be written to are dropped.

        Returns:
            The message that was sent
        """
        message = self.message_for(assets)
        for client in list(self._clients):
            try:
                await client.send_json(message)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.debug(f"Dropping live-reload client: {e!r}")
                self.discard(client)
        return message
