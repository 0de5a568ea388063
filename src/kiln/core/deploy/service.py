"""
Deploy the output tree to the remote.

A file is uploaded when it is missing remotely or when its local
modification time is newer than the remote one. Transfers run in
parallel, each over its own connection. There is no retry: the first
failed transfer aborts the deploy, and files already uploaded stay.
"""

from __future__ import annotations

import asyncio
import ftplib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from kiln.core.config.models import DeployConfig
from kiln.core.deploy.remote import FtpRemote, RemoteClient
from kiln.core.exceptions import DeployError

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], RemoteClient]


@dataclass
class DeployResult:
    """
    Outcome of a deploy.

    Attributes:
        uploaded: Relative paths transmitted
        skipped: Relative paths already up to date remotely
        duration_seconds: Wall-clock time of the deploy
    """

    uploaded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0


def is_newer(local: Path, remote_time: datetime | None) -> bool:
    """True if ``local`` should be uploaded over a file modified at ``remote_time``."""
    if remote_time is None:
        return True
    local_time = datetime.fromtimestamp(local.stat().st_mtime, tz=timezone.utc)
    # MDTM has one-second resolution
    return local_time.replace(microsecond=0) > remote_time


class DeployService:
    """
    Sync an output tree to one remote.

    Example:
        >>> service = DeployService(Path("dist"), config.deploy)
        >>> result = await service.deploy()
        >>> result.uploaded
        ['index.html', 'css/main.min.1a2b3c4d5e.css']
    """

    def __init__(
        self,
        dist: Path,
        config: DeployConfig,
        client_factory: ClientFactory | None = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            dist: Local output tree
            config: Remote endpoint and transfer limit
            client_factory: Opens one connected client (default: FTP)
        """
        self.dist = dist
        self.config = config
        self._client_factory = client_factory or (lambda: FtpRemote.from_config(config))

    def remote_path(self, rel: str) -> str:
        root = self.config.remote_root.rstrip("/")
        return str(PurePosixPath(root) / rel) if root else rel

    def local_files(self) -> list[tuple[Path, str]]:
        """Every file under the output tree with its POSIX relative path."""
        if not self.dist.is_dir():
            raise DeployError(f"Output directory not found: {self.dist}")
        return [
            (path, path.relative_to(self.dist).as_posix())
            for path in sorted(self.dist.rglob("*"))
            if path.is_file()
        ]

    def _sync_one(self, client: RemoteClient, local: Path, rel: str) -> bool:
        remote = self.remote_path(rel)
        if not is_newer(local, client.mtime(remote)):
            return False
        client.upload(local, remote)
        return True

    async def _open_client(self) -> RemoteClient:
        try:
            return await asyncio.to_thread(self._client_factory)
        except ftplib.all_errors as e:
            raise DeployError(f"cannot connect to {self.config.host}: {e}") from e

    async def deploy(self) -> DeployResult:
        """
        Upload every new or modified file.

        Raises:
            DeployError: On connection failure or the first failed transfer
        """
        started = time.monotonic()
        files = self.local_files()
        result = DeployResult()
        if not files:
            return result

        pool: asyncio.Queue[RemoteClient] = asyncio.Queue()
        clients: list[RemoteClient] = []
        failure: list[DeployError] = []

        async def sync(local: Path, rel: str) -> None:
            if failure:
                return
            client = await pool.get()
            try:
                if failure:
                    return
                uploaded = await asyncio.to_thread(self._sync_one, client, local, rel)
            except ftplib.all_errors as e:
                reason = str(e) or f"{e.__class__.__name__} (connection closed)"
                logger.error(f"Transfer of {rel} failed: {reason}")
                failure.append(DeployError(reason, path=local))
                return
            finally:
                pool.put_nowait(client)
            (result.uploaded if uploaded else result.skipped).append(rel)

        try:
            for _ in range(min(self.config.parallel, len(files))):
                client = await self._open_client()
                clients.append(client)
                pool.put_nowait(client)

            # every transfer settles before the clients are closed
            outcomes = await asyncio.gather(
                *(sync(local, rel) for local, rel in files), return_exceptions=True
            )
        finally:
            for client in clients:
                await asyncio.to_thread(client.close)

        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        if failure:
            raise failure[0]

        result.duration_seconds = time.monotonic() - started
        logger.info(f"Deployed {len(result.uploaded)} file(s), {len(result.skipped)} unchanged")
        return result
