"""
FTP access for deploys.

One FtpRemote wraps one control connection. The deploy service opens as
many of them as it runs transfers in parallel.
"""

from __future__ import annotations

import ftplib
import logging
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Protocol

from kiln.core.config.models import DeployConfig
from kiln.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


class RemoteClient(Protocol):
    """Operations the deploy service needs from a remote."""

    def mtime(self, path: str) -> datetime | None:
        """Modification time of a remote file, or None if it does not exist."""
        ...

    def upload(self, local: Path, path: str) -> None:
        """Upload ``local`` to ``path``, creating directories as needed."""
        ...

    def close(self) -> None: ...


def parse_mdtm(response: str) -> datetime:
    """
    Parse an MDTM reply such as ``213 20240131120000`` (UTC).

    Fractional seconds are ignored.
    """
    value = response.split()[-1]
    return datetime.strptime(value[:14], "%Y%m%d%H%M%S").replace(tzinfo=timezone.utc)


class FtpRemote:
    """
    Remote client over a single FTP connection.

    Example:
        >>> remote = FtpRemote.from_config(config.deploy)
        >>> remote.mtime("/www/index.html")
        datetime.datetime(2024, 1, 31, 12, 0, tzinfo=datetime.timezone.utc)
        >>> remote.close()
    """

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        port: int = 21,
        timeout: float = 30.0,
    ) -> None:
        self.ftp = ftplib.FTP()
        self.ftp.connect(host, port, timeout=timeout)
        self.ftp.login(user, password)
        self._known_dirs: set[str] = set()

    @classmethod
    def from_config(cls, config: DeployConfig) -> FtpRemote:
        """
        Connect with the deploy settings.

        Raises:
            ConfigError: If no host is configured
        """
        if not config.host:
            raise ConfigError("No deploy host configured (deploy.host or KILN_FTP_HOST)")
        return cls(
            host=config.host,
            user=config.user,
            password=config.password or "",
            port=config.port,
            timeout=config.timeout,
        )

    def mtime(self, path: str) -> datetime | None:
        try:
            return parse_mdtm(self.ftp.sendcmd(f"MDTM {path}"))
        except ftplib.error_perm as e:
            if str(e).startswith("550"):
                return None
            raise

    def makedirs(self, directory: str) -> None:
        current = PurePosixPath("/") if directory.startswith("/") else PurePosixPath()
        for part in PurePosixPath(directory).parts:
            if part == "/":
                continue
            current = current / part
            key = str(current)
            if key in self._known_dirs:
                continue
            try:
                self.ftp.mkd(key)
            except ftplib.error_perm as e:
                # 550/521: already exists
                if str(e)[:3] not in ("550", "521"):
                    raise
            self._known_dirs.add(key)

    def upload(self, local: Path, path: str) -> None:
        parent = str(PurePosixPath(path).parent)
        if parent not in (".", "/"):
            self.makedirs(parent)
        with local.open("rb") as f:
            self.ftp.storbinary(f"STOR {path}", f)
        logger.debug(f"Uploaded {local} -> {path}")

    def close(self) -> None:
        try:
            self.ftp.quit()
        except ftplib.all_errors:
            self.ftp.close()
