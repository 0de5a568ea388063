"""Remote deployment of the output tree."""

from kiln.core.deploy.remote import FtpRemote, RemoteClient
from kiln.core.deploy.service import DeployResult, DeployService

__all__ = ["DeployResult", "DeployService", "FtpRemote", "RemoteClient"]
