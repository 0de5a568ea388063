"""
Secrets from .env files.

The FTP password and the TinyPNG key are read from KILN_* variables, which
may come from the shell or from .env files. Files are applied in order,
user file first, then the project's .env and .env.local. A later file
replaces a value an earlier file set; nothing replaces a variable that was
already exported when kiln started.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from dotenv import dotenv_values

from .loader import get_xdg_config_home

logger = logging.getLogger(__name__)

PROJECT_ENV_FILES = (".env", ".env.local")


def read_env_file(path: Path) -> dict[str, str]:
    """Key/value pairs of one .env file; keys without a value are skipped."""
    if not path.is_file():
        return {}
    return {k: v for k, v in dotenv_values(path).items() if k and v is not None}


def default_env_files(project_dir: Path) -> list[Path]:
    """The user .env followed by the project's files, lowest precedence first."""
    return [get_xdg_config_home() / "kiln" / ".env"] + [
        project_dir / name for name in PROJECT_ENV_FILES
    ]


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> dict[str, Path]:
    """
    Apply .env files to ``os.environ``.

    Args:
        project_dir: Directory holding the project's .env files (default: cwd)
        user_env_paths: Replace the user .env location
        project_env_paths: Replace the project .env locations

    Returns:
        Each variable that was set, with the file its value came from
    """
    project_dir = project_dir or Path.cwd()
    defaults = default_env_files(project_dir)
    files = [
        *(defaults[:1] if user_env_paths is None else user_env_paths),
        *(defaults[1:] if project_env_paths is None else project_env_paths),
    ]

    exported = set(os.environ)
    applied: dict[str, Path] = {}
    for path in map(Path, files):
        for key, value in read_env_file(path).items():
            if key in exported:
                continue
            os.environ[key] = value
            applied[key] = path

    for key, path in applied.items():
        logger.debug(f"{key} loaded from {path}")
    return applied
