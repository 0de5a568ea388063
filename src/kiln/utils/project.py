"""
Project root discovery for kiln.

A project root is the nearest directory holding a .kiln.json file or,
failing that, a .git directory.
"""

from pathlib import Path

# Markers that indicate a project root, in order of priority
PROJECT_ROOT_MARKERS = [
    ".kiln.json",  # kiln project configuration
    ".git",  # Git repository
]


def find_project_root(start: Path | None = None) -> Path | None:
    """
    Find the project root by searching upward for marker files.

    Args:
        start: Directory to start searching from. Defaults to current working directory.

    Returns:
        Path to the project root directory, or None if not found.

    Example:
        >>> find_project_root(Path("/site/src/scss"))
        PosixPath('/site')
    """
    start = (start or Path.cwd()).resolve()

    for marker in PROJECT_ROOT_MARKERS:
        for directory in (start, *start.parents):
            if (directory / marker).exists():
                return directory
    return None


def resolve_project_root(start: Path | None = None) -> Path:
    """Project root, or the start directory itself when no marker is found."""
    return find_project_root(start) or (start or Path.cwd()).resolve()
