"""Utility modules for kiln."""

from .project import find_project_root, resolve_project_root

__all__ = ["find_project_root", "resolve_project_root"]
