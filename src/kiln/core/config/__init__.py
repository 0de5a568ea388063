"""
Configuration models and loading.

This module provides Pydantic models for kiln configuration
with multi-layer merging: defaults < user < project < env vars.
"""

from .loader import (
    clear_cache,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
)
from .models import (
    BuildConfig,
    CacheConfig,
    DeployConfig,
    DevConfig,
    ImagesConfig,
    KilnConfig,
    PathsConfig,
    ScriptsConfig,
    StylesConfig,
)

__all__ = [
    # Models
    "BuildConfig",
    "CacheConfig",
    "DeployConfig",
    "DevConfig",
    "ImagesConfig",
    "KilnConfig",
    "PathsConfig",
    "ScriptsConfig",
    "StylesConfig",
    # Loader functions
    "clear_cache",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
]
