"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import os
from pathlib import Path
from typing import Any

from .models import KilnConfig

# Global cache to avoid reloading config multiple times per process
_config_cache: KilnConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/kiln/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "kiln" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Project directory (defaults to current directory)

    Returns:
        Path to .kiln.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".kiln.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`.
    Nested dicts are merged, not replaced.

    Example:
        >>> base = {"a": 1, "b": {"x": 10, "y": 20}}
        >>> override = {"b": {"y": 30, "z": 40}, "c": 3}
        >>> deep_merge(base, override)
        {"a": 1, "b": {"x": 10, "y": 30, "z": 40}, "c": 3}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        print(f"Warning: Failed to parse config at {path}: {e}")
        return None


def _set(result: dict[str, Any], section: str, key: str, value: Any) -> None:
    section_dict = dict(result.get(section) or {})
    section_dict[key] = value
    result[section] = section_dict


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.

    Supported env vars:
        KILN_DIST - overrides paths.dist
        KILN_DEV_PORT - overrides dev.port
        KILN_TINYPNG_KEY - overrides images.tinypng_key
        KILN_FTP_HOST - overrides deploy.host
        KILN_FTP_USER - overrides deploy.user
        KILN_FTP_PASSWORD - overrides deploy.password
        KILN_DEPLOY_PARALLEL - overrides deploy.parallel
        KILN_BUILD_STRICT - overrides build.strict

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()

    if dist := os.environ.get("KILN_DIST"):
        _set(result, "paths", "dist", dist)

    if port_str := os.environ.get("KILN_DEV_PORT"):
        try:
            _set(result, "dev", "port", int(port_str))
        except ValueError:
            print(f"Warning: Invalid KILN_DEV_PORT value '{port_str}', ignoring")

    if key := os.environ.get("KILN_TINYPNG_KEY"):
        _set(result, "images", "tinypng_key", key)

    if host := os.environ.get("KILN_FTP_HOST"):
        _set(result, "deploy", "host", host)

    if user := os.environ.get("KILN_FTP_USER"):
        _set(result, "deploy", "user", user)

    if password := os.environ.get("KILN_FTP_PASSWORD"):
        _set(result, "deploy", "password", password)

    if parallel_str := os.environ.get("KILN_DEPLOY_PARALLEL"):
        try:
            parallel = int(parallel_str)
            if parallel < 1:
                print(f"Warning: KILN_DEPLOY_PARALLEL must be >= 1, got {parallel}, ignoring")
            else:
                _set(result, "deploy", "parallel", parallel)
        except ValueError:
            print(f"Warning: Invalid KILN_DEPLOY_PARALLEL value '{parallel_str}', ignoring")

    if strict_str := os.environ.get("KILN_BUILD_STRICT"):
        _set(result, "build", "strict", strict_str.lower() not in ("false", "0", ""))

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Only values that differ from the model defaults need to appear here.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "build": {"strict": False},
        "deploy": {"parallel": 10},
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> KilnConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (KILN_*)
        2. Project config (.kiln.json)
        3. User config (~/.config/kiln/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .kiln.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated KilnConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = KilnConfig(**merged)
    _config_cache = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
