"""
Custom exceptions for the kiln build pipeline.

Exception Hierarchy:
    KilnError (base)
    ├── ConfigError (invalid or unusable configuration)
    ├── TransformError (a single file failed to transform)
    ├── BundleError (the script bundler failed)
    ├── ManifestError (cache-busting manifest missing or unreadable)
    └── DeployError (remote transfer failed)

Transform and bundle errors are recovered inside their task and surface as
a failed TaskResult. Manifest and deploy errors propagate to the CLI.

Example:
    >>> from kiln.core.exceptions import ManifestError
    >>> try:
    ...     raise ManifestError(Path("dist/rev.json"), "file not found")
    ... except ManifestError as e:
    ...     print(f"Cannot rewrite references: {e}")
"""

from pathlib import Path


class KilnError(Exception):
    """
    Base exception for all kiln errors.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary of additional context
    """

    def __init__(self, message: str, **context: object) -> None:
        """
        Initialize an error with message and context.

        Args:
            message: Human-readable error message
            **context: Additional context as keyword arguments
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message


class ConfigError(KilnError):
    """Raised when configuration is present but cannot be used."""


class TransformError(KilnError):
    """
    Exception raised when a single source file fails to transform.

    Attributes:
        task: Name of the task that was running
        path: Source file that failed, if known
    """

    def __init__(
        self, task: str, message: str, path: Path | None = None, **context: object
    ) -> None:
        super().__init__(message, task=task, path=path, **context)
        self.task = task
        self.path = path

    def __str__(self) -> str:
        """Return string representation with task and path."""
        if self.path is not None:
            return f"[{self.task}] {self.path}: {self.message}"
        return f"[{self.task}] {self.message}"


class BundleError(KilnError):
    """
    Exception raised when the script bundler cannot produce a bundle.

    Attributes:
        entry: Entry module the bundle was started from
    """

    def __init__(self, entry: Path, message: str, **context: object) -> None:
        super().__init__(message, entry=entry, **context)
        self.entry = entry

    def __str__(self) -> str:
        """Return string representation with the entry module."""
        return f"Bundling {self.entry.name} failed: {self.message}"


class ManifestError(KilnError):
    """
    Exception raised when the cache-busting manifest cannot be loaded.

    This is fatal to the rewrite step; there is no fallback.

    Attributes:
        path: Location the manifest was expected at
    """

    def __init__(self, path: Path, message: str, **context: object) -> None:
        super().__init__(message, path=path, **context)
        self.path = path

    def __str__(self) -> str:
        """Return string representation with the manifest path."""
        return f"Manifest {self.path}: {self.message}"


class DeployError(KilnError):
    """
    Exception raised when a remote transfer fails.

    Transfers are not retried; files uploaded before the failure stay on
    the remote.

    Attributes:
        path: Local file being transferred when the failure happened
    """

    def __init__(self, message: str, path: Path | None = None, **context: object) -> None:
        super().__init__(message, path=path, **context)
        self.path = path

    def __str__(self) -> str:
        """Return string representation with the file being transferred."""
        if self.path is not None:
            return f"Deploy failed at {self.path}: {self.message}"
        return f"Deploy failed: {self.message}"


__all__ = [
    "KilnError",
    "ConfigError",
    "TransformError",
    "BundleError",
    "ManifestError",
    "DeployError",
]
