"""
Configuration data models for kiln.

These models define the structure of .kiln.json and ~/.config/kiln/config.json
files, with validation and type safety via Pydantic.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PathsConfig(BaseModel):
    """
    Source and output layout, relative to the project root.

    The output tree mirrors the source tree: css/, js/, fonts/, img/ and
    resources/ under ``dist``.
    """
    src: str = Field(default="src", description="Source root")
    dist: str = Field(default="dist", description="Output root (removed by clean)")
    templates: str = Field(default="src/templates", description="Template directory")
    entry: str = Field(default="index.html", description="Entry template name")
    styles: str = Field(default="src/scss", description="Stylesheet directory")
    scripts: str = Field(default="src/js", description="Script directory")
    script_entry: str = Field(default="main.js", description="Single entry script")
    fonts: str = Field(default="src/fonts", description="TrueType font directory")
    images: str = Field(default="src/img", description="Image and icon directory")
    resources: str = Field(default="src/resources", description="Raw resources")


class StylesConfig(BaseModel):
    """
    Stylesheet compilation settings.

    Vendor prefixing runs an external command (stdin -> stdout) when one is
    configured, e.g. ``["npx", "postcss", "--use", "autoprefixer"]``.
    """
    prefix_command: Optional[list[str]] = Field(
        default=None,
        description="Command that reads CSS on stdin and writes prefixed CSS"
    )
    include_paths: list[str] = Field(
        default_factory=list,
        description="Extra import paths for the preprocessor"
    )


class ScriptsConfig(BaseModel):
    """Script bundling settings."""
    bundler: str = Field(
        default="builtin",
        pattern="^(builtin|esbuild)$",
        description="Bundler to use: 'builtin' or 'esbuild'"
    )
    esbuild_path: str = Field(
        default="esbuild",
        description="esbuild executable (used when bundler is 'esbuild')"
    )
    target: str = Field(
        default="es2015",
        description="Target syntax level passed to esbuild"
    )


class ImagesConfig(BaseModel):
    """Image recompression settings (production only)."""
    tinypng_key: Optional[str] = Field(
        default=None,
        description="TinyPNG API key; recompression is skipped without one"
    )
    api_url: str = Field(
        default="https://api.tinify.com/shrink",
        description="Recompression service endpoint"
    )
    max_concurrency: int = Field(
        default=4,
        ge=1,
        description="Maximum simultaneous recompression requests"
    )
    timeout: float = Field(
        default=60.0,
        gt=0,
        description="Per-request timeout in seconds"
    )


class CacheConfig(BaseModel):
    """
    Cache-busting settings.

    Every output file with one of ``extensions`` is renamed to embed a
    content fingerprint; references in the ``rewrite`` documents follow.
    """
    extensions: list[str] = Field(
        default_factory=lambda: ["css", "js", "svg", "png", "jpg", "jpeg", "woff2", "woff"],
        description="File extensions to fingerprint"
    )
    manifest: str = Field(
        default="rev.json",
        description="Manifest file name, written at the output root"
    )
    hash_length: int = Field(
        default=10,
        ge=4,
        le=32,
        description="Number of hex digits kept from the content hash"
    )
    rewrite: list[str] = Field(
        default_factory=lambda: ["index.html"],
        description="Documents (relative to the output root) whose references are rewritten"
    )

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: list[str]) -> list[str]:
        """Strip leading dots and lowercase extensions."""
        return [ext.lstrip(".").lower() for ext in v]


class DevConfig(BaseModel):
    """Preview server and watch loop settings."""
    host: str = Field(default="127.0.0.1", description="Preview server host")
    port: int = Field(default=3000, ge=1, le=65535, description="Preview server port")
    open_browser: bool = Field(default=True, description="Open a browser on start")
    poll_interval: float = Field(
        default=0.5,
        gt=0,
        description="Seconds between file-system polls"
    )


class BuildConfig(BaseModel):
    """Production pipeline behaviour."""
    strict: bool = Field(
        default=False,
        description="Stop before cache busting when any task failed"
    )


class DeployConfig(BaseModel):
    """
    Remote FTP endpoint.

    The password is normally supplied through KILN_FTP_PASSWORD rather than
    written to a config file.
    """
    host: str = Field(default="", description="FTP host")
    port: int = Field(default=21, ge=1, le=65535, description="FTP port")
    user: str = Field(default="", description="FTP user")
    password: Optional[str] = Field(default=None, description="FTP password")
    remote_root: str = Field(default="", description="Remote directory to upload into")
    parallel: int = Field(
        default=10,
        ge=1,
        description="Maximum simultaneous transfers"
    )
    timeout: float = Field(default=30.0, gt=0, description="Socket timeout in seconds")


class KilnConfig(BaseModel):
    """
    Top-level kiln configuration.

    Loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = KilnConfig(
        ...     dev=DevConfig(port=8080),
        ...     deploy=DeployConfig(host="ftp.example.com", parallel=4),
        ... )
        >>> config.deploy.parallel
        4
    """
    paths: PathsConfig = Field(
        default_factory=PathsConfig,
        description="Source and output layout"
    )
    styles: StylesConfig = Field(
        default_factory=StylesConfig,
        description="Stylesheet compilation"
    )
    scripts: ScriptsConfig = Field(
        default_factory=ScriptsConfig,
        description="Script bundling"
    )
    images: ImagesConfig = Field(
        default_factory=ImagesConfig,
        description="Image recompression"
    )
    cache: CacheConfig = Field(
        default_factory=CacheConfig,
        description="Cache busting"
    )
    dev: DevConfig = Field(
        default_factory=DevConfig,
        description="Watch loop and preview server"
    )
    build: BuildConfig = Field(
        default_factory=BuildConfig,
        description="Production pipeline"
    )
    deploy: DeployConfig = Field(
        default_factory=DeployConfig,
        description="Remote deployment"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,
    )
