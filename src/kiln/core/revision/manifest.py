"""
Cache-busting manifest builder.

Every output file with a fingerprinted extension is renamed to embed a
content hash (``css/main.min.css`` -> ``css/main.min.0123456789.css``) and
the original is removed. The mapping is written to the manifest at the
output root.

The work happens on a staging copy of the output tree which then replaces
the real tree by directory renames, so an interrupted run leaves the
previous tree untouched.
"""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from kiln.core.config.models import CacheConfig

logger = logging.getLogger(__name__)


def fingerprint(data: bytes, length: int = 10) -> str:
    """First ``length`` hex digits of the MD5 of ``data``."""
    return hashlib.md5(data).hexdigest()[:length]


def fingerprinted_name(rel_path: str, digest: str) -> str:
    """Insert ``digest`` before the last extension of a POSIX relative path."""
    head, _, name = rel_path.rpartition("/")
    stem, dot, ext = name.rpartition(".")
    renamed = f"{stem}.{digest}.{ext}" if dot else f"{name}.{digest}"
    return f"{head}/{renamed}" if head else renamed


def read_previous_manifest(path: Path) -> dict[str, str]:
    """
    Read an existing manifest for merging.

    Unlike the rewrite step this is lenient: a missing or unreadable
    manifest just means there is nothing to carry over.
    """
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable manifest {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring manifest {path}: not a JSON object")
        return {}
    return {str(k): str(v) for k, v in data.items()}


@dataclass
class RevisionResult:
    """
    Outcome of a manifest build.

    Attributes:
        manifest_path: Where the manifest was written
        manifest: Full manifest (carried-over and new entries)
        renamed: Entries created by this run
    """

    manifest_path: Path
    manifest: dict[str, str] = field(default_factory=dict)
    renamed: dict[str, str] = field(default_factory=dict)


class ManifestBuilder:
    """
    Fingerprint an output tree and write its manifest.

    Example:
        >>> builder = ManifestBuilder(Path("dist"), CacheConfig())
        >>> result = builder.build()
        >>> result.manifest["css/main.min.css"]
        'css/main.min.1a2b3c4d5e.css'
    """

    def __init__(self, dist: Path, config: CacheConfig) -> None:
        self.dist = dist
        self.config = config

    @property
    def staging_dir(self) -> Path:
        return self.dist.with_name(f"{self.dist.name}.rev-staging")

    @property
    def backup_dir(self) -> Path:
        return self.dist.with_name(f"{self.dist.name}.rev-old")

    def select(self, root: Path, previous: dict[str, str]) -> list[Path]:
        """Files under ``root`` to fingerprint, sorted."""
        already_done = set(previous.values())
        extensions = set(self.config.extensions)
        selected = []
        for path in sorted(root.rglob("*")):
            if not path.is_file():
                continue
            rel = path.relative_to(root).as_posix()
            if rel == self.config.manifest or rel in already_done:
                continue
            if path.suffix.lstrip(".").lower() in extensions:
                selected.append(path)
        return selected

    def build(self) -> RevisionResult:
        """
        Fingerprint the output tree in place (via staging).

        Returns:
            RevisionResult with the written manifest
        """
        if not self.dist.is_dir():
            raise FileNotFoundError(f"Output directory not found: {self.dist}")

        staging = self.staging_dir
        if staging.exists():
            shutil.rmtree(staging)
        shutil.copytree(self.dist, staging)

        previous = read_previous_manifest(staging / self.config.manifest)
        renamed: dict[str, str] = {}
        for path in self.select(staging, previous):
            rel = path.relative_to(staging).as_posix()
            target = fingerprinted_name(rel, fingerprint(path.read_bytes(), self.config.hash_length))
            path.rename(staging / target)
            renamed[rel] = target

        # Carried-over entries must still point at an existing file
        manifest = {
            key: value for key, value in previous.items() if (staging / value).is_file()
        }
        manifest.update(renamed)

        manifest_file = staging / self.config.manifest
        manifest_file.write_text(
            json.dumps(manifest, indent=2, sort_keys=True) + "\n", encoding="utf-8"
        )

        self._swap(staging)
        logger.info(f"Fingerprinted {len(renamed)} file(s), manifest has {len(manifest)} entries")
        return RevisionResult(
            manifest_path=self.dist / self.config.manifest,
            manifest=dict(sorted(manifest.items())),
            renamed=renamed,
        )

    def _swap(self, staging: Path) -> None:
        backup = self.backup_dir
        if backup.exists():
            shutil.rmtree(backup)
        self.dist.rename(backup)
        staging.rename(self.dist)
        shutil.rmtree(backup)
