"""
Rewrite asset references in entry documents using the manifest.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path

from kiln.core.exceptions import ManifestError

logger = logging.getLogger(__name__)

# A key must not be glued to a longer path segment on either side
_BEFORE = r"(?<![\w.-])"
_AFTER = r"(?![\w.-])"


def load_manifest(path: Path) -> dict[str, str]:
    """
    Load the manifest written by the manifest builder.

    Raises:
        ManifestError: If the file is missing, unreadable or malformed
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ManifestError(path, "file not found") from e
    except OSError as e:
        raise ManifestError(path, f"cannot read: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(path, f"invalid JSON: {e}") from e

    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise ManifestError(path, "expected an object of path -> path")
    return data


def rewrite_references(text: str, manifest: dict[str, str]) -> str:
    """
    Replace every manifest key in ``text`` with its fingerprinted value.

    Longer keys win over keys they contain. Text that matches no key is
    left as is.
    """
    if not manifest:
        return text
    keys = sorted(manifest, key=len, reverse=True)
    pattern = re.compile(_BEFORE + "(" + "|".join(re.escape(k) for k in keys) + ")" + _AFTER)
    return pattern.sub(lambda m: manifest[m.group(1)], text)


def rewrite_documents(
    dist: Path, manifest: dict[str, str], documents: Iterable[str]
) -> list[Path]:
    """
    Rewrite references in ``documents`` (relative to ``dist``).

    Returns:
        The documents that changed
    """
    changed = []
    for name in documents:
        path = dist / name
        if not path.is_file():
            logger.warning(f"Rewrite target not found: {path}")
            continue
        original = path.read_text(encoding="utf-8")
        updated = rewrite_references(original, manifest)
        if updated != original:
            path.write_text(updated, encoding="utf-8")
            changed.append(path)
            logger.debug(f"Rewrote references in {path}")
    return changed
