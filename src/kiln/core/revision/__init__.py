"""
Cache busting: content fingerprints, the manifest, and reference rewriting.
"""

from kiln.core.revision.manifest import ManifestBuilder, RevisionResult, fingerprint
from kiln.core.revision.rewrite import load_manifest, rewrite_documents, rewrite_references

__all__ = [
    "ManifestBuilder",
    "RevisionResult",
    "fingerprint",
    "load_manifest",
    "rewrite_documents",
    "rewrite_references",
]
