"""
Tests for cache busting: fingerprints, the manifest and reference rewriting.
"""

import json
import re

import pytest

from kiln.core.config.models import CacheConfig
from kiln.core.exceptions import ManifestError
from kiln.core.revision import (
    ManifestBuilder,
    fingerprint,
    load_manifest,
    rewrite_documents,
    rewrite_references,
)
from kiln.core.revision.manifest import fingerprinted_name

INDEX = """<link rel="stylesheet" href="css/main.min.css">
<script src="js/main.min.js"></script>
<img src="img/logo.png"><img src="img/sprite.svg#icons--arrow">
<a href="resources/robots.txt">robots</a>
"""


@pytest.fixture
def dist(tmp_path):
    root = tmp_path / "dist"
    files = {
        "index.html": INDEX,
        "css/main.min.css": "body{color:red}",
        "js/main.min.js": "console.log(1)",
        "img/logo.png": "png-bytes",
        "img/sprite.svg": "<svg/>",
        "fonts/Body.woff2": "woff2",
        "resources/robots.txt": "User-agent: *",
    }
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    return root


class TestFingerprint:
    def test_deterministic_and_truncated(self):
        assert fingerprint(b"abc") == fingerprint(b"abc")
        assert fingerprint(b"abc") == "900150983c"
        assert len(fingerprint(b"abc", 6)) == 6
        assert fingerprint(b"abc") != fingerprint(b"abd")

    @pytest.mark.parametrize(
        "rel,expected",
        [
            ("css/main.min.css", "css/main.min.0123456789.css"),
            ("logo.png", "logo.0123456789.png"),
            ("fonts/LICENSE", "fonts/LICENSE.0123456789"),
        ],
    )
    def test_fingerprinted_name(self, rel, expected):
        assert fingerprinted_name(rel, "0123456789") == expected


class TestManifestBuilder:
    def test_renames_and_removes_originals(self, dist):
        result = ManifestBuilder(dist, CacheConfig()).build()

        assert set(result.manifest) == {
            "css/main.min.css",
            "js/main.min.js",
            "img/logo.png",
            "img/sprite.svg",
            "fonts/Body.woff2",
        }
        for original, renamed in result.manifest.items():
            assert not (dist / original).exists()
            assert (dist / renamed).is_file()
        # not a fingerprinted extension
        assert (dist / "resources" / "robots.txt").exists()
        assert (dist / "index.html").exists()

    def test_manifest_file_is_sorted_json(self, dist):
        ManifestBuilder(dist, CacheConfig()).build()

        text = (dist / "rev.json").read_text()
        data = json.loads(text)
        assert list(data) == sorted(data)
        assert text == json.dumps(data, indent=2, sort_keys=True) + "\n"

    def test_fingerprints_depend_only_on_content(self, dist, tmp_path):
        first = ManifestBuilder(dist, CacheConfig()).build().manifest

        other = tmp_path / "other"
        for rel in first:
            path = other / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes((dist / first[rel]).read_bytes())
        second = ManifestBuilder(other, CacheConfig()).build().manifest

        assert first == second

    def test_second_run_keeps_entries_and_skips_fingerprinted(self, dist):
        first = ManifestBuilder(dist, CacheConfig()).build()
        (dist / "css" / "extra.css").write_text("a{}")

        second = ManifestBuilder(dist, CacheConfig()).build()

        assert list(second.renamed) == ["css/extra.css"]
        assert {k: v for k, v in second.manifest.items() if k != "css/extra.css"} == first.manifest
        assert not any(re.search(r"\.\w{10}\.\w{10}\.", v) for v in second.manifest.values())

    def test_staging_directories_are_gone(self, dist):
        ManifestBuilder(dist, CacheConfig()).build()
        assert sorted(p.name for p in dist.parent.iterdir()) == ["dist"]

    def test_leftover_staging_is_replaced(self, dist):
        staging = dist.with_name("dist.rev-staging")
        staging.mkdir()
        (staging / "junk.css").write_text("x")

        result = ManifestBuilder(dist, CacheConfig()).build()

        assert "junk.css" not in result.manifest
        assert not staging.exists()

    def test_extension_filter(self, dist):
        result = ManifestBuilder(dist, CacheConfig(extensions=["css"])).build()
        assert list(result.manifest) == ["css/main.min.css"]
        assert (dist / "js" / "main.min.js").exists()


class TestRewrite:
    def test_load_missing_manifest_is_fatal(self, tmp_path):
        with pytest.raises(ManifestError, match="file not found"):
            load_manifest(tmp_path / "rev.json")

    def test_load_invalid_manifest_is_fatal(self, tmp_path):
        path = tmp_path / "rev.json"
        path.write_text("{not json")
        with pytest.raises(ManifestError, match="invalid JSON"):
            load_manifest(path)

    def test_load_wrong_shape_is_fatal(self, tmp_path):
        path = tmp_path / "rev.json"
        path.write_text('["css/main.css"]')
        with pytest.raises(ManifestError):
            load_manifest(path)

    def test_longest_key_wins(self):
        manifest = {"a.css": "a.1111111111.css", "theme/a.css": "theme/a.2222222222.css"}
        text = '<link href="theme/a.css"><link href="a.css">'
        assert rewrite_references(text, manifest) == (
            '<link href="theme/a.2222222222.css"><link href="a.1111111111.css">'
        )

    def test_keys_inside_longer_names_are_untouched(self):
        manifest = {"main.css": "main.1111111111.css"}
        text = '<link href="main.css.map"><link href="xmain.css"><link href="/main.css?v=2">'
        assert rewrite_references(text, manifest) == (
            '<link href="main.css.map"><link href="xmain.css">'
            '<link href="/main.1111111111.css?v=2">'
        )

    def test_rewritten_document_references_existing_files(self, dist):
        result = ManifestBuilder(dist, CacheConfig()).build()
        manifest = load_manifest(result.manifest_path)

        changed = rewrite_documents(dist, manifest, ["index.html", "missing.html"])

        assert changed == [dist / "index.html"]
        html = (dist / "index.html").read_text()
        for ref in re.findall(r'(?:href|src)="([^"#]+)', html):
            assert (dist / ref).exists() and ref not in manifest
        assert "img/sprite." in html and "#icons--arrow" in html
