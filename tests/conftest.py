"""
Pytest configuration and shared fixtures.

Provides a temporary project with the full source layout, build contexts
in both modes, and helpers for fonts and fake remotes.
"""

import json
from pathlib import Path

import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen

from kiln.core.config import clear_cache
from kiln.core.config.models import KilnConfig
from kiln.core.pipeline.context import BuildContext
from kiln.core.pipeline.models import Mode
from kiln.core.pipeline.notify import Notifier

# ==============================================================================
# Environment isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep the user's config, .env files and KILN_* variables out of tests."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in (
        "KILN_DIST",
        "KILN_DEV_PORT",
        "KILN_TINYPNG_KEY",
        "KILN_FTP_HOST",
        "KILN_FTP_USER",
        "KILN_FTP_PASSWORD",
        "KILN_DEPLOY_PARALLEL",
        "KILN_BUILD_STRICT",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Project Fixtures
# ==============================================================================

INDEX_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <title>{% block title %}Site{% endblock %}</title>
    <link rel="stylesheet" href="css/main.min.css">
  </head>
  <body>
    <img src="img/logo.png" alt="logo">
    <pre>
  keep   this
    </pre>
    {% if production %}<!-- production -->{% endif %}
    <script src="js/main.min.js"></script>
  </body>
</html>
"""

PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"
    b"\x08\x06\x00\x00\x00\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f"
    b"\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)

ICON_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24">'
    '<path d="M0 0h24v24H0z"/></svg>'
)


def write(path: Path, content: str | bytes) -> Path:
    """Write a fixture file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content)
    return path


@pytest.fixture
def project_dir(tmp_path):
    """
    Provide a temporary project with every source kind.

    Creates:
    - .kiln.json
    - src/templates/index.html
    - src/scss/main.scss (+ _vars.scss partial)
    - src/js/main.js importing src/js/util.js
    - src/img/logo.png and src/img/icons/arrow.svg
    - src/resources/robots.txt
    """
    project = tmp_path / "site"
    project.mkdir()
    (project / ".kiln.json").write_text(json.dumps({"dev": {"open_browser": False}}))

    src = project / "src"
    write(src / "templates" / "index.html", INDEX_TEMPLATE)
    write(src / "scss" / "_vars.scss", "$brand: #336699;\n")
    write(
        src / "scss" / "main.scss",
        '@import "vars";\n\nbody {\n  color: $brand;\n  .title { margin: 0; }\n}\n',
    )
    write(src / "js" / "util.js", "export function greet(name) {\n  return 'hi ' + name;\n}\n")
    write(
        src / "js" / "main.js",
        "import { greet } from './util.js';\n\nconsole.log(greet('kiln'));\n",
    )
    write(src / "img" / "logo.png", PNG_BYTES)
    write(src / "img" / "icons" / "arrow.svg", ICON_SVG)
    write(src / "resources" / "robots.txt", "User-agent: *\n")
    return project


@pytest.fixture
def dev_ctx(project_dir):
    """Development build context for project_dir."""
    return BuildContext(
        project_root=project_dir,
        config=KilnConfig(),
        mode=Mode.DEVELOPMENT,
        notifier=Notifier(quiet=True),
    )


@pytest.fixture
def prod_ctx(project_dir):
    """Production build context for project_dir."""
    return BuildContext(
        project_root=project_dir,
        config=KilnConfig(),
        mode=Mode.PRODUCTION,
        notifier=Notifier(quiet=True),
    )


# ==============================================================================
# Font helpers
# ==============================================================================


def _box_glyph():
    pen = TTGlyphPen(None)
    pen.moveTo((0, 0))
    pen.lineTo((0, 500))
    pen.lineTo((500, 500))
    pen.lineTo((500, 0))
    pen.closePath()
    return pen.glyph()


def build_ttf(path: Path) -> Path:
    """Write a minimal one-glyph TrueType font to ``path``."""
    builder = FontBuilder(1024, isTTF=True)
    builder.setupGlyphOrder([".notdef", "A"])
    builder.setupCharacterMap({ord("A"): "A"})
    builder.setupGlyf({".notdef": _box_glyph(), "A": _box_glyph()})
    builder.setupHorizontalMetrics({".notdef": (500, 0), "A": (500, 0)})
    builder.setupHorizontalHeader(ascent=800, descent=-200)
    builder.setupNameTable({"familyName": "Kiln Test", "styleName": "Regular"})
    builder.setupOS2()
    builder.setupPost()
    path.parent.mkdir(parents=True, exist_ok=True)
    builder.save(str(path))
    return path


@pytest.fixture
def make_ttf():
    """Return the build_ttf helper."""
    return build_ttf
