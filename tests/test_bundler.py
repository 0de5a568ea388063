"""
Tests for the built-in ES module bundler and line source maps.
"""

import pytest

from kiln.core.bundler import BuiltinBundler, EsbuildBundler
from kiln.core.exceptions import BundleError
from kiln.core.sourcemap import LineMapBuilder, encode_vlq


@pytest.fixture
def js_root(tmp_path):
    root = tmp_path / "js"
    root.mkdir()
    return root


def _bundle(root, files, entry="main.js", source_map=False):
    for name, text in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    out = root.parent / "dist" / "main.min.js"
    return BuiltinBundler(root).bundle(root / entry, out, source_map=source_map)


class TestModuleGraph:
    def test_dependencies_come_first(self, js_root):
        bundle = _bundle(
            js_root,
            {
                "main.js": "import a from './a.js';\nimport './b';\n",
                "a.js": "import { c } from './lib/c.js';\nexport default c;\n",
                "b.js": "window.b = 1;\n",
                "lib/c.js": "export const c = 3;\n",
            },
        )
        assert [p.name for p in bundle.modules] == ["c.js", "a.js", "b.js", "main.js"]

    def test_shared_module_included_once(self, js_root):
        bundle = _bundle(
            js_root,
            {
                "main.js": "import './a.js';\nimport './b.js';\n",
                "a.js": "import './shared.js';\n",
                "b.js": "import './shared.js';\n",
                "shared.js": "export const s = 1;\n",
            },
        )
        assert [p.name for p in bundle.modules].count("shared.js") == 1
        assert bundle.code.count("__modules['shared.js'] = ") == 1

    def test_index_resolution(self, js_root):
        bundle = _bundle(
            js_root,
            {"main.js": "import w from './widgets';\n", "widgets/index.js": "export default 1;\n"},
        )
        assert "__modules['widgets/index.js'].default" in bundle.code

    def test_circular_import_fails(self, js_root):
        with pytest.raises(BundleError, match="circular import"):
            _bundle(
                js_root,
                {"main.js": "import './a.js';\n", "a.js": "import './main.js';\n"},
            )

    def test_missing_module_fails(self, js_root):
        with pytest.raises(BundleError, match="module not found"):
            _bundle(js_root, {"main.js": "import './nope.js';\n"})

    def test_package_import_fails(self, js_root):
        with pytest.raises(BundleError, match="package import 'lodash'"):
            _bundle(js_root, {"main.js": "import _ from 'lodash';\n"})

    def test_missing_entry_fails(self, js_root):
        with pytest.raises(BundleError, match="entry script not found"):
            BuiltinBundler(js_root).bundle(js_root / "main.js", js_root / "out.js", source_map=False)


class TestRewriting:
    def test_import_forms(self, js_root):
        bundle = _bundle(
            js_root,
            {
                "main.js": (
                    "import def, * as ns from './m.js';\n"
                    "import { a, b as bee } from './m.js';\n"
                ),
                "m.js": "export const a = 1;\nexport const b = 2;\nexport default 3;\n",
            },
        )
        assert "var def = __modules['m.js'].default, ns = __modules['m.js'];" in bundle.code
        assert "var a = __modules['m.js'].a, bee = __modules['m.js'].b;" in bundle.code

    def test_export_forms(self, js_root):
        bundle = _bundle(
            js_root,
            {
                "main.js": "import './m.js';\n",
                "m.js": (
                    "function helper() {}\n"
                    "export { helper as run };\n"
                    "export default class extends Base {}\n"
                    "export async function load() {}\n"
                ),
            },
        )
        assert "Object.defineProperty(__exports, 'run'" in bundle.code
        assert "return helper;" in bundle.code
        assert "__exports.default = class extends Base {}" in bundle.code
        assert "async function load() {}" in bundle.code
        assert "Object.defineProperty(__exports, 'load'" in bundle.code

    def test_every_declarator_is_exported(self, js_root):
        bundle = _bundle(
            js_root,
            {
                "main.js": "import { a, b, c } from './m.js';\nconsole.log(a + b + c);\n",
                "m.js": (
                    "export const a = 1, b = f(2, [3, 4]), c = { d: 'x, y' };\n"
                    "export let e = 5,\n  g = 6;\n"
                    "function f() {}\n"
                ),
            },
        )
        for name in ("a", "b", "c", "e", "g"):
            assert f"Object.defineProperty(__exports, '{name}'" in bundle.code
        assert "Object.defineProperty(__exports, 'd'" not in bundle.code
        assert "Object.defineProperty(__exports, 'y'" not in bundle.code
        assert "\nexport " not in bundle.code

    def test_declaration_ends_at_statement_boundary(self, js_root):
        bundle = _bundle(
            js_root,
            {
                "main.js": "import './m.js';\n",
                "m.js": "export var x = 1\nvar hidden = 2, other = 3;\n",
            },
        )
        assert "Object.defineProperty(__exports, 'x'" in bundle.code
        assert "'hidden'" not in bundle.code
        assert "'other'" not in bundle.code

    def test_destructuring_export_fails(self, js_root):
        with pytest.raises(BundleError, match="unsupported export declaration"):
            _bundle(
                js_root,
                {"main.js": "import './m.js';\n", "m.js": "export const { x } = o;\n"},
            )

    def test_unknown_export_form_fails(self, js_root):
        with pytest.raises(BundleError, match="unsupported export statement"):
            _bundle(
                js_root,
                {
                    "main.js": "import './m.js';\n",
                    "m.js": "export * as ns from './n.js';\n",
                    "n.js": "export const n = 1;\n",
                },
            )

    def test_line_count_is_preserved(self, js_root):
        source = "import {\n  a,\n  b\n} from './m.js';\nconsole.log(a, b);\n"
        bundle = _bundle(
            js_root,
            {"main.js": source, "m.js": "export const a = 1, b = 2;\n"},
        )
        body_start = bundle.code.index("var a = ")
        body = bundle.code[body_start:].split("\nreturn __exports;")[0]
        assert body.count("\n") == source.count("\n")


class TestSourceMap:
    def test_vlq(self):
        assert [encode_vlq(v) for v in (0, 1, -1, 15, 16, -16)] == ["A", "C", "D", "e", "gB", "hB"]

    def test_mappings_are_relative(self):
        builder = LineMapBuilder(file="out.js")
        first = builder.add_source("a.js")
        second = builder.add_source("b.js")
        builder.map_line(1, first, 0)
        builder.map_line(2, first, 1)
        builder.map_line(4, second, 0)

        assert builder.mappings() == ";AAAA;AACA;;ACDA"

    def test_bundle_map_points_at_sources(self, js_root):
        bundle = _bundle(
            js_root,
            {"main.js": "import './a.js';\nlate();\n", "a.js": "first();\n"},
            source_map=True,
        )
        data = bundle.source_map.to_dict()
        assert data["version"] == 3
        assert data["sources"] == ["../js/a.js", "../js/main.js"]
        assert data["sourcesContent"][0] == "first();\n"

        lines = bundle.code.split("\n")
        segments = data["mappings"].split(";")
        assert lines[segments.index("AAAA")] == "first();"


class TestEsbuild:
    def test_missing_executable(self, js_root):
        entry = js_root / "main.js"
        entry.write_text("console.log(1);\n")
        bundler = EsbuildBundler(executable=str(js_root / "no-esbuild"))
        with pytest.raises(BundleError, match="esbuild not found"):
            bundler.bundle(entry, js_root / "out.js", source_map=False)
