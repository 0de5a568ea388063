"""
Script bundlers.

Two implementations share the Bundler protocol:

- BuiltinBundler: follows relative ES module imports from the entry script
  and emits one IIFE in which every module becomes a function scope whose
  exports live on a registry object. Every source line stays on its own
  generated line, which keeps a line-level source map exact.
- EsbuildBundler: delegates to an ``esbuild`` executable, which also
  transpiles down to a configured syntax level.

Both raise BundleError; the scripts task turns that into a failed result.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from kiln.core.exceptions import BundleError
from kiln.core.sourcemap import LineMapBuilder

logger = logging.getLogger(__name__)

_IDENT = r"[A-Za-z_$][\w$]*"

IMPORT_RE = re.compile(
    r"^[ \t]*import\s+(?:(?P<clause>[\w$*{}\s,]+?)\s+from\s+)?"
    r"(?P<q>['\"])(?P<spec>[^'\"]+)(?P=q)[ \t]*;?",
    re.MULTILINE,
)
EXPORT_FROM_RE = re.compile(
    r"^[ \t]*export\s+(?:(?P<star>\*)|\{(?P<names>[^}]*)\})\s+from\s+"
    r"(?P<q>['\"])(?P<spec>[^'\"]+)(?P=q)[ \t]*;?",
    re.MULTILINE,
)
EXPORT_LIST_RE = re.compile(r"^[ \t]*export\s*\{(?P<names>[^}]*)\}[ \t]*;?", re.MULTILINE)
EXPORT_DEFAULT_DECL_RE = re.compile(
    rf"^(?P<indent>[ \t]*)export\s+default\s+"
    rf"(?P<kind>(?:async\s+)?function\s*\*?\s*|class\s+)(?P<name>{_IDENT})?",
    re.MULTILINE,
)
EXPORT_DEFAULT_RE = re.compile(r"^(?P<indent>[ \t]*)export\s+default\s+", re.MULTILINE)
EXPORT_DECL_RE = re.compile(
    rf"^(?P<indent>[ \t]*)export\s+"
    rf"(?P<kind>(?:async\s+)?function\s*\*?\s*|class\s+)(?P<name>{_IDENT})",
    re.MULTILINE,
)
EXPORT_VAR_RE = re.compile(
    r"^(?P<indent>[ \t]*)export\s+(?P<kind>(?:const|let|var)\s+)", re.MULTILINE
)
IDENT_RE = re.compile(_IDENT)
LEFTOVER_EXPORT_RE = re.compile(r"^[ \t]*export\b.*$", re.MULTILINE)

RESOLVE_SUFFIXES = ("", ".js", ".mjs", "/index.js")


@dataclass
class Bundle:
    """
    Output of a bundler run.

    Attributes:
        code: Bundled script
        modules: Source modules included, dependencies first
        source_map: Line map, when the bundler produced one
    """

    code: str
    modules: list[Path] = field(default_factory=list)
    source_map: LineMapBuilder | None = None


class Bundler(Protocol):
    def bundle(self, entry: Path, out: Path, *, source_map: bool) -> Bundle:
        """
        Bundle ``entry`` and everything it imports.

        Args:
            entry: Entry module
            out: Final output path (used for relative source map paths)
            source_map: Whether a source map is wanted

        Raises:
            BundleError: If the module graph cannot be bundled
        """
        ...


def _blank_lines(text: str) -> str:
    """Newlines matching those in ``text``, so line numbering is kept."""
    return "\n" * text.count("\n")


def _parse_names(names: str) -> list[tuple[str, str]]:
    """Parse ``a, b as c`` into [(a, a), (b, c)] pairs (local, exported)."""
    pairs = []
    for part in names.split(","):
        part = part.strip()
        if not part:
            continue
        if " as " in part:
            local, alias = (p.strip() for p in part.split(" as ", 1))
        else:
            local = alias = part
        pairs.append((local, alias))
    return pairs


def _skip_string(text: str, i: int) -> int:
    """Index just past the string or template literal opening at ``text[i]``."""
    quote = text[i]
    j = i + 1
    while j < len(text):
        c = text[j]
        if c == "\\":
            j += 2
            continue
        if c == quote:
            return j + 1
        if c == "\n" and quote != "`":
            return j
        j += 1
    return len(text)


def _skip_comment(text: str, i: int) -> int:
    """Index just past the comment at ``text[i]``; a line comment keeps its newline."""
    if text.startswith("//", i):
        end = text.find("\n", i)
        return len(text) if end == -1 else end
    end = text.find("*/", i + 2)
    return len(text) if end == -1 else end + 2


_CONTINUES_AFTER = set(",=+-*/%&|^!?:<>([{.")
_CONTINUES_BEFORE = set(",=+-*/%&|^?:<>.([")


def _statement_ends(text: str, i: int) -> bool:
    """Whether the newline at ``text[i]`` ends a top-level declarator list."""
    before = text[:i].rstrip()
    after = text[i:].lstrip()
    if not before or not after:
        return True
    return before[-1] not in _CONTINUES_AFTER and after[0] not in _CONTINUES_BEFORE


def declared_names(text: str, start: int) -> list[str]:
    """
    Names bound by the declarator list beginning at ``text[start]``.

    ``a = 1, b = f(x, y)`` gives ``["a", "b"]``. Initializers are skipped
    with bracket and string tracking; the list ends at a top-level ``;``, a
    newline that ends the statement, or the end of the enclosing block.

    Raises:
        ValueError: On a destructuring pattern or anything that is not an
            identifier in binding position
    """
    names: list[str] = []
    i = start
    n = len(text)
    while True:
        while i < n and text[i].isspace():
            i += 1
        m = IDENT_RE.match(text, i)
        if m is None:
            line_end = text.find("\n", i)
            raise ValueError(text[i:] if line_end == -1 else text[i:line_end])
        names.append(m.group(0))
        i = m.end()

        depth = 0
        while i < n:
            c = text[i]
            if c in "'\"`":
                i = _skip_string(text, i)
                continue
            if text.startswith(("//", "/*"), i):
                i = _skip_comment(text, i)
                continue
            if c in "([{":
                depth += 1
            elif c in ")]}":
                if depth == 0:
                    return names
                depth -= 1
            elif depth == 0:
                if c == ";":
                    return names
                if c == ",":
                    i += 1
                    break
                if c == "\n" and _statement_ends(text, i):
                    return names
            i += 1
        else:
            return names


@dataclass
class _Module:
    path: Path
    module_id: str
    source: str
    body: str = ""
    exports: dict[str, str] = field(default_factory=dict)
    dependencies: list[Path] = field(default_factory=list)


class BuiltinBundler:
    """
    Minimal ES module bundler for relative imports.

    Supports default, named and namespace imports, side-effect imports,
    export declarations, export lists, default exports and re-exports.
    Bare package specifiers and circular imports raise BundleError.

    Example:
        >>> bundle = BuiltinBundler(root=Path("src/js")).bundle(
        ...     Path("src/js/main.js"), Path("dist/js/main.min.js"), source_map=True
        ... )
        >>> [p.name for p in bundle.modules]
        ['util.js', 'main.js']
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def bundle(self, entry: Path, out: Path, *, source_map: bool) -> Bundle:
        if not entry.is_file():
            raise BundleError(entry, "entry script not found")

        modules: dict[Path, _Module] = {}
        order: list[_Module] = []
        self._visit(entry.resolve(), modules, order, visiting=[])

        lines: list[str] = ["(function () {", '"use strict";', "var __modules = {};"]
        line_map = LineMapBuilder(file=out.name) if source_map else None

        for module in order:
            is_entry = module is order[-1]
            lines.append(f"// {module.module_id}")
            if is_entry:
                lines.append("(function () {")
            else:
                lines.append(f"__modules[{module.module_id!r}] = (function () {{")
            lines.append("var __exports = {};")
            for exported, local in module.exports.items():
                if exported == "default" and local == "":
                    continue
                lines.append(
                    f"Object.defineProperty(__exports, {exported!r}, "
                    f"{{ enumerable: true, get: function () {{ return {local}; }} }});"
                )

            source_index = None
            if line_map is not None:
                rel = os.path.relpath(module.path, out.parent).replace(os.sep, "/")
                source_index = line_map.add_source(rel, module.source)

            for i, line in enumerate(module.body.split("\n")):
                if line_map is not None and source_index is not None:
                    line_map.map_line(len(lines), source_index, i)
                lines.append(line)

            lines.append("return __exports;")
            lines.append("})();")

        lines.append("})();")
        return Bundle(
            code="\n".join(lines) + "\n",
            modules=[m.path for m in order],
            source_map=line_map,
        )

    # ------------------------------------------------------------------
    # Module graph
    # ------------------------------------------------------------------

    def _module_id(self, path: Path) -> str:
        try:
            return path.relative_to(self.root.resolve()).as_posix()
        except ValueError:
            return path.name

    def _resolve(self, spec: str, importer: Path) -> Path:
        if not spec.startswith((".", "/")):
            raise BundleError(
                importer,
                f"cannot resolve package import '{spec}' "
                "(only relative imports are bundled; use the esbuild bundler)",
            )
        base = (importer.parent / spec) if spec.startswith(".") else Path(spec)
        for suffix in RESOLVE_SUFFIXES:
            candidate = Path(str(base) + suffix)
            if candidate.is_file():
                return candidate.resolve()
        raise BundleError(importer, f"module not found: '{spec}'")

    def _visit(
        self,
        path: Path,
        modules: dict[Path, _Module],
        order: list[_Module],
        visiting: list[Path],
    ) -> None:
        if path in modules:
            return
        if path in visiting:
            cycle = " -> ".join(p.name for p in visiting[visiting.index(path):] + [path])
            raise BundleError(visiting[0], f"circular import: {cycle}")

        visiting.append(path)
        try:
            source = path.read_text(encoding="utf-8")
        except OSError as e:
            raise BundleError(path, f"cannot read module: {e}") from e

        module = _Module(path=path, module_id=self._module_id(path), source=source)
        module.body = self._transform(module)

        for dep in module.dependencies:
            self._visit(dep, modules, order, visiting)

        visiting.pop()
        modules[path] = module
        order.append(module)

    # ------------------------------------------------------------------
    # Source rewriting (every substitution keeps the line count)
    # ------------------------------------------------------------------

    def _transform(self, module: _Module) -> str:
        def ref(spec: str) -> str:
            dep = self._resolve(spec, module.path)
            if dep not in module.dependencies:
                module.dependencies.append(dep)
            return f"__modules[{self._module_id(dep)!r}]"

        def replace_import(m: re.Match[str]) -> str:
            target = ref(m.group("spec"))
            clause = (m.group("clause") or "").strip()
            pad = _blank_lines(m.group(0))
            if not clause:
                return pad

            head, _, named = clause.partition("{")
            bindings: list[str] = []
            for part in head.split(","):
                part = part.strip()
                if not part:
                    continue
                if part.startswith("*"):
                    namespace = part.split("as", 1)[1].strip()
                    bindings.append(f"{namespace} = {target}")
                else:
                    bindings.append(f"{part} = {target}.default")
            for imported, local in _parse_names(named.rsplit("}", 1)[0]):
                bindings.append(f"{local} = {target}.{imported}")
            return "var " + ", ".join(bindings) + ";" + pad

        def replace_export_from(m: re.Match[str]) -> str:
            target = ref(m.group("spec"))
            pad = _blank_lines(m.group(0))
            if m.group("star"):
                return (
                    f"Object.keys({target}).forEach(function (k) {{ if (k !== 'default') "
                    f"Object.defineProperty(__exports, k, {{ enumerable: true, "
                    f"get: function () {{ return {target}[k]; }} }}); }});" + pad
                )
            statements = [
                f"Object.defineProperty(__exports, {alias!r}, {{ enumerable: true, "
                f"get: function () {{ return {target}.{local}; }} }});"
                for local, alias in _parse_names(m.group("names"))
            ]
            return " ".join(statements) + pad

        def replace_export_list(m: re.Match[str]) -> str:
            for local, alias in _parse_names(m.group("names")):
                module.exports[alias] = local
            return _blank_lines(m.group(0))

        def replace_default_decl(m: re.Match[str]) -> str:
            name = m.group("name")
            if name and name != "extends":
                module.exports["default"] = name
                return f"{m.group('indent')}{m.group('kind')}{name}"
            # anonymous declaration; a matched "extends" keyword is kept
            module.exports["default"] = ""
            return f"{m.group('indent')}__exports.default = {m.group('kind')}{name or ''}"

        def replace_default(m: re.Match[str]) -> str:
            module.exports["default"] = ""
            return f"{m.group('indent')}__exports.default = "

        def replace_decl(m: re.Match[str]) -> str:
            module.exports[m.group("name")] = m.group("name")
            return f"{m.group('indent')}{m.group('kind')}{m.group('name')}"

        def replace_var(m: re.Match[str]) -> str:
            try:
                names = declared_names(m.string, m.end())
            except ValueError as e:
                raise BundleError(
                    module.path, f"unsupported export declaration: {m.group('kind')}{e}"
                ) from e
            for name in names:
                module.exports[name] = name
            return f"{m.group('indent')}{m.group('kind')}"

        body = module.source
        body = IMPORT_RE.sub(replace_import, body)
        body = EXPORT_FROM_RE.sub(replace_export_from, body)
        body = EXPORT_LIST_RE.sub(replace_export_list, body)
        body = EXPORT_DEFAULT_DECL_RE.sub(replace_default_decl, body)
        body = EXPORT_DEFAULT_RE.sub(replace_default, body)
        body = EXPORT_DECL_RE.sub(replace_decl, body)
        body = EXPORT_VAR_RE.sub(replace_var, body)

        if leftover := LEFTOVER_EXPORT_RE.search(body):
            raise BundleError(
                module.path, f"unsupported export statement: {leftover.group(0).strip()}"
            )
        return body


class EsbuildBundler:
    """Bundle through an esbuild executable."""

    def __init__(
        self, executable: str = "esbuild", target: str = "es2015", minify_whitespace: bool = False
    ) -> None:
        self.executable = executable
        self.target = target
        self.minify_whitespace = minify_whitespace

    def bundle(self, entry: Path, out: Path, *, source_map: bool) -> Bundle:
        command = [
            self.executable,
            str(entry),
            "--bundle",
            "--format=iife",
            f"--target={self.target}",
            "--log-level=error",
        ]
        if source_map:
            command.append("--sourcemap=inline")
        if self.minify_whitespace:
            command.append("--minify-whitespace")
        logger.debug(f"Running {' '.join(command)}")
        try:
            completed = subprocess.run(command, capture_output=True, text=True, check=True)
        except FileNotFoundError as e:
            raise BundleError(entry, f"esbuild not found: {self.executable}") from e
        except subprocess.CalledProcessError as e:
            raise BundleError(entry, (e.stderr or "").strip() or f"exit code {e.returncode}") from e
        return Bundle(code=completed.stdout, modules=[entry])
