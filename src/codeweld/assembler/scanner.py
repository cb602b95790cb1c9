"""
Module Scanner for assembly validation.

Lexically extracts import and export declarations from generated
TypeScript/JavaScript source. This is deliberately not a parser: AI output
is often syntactically imperfect, so every construct has its own pattern and
anything that does not match is simply not reported.

CommonJS is covered for the common shapes: ``const x = require('a')``,
``const { a, b: c } = require('a')``, bare ``require('a')`` statements, and
``module.exports`` / ``exports.name`` assignments.

Known blind spots: dynamic ``import()``, destructured
``export const { a } = ...`` and imports inside template strings.
"""

import bisect
import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

DEFAULT_EXPORT = "default"
NAMESPACE_IMPORT = "*"

_IDENT = r"[A-Za-z_$][\w$]*"
_QUOTED_SOURCE = r"(?P<q>['\"])(?P<source>[^'\"\n]+)(?P=q)"

# Block comments opening at the start of a line, and whole-line // comments.
# Comments starting mid-line are left alone: '/*' is common inside glob strings.
_BLOCK_COMMENT_RE = re.compile(r"^[ \t]*/\*.*?\*/", re.MULTILINE | re.DOTALL)
_LINE_COMMENT_RE = re.compile(r"^[ \t]*//[^\n]*", re.MULTILINE)

# import X from 'a' / import { A, B as C } from 'a' / import * as ns from 'a'
# import X, { A } from 'a' / import X, * as ns from 'a' / import type ... from 'a'
_IMPORT_RE = re.compile(
    r"^[ \t]*import\s+"
    r"(?:(?P<type_only>type)\s+)?"
    rf"(?:(?P<default>{_IDENT})\s*(?:,\s*)?)?"
    rf"(?:(?P<named>\{{[^}}]*\}})|\*\s*as\s+(?P<namespace>{_IDENT}))?"
    rf"\s*from\s*{_QUOTED_SOURCE}",
    re.MULTILINE,
)

# import 'a' (side effects only)
_SIDE_EFFECT_IMPORT_RE = re.compile(
    rf"^[ \t]*import\s*{_QUOTED_SOURCE}",
    re.MULTILINE,
)

# export [declare] [default] [async] [abstract] <kind> Name
_EXPORT_DECL_RE = re.compile(
    r"^[ \t]*export\s+(?:declare\s+)?(?P<default>default\s+)?"
    r"(?:async\s+)?(?:abstract\s+)?"
    r"(?P<kind>const\s+enum|const|let|var|class|interface|type|enum|namespace|function)"
    rf"(?:\s*\*\s*|\s+)(?P<name>{_IDENT})",
    re.MULTILINE,
)

_EXPORT_DEFAULT_RE = re.compile(r"^[ \t]*export\s+default\b", re.MULTILINE)

# export { A, B as C } / export type { A } / ... from 'a'
_EXPORT_BRACED_RE = re.compile(
    r"^[ \t]*export\s+(?:type\s+)?\{(?P<names>[^}]*)\}"
    rf"(?:\s*from\s*{_QUOTED_SOURCE})?",
    re.MULTILINE,
)

# export * from 'a' / export * as ns from 'a'
_EXPORT_STAR_RE = re.compile(
    rf"^[ \t]*export\s+(?:type\s+)?\*\s*(?:as\s+(?P<alias>{_IDENT})\s+)?from\s*{_QUOTED_SOURCE}",
    re.MULTILINE,
)

# const x = require('a') / const { a, b: c } = require('a')
_REQUIRE_RE = re.compile(
    r"^[ \t]*(?:const|let|var)\s+"
    rf"(?P<binding>\{{[^}}]*\}}|{_IDENT})\s*=\s*"
    rf"require\s*\(\s*{_QUOTED_SOURCE}\s*\)",
    re.MULTILINE,
)

# require('a') as a statement of its own, e.g. require('dotenv').config()
_BARE_REQUIRE_RE = re.compile(
    rf"^[ \t]*require\s*\(\s*{_QUOTED_SOURCE}\s*\)",
    re.MULTILINE,
)

# exports.a = ... / module.exports.a = ...
_CJS_NAMED_EXPORT_RE = re.compile(
    rf"^[ \t]*(?:module\.)?exports\.(?P<name>{_IDENT})\s*=(?!=)",
    re.MULTILINE,
)

# module.exports = ... / module.exports = { a, b: c }
_CJS_MODULE_EXPORT_RE = re.compile(
    r"^[ \t]*module\.exports\s*=(?!=)\s*(?:\{(?P<names>[^}]*)\})?",
    re.MULTILINE,
)

_ALIASED_RE = re.compile(rf"^(?P<name>{_IDENT})\s+as\s+(?P<alias>{_IDENT})$")
_DESTRUCTURED_RE = re.compile(
    rf"^(?P<name>{_IDENT})\s*(?::\s*(?P<alias>{_IDENT}))?\s*(?:=.*)?$", re.DOTALL
)
_OBJECT_KEY_RE = re.compile(rf"^(?:async\s+)?(?P<name>{_IDENT})\b")
_IDENT_RE = re.compile(rf"^{_IDENT}$")
_TYPE_PREFIX_RE = re.compile(r"^type\s+")


@dataclass(frozen=True)
class ImportBinding:
    """One name bound by an import statement.

    ``imported`` is the name the target module must export (``default`` for
    default imports, ``*`` for namespace imports); ``local`` is the name the
    importing file uses.
    """

    imported: str
    local: str
    type_only: bool = False


@dataclass
class ImportRecord:
    """A single import statement."""

    source: str
    line: int
    bindings: list[ImportBinding] = field(default_factory=list)
    type_only: bool = False

    @property
    def names(self) -> list[str]:
        """Local binding names, with ``default`` standing in for a default import."""
        return [
            DEFAULT_EXPORT if b.imported == DEFAULT_EXPORT else b.local
            for b in self.bindings
        ]

    @property
    def requested_exports(self) -> list[str]:
        """Names the target must export for this import to hold."""
        return [b.imported for b in self.bindings if b.imported != NAMESPACE_IMPORT]


@dataclass
class ReExportRecord:
    """An ``export ... from`` statement."""

    source: str
    line: int
    names: list[str] = field(default_factory=list)
    star: bool = False


@dataclass
class ExportRecord:
    """Names a module exports, plus unnamed ``export * from`` sources."""

    names: set[str] = field(default_factory=set)
    star_sources: list[str] = field(default_factory=list)
    commonjs: bool = False

    @property
    def has_default(self) -> bool:
        return DEFAULT_EXPORT in self.names


@dataclass
class ModuleInfo:
    """Everything the scanner found in one file."""

    path: str
    imports: list[ImportRecord] = field(default_factory=list)
    exports: ExportRecord = field(default_factory=ExportRecord)
    reexports: list[ReExportRecord] = field(default_factory=list)


class _LineIndex:
    """Maps character offsets to 1-based line numbers."""

    def __init__(self, content: str):
        self._newlines = [i for i, ch in enumerate(content) if ch == "\n"]

    def line_of(self, offset: int) -> int:
        return bisect.bisect_left(self._newlines, offset) + 1


def strip_comments(content: str) -> str:
    """Blank out comments while keeping every newline, so line numbers hold."""

    def _keep_newlines(match: re.Match) -> str:
        return "\n" * match.group(0).count("\n")

    content = _BLOCK_COMMENT_RE.sub(_keep_newlines, content)
    return _LINE_COMMENT_RE.sub("", content)


def _parse_named_imports(clause: str, type_only: bool) -> list[ImportBinding]:
    """Parse the inside of ``{ ... }`` in an import statement."""
    bindings: list[ImportBinding] = []
    for part in clause.split(","):
        part = part.strip()
        if not part:
            continue

        part_type_only = type_only
        if _TYPE_PREFIX_RE.match(part):
            part = _TYPE_PREFIX_RE.sub("", part, count=1).strip()
            part_type_only = True

        aliased = _ALIASED_RE.match(part)
        if aliased:
            bindings.append(
                ImportBinding(aliased.group("name"), aliased.group("alias"), part_type_only)
            )
        elif _IDENT_RE.match(part):
            bindings.append(ImportBinding(part, part, part_type_only))
        else:
            logger.debug(f"Skipping unrecognised import binding: {part!r}")
    return bindings


def _parse_destructured_require(clause: str) -> list[ImportBinding]:
    """Parse ``{ a, b: c, d = 1 }`` on the left of a ``require()`` call."""
    bindings: list[ImportBinding] = []
    for part in clause.split(","):
        part = part.strip()
        if not part:
            continue
        match = _DESTRUCTURED_RE.match(part)
        if match:
            name = match.group("name")
            bindings.append(ImportBinding(name, match.group("alias") or name))
        else:
            logger.debug(f"Skipping unrecognised require binding: {part!r}")
    return bindings


def _parse_object_keys(clause: str) -> list[str]:
    """Keys of a ``module.exports = { ... }`` literal (shorthand, ``a: b`` and methods)."""
    names: list[str] = []
    for part in clause.split(","):
        match = _OBJECT_KEY_RE.match(part.strip())
        if match:
            names.append(match.group("name"))
    return names


def _parse_export_list(clause: str) -> list[str]:
    """Parse the inside of ``export { ... }``; returns the exported (post-alias) names."""
    names: list[str] = []
    for part in clause.split(","):
        part = _TYPE_PREFIX_RE.sub("", part.strip(), count=1).strip()
        if not part:
            continue
        aliased = _ALIASED_RE.match(part)
        if aliased:
            names.append(aliased.group("alias"))
        elif _IDENT_RE.match(part):
            names.append(part)
        else:
            logger.debug(f"Skipping unrecognised export binding: {part!r}")
    return names


class ModuleScanner:
    """Extracts import and export declarations from a single file's text.

    Usage:
        scanner = ModuleScanner()
        info = scanner.scan("src/app/page.tsx", content)
        for imp in info.imports:
            print(imp.line, imp.source, imp.names)
    """

    def scan(self, path: str, content: str) -> ModuleInfo:
        """Scan one file. Never raises on malformed content."""
        code = strip_comments(content)
        lines = _LineIndex(code)
        exports, reexports = self._scan_exports(code, lines)
        return ModuleInfo(
            path=path,
            imports=self._scan_imports(code, lines),
            exports=exports,
            reexports=reexports,
        )

    def scan_imports(self, content: str) -> list[ImportRecord]:
        code = strip_comments(content)
        return self._scan_imports(code, _LineIndex(code))

    def scan_exports(self, content: str) -> ExportRecord:
        code = strip_comments(content)
        exports, _ = self._scan_exports(code, _LineIndex(code))
        return exports

    # =========================================================================
    # Imports
    # =========================================================================

    def _scan_imports(self, code: str, lines: _LineIndex) -> list[ImportRecord]:
        records: list[tuple[int, ImportRecord]] = []

        for match in _IMPORT_RE.finditer(code):
            default = match.group("default")
            named = match.group("named")
            namespace = match.group("namespace")
            type_only = match.group("type_only") is not None

            if not (default or named or namespace):
                continue

            bindings: list[ImportBinding] = []
            if default:
                bindings.append(ImportBinding(DEFAULT_EXPORT, default, type_only))
            if named:
                bindings.extend(_parse_named_imports(named[1:-1], type_only))
            if namespace:
                bindings.append(ImportBinding(NAMESPACE_IMPORT, namespace, type_only))

            records.append((
                match.start(),
                ImportRecord(
                    source=match.group("source"),
                    line=lines.line_of(match.start()),
                    bindings=bindings,
                    type_only=type_only,
                ),
            ))

        for match in _SIDE_EFFECT_IMPORT_RE.finditer(code):
            records.append((
                match.start(),
                ImportRecord(source=match.group("source"), line=lines.line_of(match.start())),
            ))

        for match in _REQUIRE_RE.finditer(code):
            binding = match.group("binding")
            if binding.startswith("{"):
                bindings = _parse_destructured_require(binding[1:-1])
            else:
                bindings = [ImportBinding(DEFAULT_EXPORT, binding)]
            records.append((
                match.start(),
                ImportRecord(
                    source=match.group("source"),
                    line=lines.line_of(match.start()),
                    bindings=bindings,
                ),
            ))

        for match in _BARE_REQUIRE_RE.finditer(code):
            records.append((
                match.start(),
                ImportRecord(source=match.group("source"), line=lines.line_of(match.start())),
            ))

        records.sort(key=lambda item: item[0])
        return [record for _, record in records]

    # =========================================================================
    # Exports
    # =========================================================================

    def _scan_exports(
        self, code: str, lines: _LineIndex
    ) -> tuple[ExportRecord, list[ReExportRecord]]:
        exports = ExportRecord()
        reexports: list[ReExportRecord] = []

        for match in _EXPORT_DECL_RE.finditer(code):
            if match.group("default"):
                exports.names.add(DEFAULT_EXPORT)
            else:
                exports.names.add(match.group("name"))

        if _EXPORT_DEFAULT_RE.search(code):
            exports.names.add(DEFAULT_EXPORT)

        for match in _EXPORT_BRACED_RE.finditer(code):
            names = _parse_export_list(match.group("names"))
            exports.names.update(names)
            if match.group("source"):
                reexports.append(ReExportRecord(
                    source=match.group("source"),
                    line=lines.line_of(match.start()),
                    names=names,
                ))

        for match in _EXPORT_STAR_RE.finditer(code):
            alias = match.group("alias")
            source = match.group("source")
            if alias:
                exports.names.add(alias)
            else:
                exports.star_sources.append(source)
            reexports.append(ReExportRecord(
                source=source,
                line=lines.line_of(match.start()),
                names=[alias] if alias else [],
                star=alias is None,
            ))

        for match in _CJS_NAMED_EXPORT_RE.finditer(code):
            exports.names.add(match.group("name"))
            exports.commonjs = True

        for match in _CJS_MODULE_EXPORT_RE.finditer(code):
            # require() of the module yields module.exports itself
            exports.names.add(DEFAULT_EXPORT)
            if match.group("names") is not None:
                exports.names.update(_parse_object_keys(match.group("names")))
            exports.commonjs = True

        reexports.sort(key=lambda r: r.line)
        return exports, reexports
