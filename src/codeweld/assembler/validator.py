"""
Consistency Validator for assembly.

For every import in every source file: external packages are skipped,
unresolvable paths become warnings, and named bindings missing from the
resolved target's exports become errors. Each call works on its own
snapshot, so validating an unchanged file set twice gives identical output.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

import networkx as nx

from codeweld.assembler.collaborators import MissingExport
from codeweld.assembler.resolver import PathResolver, SourceKind
from codeweld.assembler.scanner import DEFAULT_EXPORT, ModuleInfo, ModuleScanner
from codeweld.config.models import Diagnostic, Severity

logger = logging.getLogger(__name__)


@dataclass
class UnresolvedImport:
    """An internal import whose candidates all miss the file set."""

    file: str
    line: int
    source: str
    candidates: list[str]
    requested_exports: list[str] = field(default_factory=list)


@dataclass
class ValidationReport:
    """Output of one validation run."""

    diagnostics: list[Diagnostic] = field(default_factory=list)
    unresolved: list[UnresolvedImport] = field(default_factory=list)
    missing_exports: list[MissingExport] = field(default_factory=list)
    modules: dict[str, ModuleInfo] = field(default_factory=dict)
    import_count: int = 0

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    @property
    def error_count(self) -> int:
        return len(self.errors)


class ExportIndex:
    """Export sets for the files of one snapshot, computed on demand.

    With ``max_depth == 1`` a file exports exactly what its own text
    declares or re-exports by name. Larger depths also pull in the names of
    ``export * from`` targets reachable within ``max_depth - 1`` hops.
    Barrel cycles are allowed and simply stop the walk.
    """

    def __init__(
        self,
        modules: Mapping[str, ModuleInfo],
        resolver: PathResolver,
        available: Mapping[str, str],
        max_depth: int = 1,
    ):
        self.modules = modules
        self.resolver = resolver
        self.available = available
        self.max_depth = max_depth
        self._graph: nx.DiGraph | None = None
        self._cache: dict[str, set[str]] = {}

    def names(self, path: str) -> set[str]:
        if path in self._cache:
            return self._cache[path]

        module = self.modules.get(path)
        names = set(module.exports.names) if module else set()
        if module and self.max_depth > 1:
            graph = self._star_graph()
            if path in graph:
                reachable = nx.single_source_shortest_path_length(
                    graph, path, cutoff=self.max_depth - 1
                )
                for target in reachable:
                    if target == path:
                        continue
                    target_module = self.modules.get(target)
                    if target_module:
                        # 'export *' never forwards the default export
                        names.update(
                            n for n in target_module.exports.names if n != DEFAULT_EXPORT
                        )

        self._cache[path] = names
        return names

    def _star_graph(self) -> nx.DiGraph:
        if self._graph is None:
            graph = nx.DiGraph()
            for path, module in self.modules.items():
                for source in module.exports.star_sources:
                    target = self.resolver.resolve(source, path, self.available)
                    if target is not None:
                        graph.add_edge(path, target)
            self._graph = graph
            logger.debug(
                f"Star re-export graph: {graph.number_of_nodes()} files, "
                f"{graph.number_of_edges()} edges"
            )
        return self._graph


class ConsistencyValidator:
    """Checks that every internal import resolves and names real exports.

    Severity policy:
        - path does not resolve to any file   -> warning (may be generated later)
        - path resolves, named binding absent -> error (contract violation)
    """

    def __init__(
        self,
        resolver: PathResolver | None = None,
        scanner: ModuleScanner | None = None,
        validate_imports: bool = True,
        validate_exports: bool = True,
        max_reexport_depth: int = 1,
    ):
        self.resolver = resolver or PathResolver()
        self.scanner = scanner or ModuleScanner()
        self.validate_imports = validate_imports
        self.validate_exports = validate_exports
        self.max_reexport_depth = max_reexport_depth

    def is_source_file(self, path: str) -> bool:
        return path.endswith(self.resolver.extensions)

    def scan_all(self, files: Mapping[str, str]) -> dict[str, ModuleInfo]:
        """Scan every source file of a snapshot, preserving its order."""
        return {
            path: self.scanner.scan(path, content)
            for path, content in files.items()
            if self.is_source_file(path)
        }

    def validate(self, files: Mapping[str, str]) -> ValidationReport:
        """Validate a path -> content snapshot."""
        report = ValidationReport(modules=self.scan_all(files))
        exports = ExportIndex(
            report.modules, self.resolver, files, max_depth=self.max_reexport_depth
        )

        for path, module in report.modules.items():
            for record in module.imports:
                kind = self.resolver.classify(record.source)
                if kind == SourceKind.EXTERNAL:
                    continue
                report.import_count += 1

                candidates = self.resolver.candidates(record.source, path)
                target = next((c for c in candidates if c in files), None)

                if target is None:
                    report.unresolved.append(UnresolvedImport(
                        file=path,
                        line=record.line,
                        source=record.source,
                        candidates=candidates,
                        requested_exports=record.requested_exports,
                    ))
                    if self.validate_imports:
                        report.diagnostics.append(Diagnostic(
                            file=path,
                            line=record.line,
                            message=f"Unresolved import: {record.source}",
                            severity=Severity.WARNING,
                            fixable=False,
                        ))
                    continue

                if not self.validate_exports or not self.is_source_file(target):
                    continue

                target_names = exports.names(target)
                seen: set[str] = set()
                for name in record.requested_exports:
                    if name == DEFAULT_EXPORT or name in seen:
                        continue
                    seen.add(name)
                    if name not in target_names:
                        report.missing_exports.append(
                            MissingExport(path, record.line, target, name)
                        )
                        report.diagnostics.append(Diagnostic(
                            file=path,
                            line=record.line,
                            message=f"Named import '{name}' not found in exports of {target}",
                            severity=Severity.ERROR,
                            fixable=True,
                        ))

        logger.debug(
            f"Validated {len(report.modules)} source files: {report.import_count} internal "
            f"imports, {len(report.errors)} errors, {len(report.warnings)} warnings"
        )
        return report
