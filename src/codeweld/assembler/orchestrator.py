"""
Assembly Orchestrator — Main Assembly Pipeline.

Coordinates a full assembly run over one project's work orders:
1. Apply work orders phase by phase, validating the whole set after each
2. Extract external package dependencies
3. Validate, then repair through the fix provider and missing-file
   generator, for a bounded number of passes
4. Report residual diagnostics, phase results and stats
"""

import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from codeweld.assembler.auto_fixer import ExportAutoFixer
from codeweld.assembler.collaborators import FixProvider, FixRequest, MissingFileGenerator
from codeweld.assembler.dependencies import DependencyExtractor
from codeweld.assembler.events import (
    AssemblyEvent,
    AssemblyEventHandler,
    DependencyExtractedEvent,
    ErrorEvent,
    FileProcessedEvent,
    MissingFileGeneratedEvent,
    PhaseCompleteEvent,
    PhaseStartEvent,
    ValidationPassEvent,
)
from codeweld.assembler.file_set import VirtualFileSet
from codeweld.assembler.locks import ProjectLockRegistry, default_lock_registry
from codeweld.assembler.missing_files import MissingFileFinder
from codeweld.assembler.resolver import PathResolver
from codeweld.assembler.scanner import ModuleScanner
from codeweld.assembler.tsconfig import load_path_aliases
from codeweld.assembler.validator import ConsistencyValidator, ValidationReport
from codeweld.config.models import (
    AssemblyOptions,
    AssemblyResult,
    AssemblyStats,
    CodeWeldConfig,
    FileAction,
    MissingFileInfo,
    PhaseResult,
    PhaseStatus,
    WorkOrder,
)

logger = logging.getLogger(__name__)

APPLY_PHASE = "apply_work_orders"
DEPENDENCY_PHASE = "extract_dependencies"
VALIDATION_PHASE = "validation"


@dataclass
class AssemblyInput:
    """Everything one assembly run needs from its caller.

    ``options``, ``phases`` and ``aliases`` override the orchestrator's
    configuration for this run only. ``deadline`` is a ``time.monotonic()``
    timestamp checked between phases and validation passes.
    """

    project_id: str
    work_orders: list[WorkOrder]
    project_name: str = ""
    existing_files: dict[str, str] = field(default_factory=dict)
    options: AssemblyOptions | None = None
    phases: list[str] | None = None
    aliases: dict[str, str] | None = None
    deadline: float | None = None


def group_by_phase(
    work_orders: Iterable[WorkOrder], phases: list[str]
) -> list[tuple[str, list[WorkOrder]]]:
    """Group work orders under ordered phase labels.

    Unlabeled work orders join the first phase; labels missing from
    ``phases`` follow in first-seen order. Within a phase, work orders are
    sorted by ``order`` (stable; those without one keep their input order
    after the ordered ones). Phases without work orders are dropped.
    """
    work_orders = list(work_orders)
    if not any(wo.phase for wo in work_orders):
        labels = [APPLY_PHASE]
    else:
        labels = list(phases) or [APPLY_PHASE]
        for wo in work_orders:
            if wo.phase and wo.phase not in labels:
                labels.append(wo.phase)

    grouped: dict[str, list[WorkOrder]] = {label: [] for label in labels}
    for wo in work_orders:
        label = wo.phase if wo.phase in grouped else labels[0]
        grouped[label].append(wo)

    return [
        (label, sorted(orders, key=lambda wo: (wo.order is None, wo.order or 0)))
        for label, orders in grouped.items()
        if orders
    ]


class AssemblyOrchestrator:
    """Runs work orders through apply, dependency and validation phases.

    Only structural input errors (AssemblyInputError) and concurrent runs on
    the same project (ConcurrentAssemblyError) raise. Problems inside the
    generated content come back as diagnostics on the result.

    Usage:
        orchestrator = AssemblyOrchestrator(config, on_event=print)
        result = orchestrator.assemble(AssemblyInput("proj-1", work_orders))
    """

    def __init__(
        self,
        config: CodeWeldConfig | None = None,
        on_event: AssemblyEventHandler | None = None,
        fix_provider: FixProvider | None = None,
        missing_file_generator: MissingFileGenerator | None = None,
        lock_registry: ProjectLockRegistry | None = None,
    ):
        self.config = config or CodeWeldConfig()
        self.on_event = on_event
        self.fix_provider = fix_provider
        self.missing_file_generator = missing_file_generator
        self.lock_registry = lock_registry or default_lock_registry
        self.scanner = ModuleScanner()

    # =========================================================================
    # Public API
    # =========================================================================

    def assemble(self, request: AssemblyInput) -> AssemblyResult:
        """Assemble a project from its work orders.

        Raises:
            AssemblyInputError: If a work order is structurally invalid
            ConcurrentAssemblyError: If the project is already being assembled
        """
        with self.lock_registry.hold(request.project_id):
            return self._assemble(request)

    def resolver_for(
        self,
        aliases: Mapping[str, str] | None = None,
        files: Mapping[str, str] | None = None,
    ) -> PathResolver:
        """Resolver for one snapshot.

        Explicit ``aliases`` win. Otherwise the paths of a tsconfig.json in
        ``files`` are used (when enabled), then the configured aliases.
        """
        if aliases is None and files is not None and self.config.resolver.use_tsconfig_paths:
            aliases = load_path_aliases(files)
        return PathResolver(
            aliases if aliases is not None else self.config.resolver.aliases,
            self.config.resolver.source_extensions,
        )

    def validator_for(
        self, resolver: PathResolver, options: AssemblyOptions | None = None
    ) -> ConsistencyValidator:
        options = options or self.config.assembly
        return ConsistencyValidator(
            resolver,
            self.scanner,
            validate_imports=options.validate_imports,
            validate_exports=options.validate_exports,
            max_reexport_depth=self.config.resolver.max_reexport_depth,
        )

    def find_missing_files(
        self, files: Mapping[str, str], aliases: Mapping[str, str] | None = None
    ) -> list[MissingFileInfo]:
        """Files imported somewhere in ``files`` but absent from it."""
        resolver = self.resolver_for(aliases, files)
        report = self.validator_for(resolver).validate(files)
        return MissingFileFinder(resolver).find(report.unresolved)

    # =========================================================================
    # Pipeline
    # =========================================================================

    def _assemble(self, request: AssemblyInput) -> AssemblyResult:
        start_time = time.perf_counter()
        options = request.options or self.config.assembly
        phase_labels = request.phases if request.phases is not None else self.config.phases

        logger.info(
            f"Assembling project {request.project_id} "
            f"({len(request.work_orders)} work orders, "
            f"{len(request.existing_files)} existing files)"
        )

        file_set = VirtualFileSet(request.existing_files, strict_content=options.strict_content)
        stats = AssemblyStats()
        phases: list[PhaseResult] = []
        last_report: ValidationReport | None = None

        # =====================================================================
        # Apply work orders, one phase at a time
        # =====================================================================
        for label, work_orders in group_by_phase(request.work_orders, phase_labels):
            if self._deadline_passed(request):
                phases.append(self._skipped(label))
                continue

            self._emit(PhaseStartEvent(phase=label))
            processed = self._apply(file_set, work_orders)
            snapshot = file_set.snapshot()
            last_report = self._validator(request, options, snapshot).validate(snapshot)

            status = PhaseStatus.PARTIAL if last_report.errors else PhaseStatus.SUCCESS
            phases.append(PhaseResult(
                phase=label,
                status=status,
                files_processed=processed,
                errors=last_report.diagnostics,
            ))
            self._emit(PhaseCompleteEvent(phase=label, status=status))
            logger.info(
                f"Phase {label}: {processed} file operations, "
                f"{last_report.error_count} errors"
            )

        if options.deduplicate_plurals:
            removed = file_set.remove_plural_duplicates(self.config.resolver.source_extensions)
            for path in removed:
                self._emit(FileProcessedEvent(path=path, action=FileAction.DELETE.value))
            if removed:
                # The last phase report no longer matches the file set
                last_report = None

        # =====================================================================
        # Dependencies
        # =====================================================================
        dependencies: list[str] = []
        if options.extract_dependencies:
            if self._deadline_passed(request):
                phases.append(self._skipped(DEPENDENCY_PHASE))
            else:
                self._emit(PhaseStartEvent(phase=DEPENDENCY_PHASE))
                snapshot = file_set.snapshot()
                validator = self._validator(request, options, snapshot)
                modules = validator.scan_all(snapshot)
                dependencies = DependencyExtractor(validator.resolver).extract(modules)
                self._emit(DependencyExtractedEvent(count=len(dependencies)))
                phases.append(PhaseResult(
                    phase=DEPENDENCY_PHASE,
                    status=PhaseStatus.SUCCESS,
                    files_processed=len(modules),
                ))
                self._emit(PhaseCompleteEvent(phase=DEPENDENCY_PHASE, status=PhaseStatus.SUCCESS))
                logger.info(f"Extracted {len(dependencies)} dependencies")

        # =====================================================================
        # Validation and repair
        # =====================================================================
        if options.validate_imports or options.validate_exports:
            if self._deadline_passed(request):
                phases.append(self._skipped(VALIDATION_PHASE))
            else:
                self._emit(PhaseStartEvent(phase=VALIDATION_PHASE))
                last_report, repaired = self._validate_and_fix(
                    request, options, file_set, stats
                )
                status = PhaseStatus.PARTIAL if last_report.errors else PhaseStatus.SUCCESS
                phases.append(PhaseResult(
                    phase=VALIDATION_PHASE,
                    status=status,
                    files_processed=len(file_set),
                    errors=last_report.diagnostics,
                ))
                self._emit(PhaseCompleteEvent(phase=VALIDATION_PHASE, status=status))

                # Repairs may have introduced new external imports
                if options.extract_dependencies and repaired:
                    resolver = self.resolver_for(request.aliases, file_set.snapshot())
                    dependencies = DependencyExtractor(resolver).extract(last_report.modules)

        if last_report is None:
            snapshot = file_set.snapshot()
            last_report = self._validator(request, options, snapshot).validate(snapshot)

        stats.total_files = len(file_set)
        stats.files_created = file_set.counts.created
        stats.files_modified = file_set.counts.modified
        stats.files_deleted = file_set.counts.deleted
        stats.time_ms = (time.perf_counter() - start_time) * 1000

        result = AssemblyResult(
            success=not last_report.errors,
            project_id=request.project_id,
            files=file_set.snapshot(),
            dependencies=dependencies,
            validation_errors=last_report.diagnostics,
            stats=stats,
            phases=phases,
        )
        logger.info(
            f"Assembly of {request.project_id} finished: success={result.success}, "
            f"{len(result.errors)} errors, {len(result.warnings)} warnings, "
            f"{stats.time_ms:.1f}ms"
        )
        return result

    def _validate_and_fix(
        self,
        request: AssemblyInput,
        options: AssemblyOptions,
        file_set: VirtualFileSet,
        stats: AssemblyStats,
    ) -> tuple[ValidationReport, bool]:
        """Detect/fix/re-detect loop. Returns the last report and whether anything was applied."""
        fix_provider = self.fix_provider
        if fix_provider is None and options.auto_fix_exports:
            fix_provider = ExportAutoFixer(self.scanner)
        generator = self.missing_file_generator if options.generate_missing_files else None

        repaired = False
        previous_errors: set[tuple] | None = None
        pass_number = 0

        while True:
            pass_number += 1
            snapshot = file_set.snapshot()
            # A repair may add or change tsconfig.json
            validator = self._validator(request, options, snapshot)
            report = validator.validate(snapshot)
            stats.validation_passes = pass_number

            current_errors = {d.key() for d in report.errors}
            if previous_errors is not None:
                stats.errors_fixed += len(previous_errors - current_errors)
            previous_errors = current_errors

            self._emit(ValidationPassEvent(
                pass_number=pass_number,
                errors=len(report.errors),
                warnings=len(report.warnings),
            ))
            logger.info(
                f"Validation pass {pass_number}: {len(report.errors)} errors, "
                f"{len(report.warnings)} warnings"
            )

            missing = (
                MissingFileFinder(validator.resolver).find(report.unresolved) if generator else []
            )
            if not report.errors and not missing:
                break
            if pass_number >= options.max_validation_passes:
                logger.info(f"Reached {options.max_validation_passes} validation passes")
                break
            if self._deadline_passed(request):
                break

            generated: list[WorkOrder] = []
            if generator and missing:
                generated = generator.generate(missing, snapshot)

            fixes: list[WorkOrder] = []
            if fix_provider and report.errors:
                fixes = fix_provider.generate_fixes(FixRequest(
                    pass_number=pass_number,
                    errors=report.errors,
                    missing_exports=report.missing_exports,
                    files=snapshot,
                    missing_files=missing,
                ))

            if not generated and not fixes:
                logger.debug("No repair work orders produced, stopping")
                break

            if generated:
                created_before = file_set.counts.created
                self._apply(file_set, generated)
                stats.missing_files_generated += file_set.counts.created - created_before
                for work_order in generated:
                    for file in work_order.files:
                        if file.action != FileAction.DELETE:
                            self._emit(MissingFileGeneratedEvent(path=file.path))
            if fixes:
                self._apply(file_set, fixes)
            repaired = True

        return report, repaired

    # =========================================================================
    # Helpers
    # =========================================================================

    def _apply(self, file_set: VirtualFileSet, work_orders: Iterable[WorkOrder]) -> int:
        processed = 0
        for work_order in work_orders:
            counts = file_set.apply(work_order)
            processed += counts.total
            for file in work_order.files:
                self._emit(FileProcessedEvent(path=file.path, action=file.action.value))
        return processed

    def _validator(
        self, request: AssemblyInput, options: AssemblyOptions, files: Mapping[str, str]
    ) -> ConsistencyValidator:
        return self.validator_for(self.resolver_for(request.aliases, files), options)

    def _deadline_passed(self, request: AssemblyInput) -> bool:
        return request.deadline is not None and time.monotonic() >= request.deadline

    def _skipped(self, phase: str) -> PhaseResult:
        logger.warning(f"Deadline passed, skipping phase {phase}")
        self._emit(ErrorEvent(message=f"Deadline passed before phase {phase}"))
        return PhaseResult(phase=phase, status=PhaseStatus.FAILED)

    def _emit(self, event: AssemblyEvent) -> None:
        if self.on_event is not None:
            self.on_event(event)
