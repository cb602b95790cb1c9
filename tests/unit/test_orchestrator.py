"""
Tests for AssemblyOrchestrator — phases, validation passes, stats and events.
"""

import time

import pytest

from codeweld.assembler.collaborators import FixProvider, MissingFileGenerator
from codeweld.assembler.errors import AssemblyInputError, ConcurrentAssemblyError
from codeweld.assembler.locks import ProjectLockRegistry
from codeweld.assembler.orchestrator import (
    AssemblyInput,
    AssemblyOrchestrator,
    group_by_phase,
)
from codeweld.config.models import (
    AssemblyOptions,
    CodeWeldConfig,
    FileAction,
    PhaseStatus,
    ResolverConfig,
    WorkOrder,
    WorkOrderFile,
)


# =========================================================================
# Helpers
# =========================================================================


def _wo(
    wo_id: str,
    files: dict[str, str | None],
    phase: str | None = None,
    order: int | None = None,
    action: FileAction = FileAction.CREATE,
) -> WorkOrder:
    return WorkOrder(
        id=wo_id,
        title=wo_id,
        phase=phase,
        order=order,
        files=[
            WorkOrderFile(
                path=path,
                action=FileAction.DELETE if content is None else action,
                content=content,
            )
            for path, content in files.items()
        ],
    )


def _orchestrator(
    options: AssemblyOptions | None = None, **kwargs
) -> AssemblyOrchestrator:
    config = CodeWeldConfig(assembly=options or AssemblyOptions())
    kwargs.setdefault("lock_registry", ProjectLockRegistry())
    return AssemblyOrchestrator(config, **kwargs)


BROKEN_IMPORT = {
    "src/a.ts": "import { Foo } from './b'\n",
    "src/b.ts": "export const Bar = 1\n",
}


class AddFooExport(FixProvider):
    """Fixes the missing Foo export on the first call."""

    def __init__(self):
        self.requests = []

    def generate_fixes(self, request):
        self.requests.append(request)
        return [_wo(
            f"fix-{request.pass_number}",
            {"src/b.ts": "export const Bar = 1\nexport const Foo = 2\n"},
            action=FileAction.MODIFY,
        )]


class NoOpFixer(FixProvider):
    """Always answers with a work order that changes nothing."""

    def generate_fixes(self, request):
        return [_wo(
            f"noop-{request.pass_number}",
            {"src/b.ts": request.files["src/b.ts"]},
            action=FileAction.MODIFY,
        )]


class StubGenerator(MissingFileGenerator):
    """Writes a file exporting every required name."""

    def generate(self, missing, files):
        return [
            _wo(
                f"gen-{info.path}",
                {info.suggested_path: "".join(
                    f"export const {name} = null\n" for name in info.required_exports
                )},
            )
            for info in missing
        ]


# =========================================================================
# Phase grouping
# =========================================================================


class TestGroupByPhase:
    """Work orders are grouped under ordered phase labels."""

    def test_unlabeled_uses_single_apply_phase(self):
        groups = group_by_phase([_wo("a", {"x.ts": "1"}), _wo("b", {"y.ts": "2"})], ["models"])

        assert [label for label, _ in groups] == ["apply_work_orders"]

    def test_labels_follow_configured_order(self):
        groups = group_by_phase(
            [_wo("p", {"x": "1"}, phase="pages"), _wo("m", {"y": "1"}, phase="models")],
            ["models", "pages"],
        )

        assert [(label, [wo.id for wo in orders]) for label, orders in groups] == [
            ("models", ["m"]),
            ("pages", ["p"]),
        ]

    def test_unlabeled_join_first_phase_and_unknown_labels_append(self):
        groups = group_by_phase(
            [
                _wo("u1", {"a": "1"}, phase="ui"),
                _wo("plain", {"b": "1"}),
                _wo("m", {"c": "1"}, phase="models"),
                _wo("x", {"d": "1"}, phase="extras"),
            ],
            ["models", "pages"],
        )

        assert [(label, [wo.id for wo in orders]) for label, orders in groups] == [
            ("models", ["plain", "m"]),
            ("ui", ["u1"]),
            ("extras", ["x"]),
        ]

    def test_sorted_by_order_within_phase(self):
        groups = group_by_phase(
            [
                _wo("c", {"c": "1"}, order=3),
                _wo("none", {"n": "1"}),
                _wo("a", {"a": "1"}, order=1),
                _wo("b", {"b": "1"}, order=1),
            ],
            [],
        )

        [(_, orders)] = groups
        assert [wo.id for wo in orders] == ["a", "b", "c", "none"]


# =========================================================================
# Assembly runs
# =========================================================================


class TestAssemble:
    """End-to-end behaviour of a single run."""

    def test_clean_run(self):
        orchestrator = _orchestrator()
        result = orchestrator.assemble(AssemblyInput(
            project_id="p1",
            work_orders=[
                _wo("1", {
                    "src/lib/db.ts": "import mongoose from 'mongoose'\nexport const db = mongoose\n",
                    "src/app.ts": "import { db } from '@/lib/db'\n",
                }),
            ],
        ))

        assert result.success
        assert result.project_id == "p1"
        assert result.dependencies == ["mongoose"]
        assert result.validation_errors == []
        assert [p.phase for p in result.phases] == [
            "apply_work_orders", "extract_dependencies", "validation",
        ]
        assert all(p.status == PhaseStatus.SUCCESS for p in result.phases)
        assert result.stats.total_files == 2
        assert result.stats.files_created == 2
        assert result.stats.validation_passes == 1

    def test_existing_files_are_kept(self):
        result = _orchestrator().assemble(AssemblyInput(
            project_id="p1",
            existing_files={"src/b.ts": "export const Foo = 1\n"},
            work_orders=[_wo("1", {"src/a.ts": "import { Foo } from './b'\n"})],
        ))

        assert result.success
        assert set(result.files) == {"src/b.ts", "src/a.ts"}

    def test_warnings_do_not_block_success(self):
        result = _orchestrator().assemble(AssemblyInput(
            project_id="p1",
            work_orders=[_wo("1", {"src/a.ts": "import { x } from './gone'\n"})],
        ))

        assert result.success
        assert len(result.warnings) == 1

    def test_unfixed_errors_make_the_run_partial(self):
        result = _orchestrator(AssemblyOptions(auto_fix_exports=False)).assemble(
            AssemblyInput(project_id="p1", work_orders=[_wo("1", BROKEN_IMPORT)])
        )

        assert not result.success
        assert len(result.errors) == 1
        assert result.phases[-1].status == PhaseStatus.PARTIAL
        assert result.stats.validation_passes == 1

    def test_labeled_phases_each_validate_whole_set(self):
        result = _orchestrator().assemble(AssemblyInput(
            project_id="p1",
            phases=["models", "pages"],
            work_orders=[
                _wo("page", {"src/page.ts": "import { User } from './user'\n"}, phase="pages"),
                _wo("model", {"src/user.ts": "export class User {}\n"}, phase="models"),
            ],
        ))

        assert [p.phase for p in result.phases][:2] == ["models", "pages"]
        assert result.phases[0].files_processed == 1
        assert result.success

    def test_deleted_files_are_absent(self):
        result = _orchestrator().assemble(AssemblyInput(
            project_id="p1",
            work_orders=[
                _wo("1", {"src/a.ts": "export const a = 1\n"}),
                _wo("2", {"src/a.ts": None}),
            ],
        ))

        assert result.files == {}
        assert result.stats.files_deleted == 1

    def test_dependency_phase_can_be_disabled(self):
        result = _orchestrator(AssemblyOptions(extract_dependencies=False)).assemble(
            AssemblyInput(project_id="p1", work_orders=[_wo("1", {"src/a.ts": "import 'zod'\n"})])
        )

        assert result.dependencies == []
        assert "extract_dependencies" not in [p.phase for p in result.phases]

    def test_per_run_options_override_config(self):
        result = _orchestrator().assemble(AssemblyInput(
            project_id="p1",
            work_orders=[_wo("1", BROKEN_IMPORT)],
            options=AssemblyOptions(validate_exports=False),
        ))

        assert result.success

    def test_per_run_aliases(self):
        result = _orchestrator().assemble(AssemblyInput(
            project_id="p1",
            aliases={"~/": "app/"},
            work_orders=[_wo("1", {
                "app/util.ts": "export const u = 1\n",
                "app/main.ts": "import { u } from '~/util'\n",
            })],
        ))

        assert result.success
        assert result.dependencies == []

    def test_tsconfig_paths_drive_resolution(self):
        result = _orchestrator().assemble(AssemblyInput(
            project_id="p1",
            work_orders=[_wo("1", {
                "tsconfig.json": '{"compilerOptions": {"paths": {"~/*": ["./app/*"]}}}',
                "app/lib/x.ts": "export const Y = 1\n",
                "app/page.ts": "import { X } from '~/lib/x'\nimport { z } from 'zod'\n",
            })],
        ))

        assert result.dependencies == ["zod"]
        assert [e.message for e in result.errors] == [
            "Named import 'X' not found in exports of app/lib/x.ts"
        ]

    def test_explicit_aliases_win_over_tsconfig(self):
        result = _orchestrator().assemble(AssemblyInput(
            project_id="p1",
            aliases={"@/": "src/"},
            work_orders=[_wo("1", {
                "tsconfig.json": '{"compilerOptions": {"paths": {"@/*": ["./other/*"]}}}',
                "src/util.ts": "export const u = 1\n",
                "src/main.ts": "import { u } from '@/util'\n",
            })],
        ))

        assert result.success
        assert result.warnings == []

    def test_tsconfig_can_be_disabled(self):
        config = CodeWeldConfig(resolver=ResolverConfig(use_tsconfig_paths=False))
        orchestrator = AssemblyOrchestrator(config, lock_registry=ProjectLockRegistry())
        result = orchestrator.assemble(AssemblyInput(
            project_id="p1",
            work_orders=[_wo("1", {
                "tsconfig.json": '{"compilerOptions": {"paths": {"~/*": ["./app/*"]}}}',
                "app/main.ts": "import { u } from '~/util'\n",
            })],
        ))

        assert result.dependencies == ["~"]

    def test_commonjs_work_orders(self):
        result = _orchestrator().assemble(AssemblyInput(
            project_id="p1",
            work_orders=[_wo("1", {
                "src/server.js": "const express = require('express')\nconst { z } = require('zod')\n"
                                 "const { connect } = require('./db')\n",
                "src/db.js": "module.exports = { open }\n",
            })],
        ))

        assert result.dependencies == ["express", "zod"]
        assert [e.message for e in result.errors] == [
            "Named import 'connect' not found in exports of src/db.js"
        ]

    def test_plural_duplicates_removed_when_enabled(self):
        files = {
            "src/models/user.ts": "export class User {}\n",
            "src/models/users.ts": "export class User {}\n",
        }
        events = []
        result = _orchestrator(
            AssemblyOptions(deduplicate_plurals=True), on_event=events.append
        ).assemble(AssemblyInput(project_id="p1", work_orders=[_wo("1", files)]))

        assert list(result.files) == ["src/models/user.ts"]
        assert result.stats.files_deleted == 1
        assert ("src/models/users.ts", "delete") in [
            (e.path, e.action) for e in events if e.type == "file_processed"
        ]

    def test_plural_duplicates_kept_by_default(self):
        files = {
            "src/models/user.ts": "export class User {}\n",
            "src/models/users.ts": "export class User {}\n",
        }
        result = _orchestrator().assemble(AssemblyInput(project_id="p1", work_orders=[_wo("1", files)]))

        assert len(result.files) == 2


class TestValidationPasses:
    """Detect / fix / re-detect loop."""

    def test_fix_provider_repairs_errors(self):
        fixer = AddFooExport()
        result = _orchestrator(fix_provider=fixer).assemble(
            AssemblyInput(project_id="p1", work_orders=[_wo("1", BROKEN_IMPORT)])
        )

        assert result.success
        assert result.stats.validation_passes == 2
        assert result.stats.errors_fixed == 1
        assert result.stats.files_modified == 1
        [request] = fixer.requests
        assert request.missing_by_target() == {"src/b.ts": ["Foo"]}

    def test_default_auto_fixer_exports_defined_names(self):
        result = _orchestrator().assemble(AssemblyInput(
            project_id="p1",
            work_orders=[_wo("1", {
                "src/b.ts": "function Foo() {}\nexport default Foo\n",
                "src/a.ts": "import { Foo } from './b'\n",
            })],
        ))

        assert result.success
        assert result.stats.errors_fixed == 1
        assert "export { Foo }" in result.files["src/b.ts"]

    def test_pass_cap_is_respected(self):
        result = _orchestrator(
            AssemblyOptions(max_validation_passes=3), fix_provider=NoOpFixer()
        ).assemble(AssemblyInput(project_id="p1", work_orders=[_wo("1", BROKEN_IMPORT)]))

        assert not result.success
        assert result.stats.validation_passes == 3
        assert result.stats.errors_fixed == 0
        assert result.phases[-1].status == PhaseStatus.PARTIAL

    def test_missing_file_generator_fills_gaps(self):
        result = _orchestrator(missing_file_generator=StubGenerator()).assemble(
            AssemblyInput(
                project_id="p1",
                work_orders=[_wo("1", {"src/app.ts": "import { db } from '@/lib/db'\n"})],
            )
        )

        assert result.success
        assert result.warnings == []
        assert result.files["src/lib/db.ts"] == "export const db = null\n"
        assert result.stats.missing_files_generated == 1
        assert result.stats.validation_passes == 2

    def test_generator_disabled_by_option(self):
        result = _orchestrator(
            AssemblyOptions(generate_missing_files=False),
            missing_file_generator=StubGenerator(),
        ).assemble(AssemblyInput(
            project_id="p1",
            work_orders=[_wo("1", {"src/app.ts": "import { db } from '@/lib/db'\n"})],
        ))

        assert "src/lib/db.ts" not in result.files
        assert result.stats.missing_files_generated == 0

    def test_generated_files_add_dependencies(self):
        class PackageGenerator(MissingFileGenerator):
            def generate(self, missing, files):
                return [_wo("gen", {"src/lib/db.ts": "import m from 'mongoose'\nexport const db = m\n"})]

        result = _orchestrator(missing_file_generator=PackageGenerator()).assemble(
            AssemblyInput(
                project_id="p1",
                work_orders=[_wo("1", {"src/app.ts": "import { db } from '@/lib/db'\n"})],
            )
        )

        assert result.dependencies == ["mongoose"]


class TestDeadline:
    """Deadline is checked between phases."""

    def test_expired_deadline_fails_every_phase(self):
        events = []
        result = _orchestrator(on_event=events.append).assemble(AssemblyInput(
            project_id="p1",
            existing_files={"src/a.ts": "export const a = 1\n"},
            work_orders=[_wo("1", {"src/b.ts": "export const b = 1\n"})],
            deadline=time.monotonic() - 1,
        ))

        assert [p.status for p in result.phases] == [PhaseStatus.FAILED] * 3
        assert set(result.files) == {"src/a.ts"}
        assert result.success
        assert [e.type for e in events] == ["error", "error", "error"]

    def test_future_deadline_runs_normally(self):
        result = _orchestrator().assemble(AssemblyInput(
            project_id="p1",
            work_orders=[_wo("1", {"src/b.ts": "export const b = 1\n"})],
            deadline=time.monotonic() + 60,
        ))

        assert all(p.status == PhaseStatus.SUCCESS for p in result.phases)


class TestConcurrencyAndErrors:
    """Only structural errors and concurrent runs raise."""

    def test_concurrent_run_is_rejected(self):
        registry = ProjectLockRegistry()
        registry.try_acquire("p1")
        orchestrator = _orchestrator(lock_registry=registry)

        with pytest.raises(ConcurrentAssemblyError):
            orchestrator.assemble(AssemblyInput(project_id="p1", work_orders=[]))

    def test_other_projects_are_not_blocked(self):
        registry = ProjectLockRegistry()
        registry.try_acquire("p1")

        result = _orchestrator(lock_registry=registry).assemble(
            AssemblyInput(project_id="p2", work_orders=[_wo("1", {"a.ts": "export {}\n"})])
        )

        assert result.success

    def test_lock_released_after_structural_error(self):
        registry = ProjectLockRegistry()
        orchestrator = _orchestrator(lock_registry=registry)

        with pytest.raises(AssemblyInputError):
            orchestrator.assemble(AssemblyInput(
                project_id="p1",
                work_orders=[WorkOrder(id="bad", files=[])],
            ))

        assert not registry.is_locked("p1")

    def test_content_without_text_raises_in_strict_mode(self):
        with pytest.raises(AssemblyInputError):
            _orchestrator().assemble(AssemblyInput(
                project_id="p1",
                work_orders=[WorkOrder(
                    id="w",
                    files=[WorkOrderFile(path="a.ts", action=FileAction.CREATE)],
                )],
            ))


class TestEvents:
    """Progress events arrive in pipeline order."""

    def test_event_sequence(self):
        events = []
        _orchestrator(on_event=events.append).assemble(AssemblyInput(
            project_id="p1",
            work_orders=[_wo("1", {"src/a.ts": "export const a = 1\n", "src/b.ts": "export {}\n"})],
        ))

        assert [e.type for e in events] == [
            "phase_start",
            "file_processed",
            "file_processed",
            "phase_complete",
            "phase_start",
            "dependency_extracted",
            "phase_complete",
            "phase_start",
            "validation_pass",
            "phase_complete",
        ]
        assert events[1].path == "src/a.ts"
        assert events[1].action == "create"

    def test_missing_file_events(self):
        events = []
        _orchestrator(on_event=events.append, missing_file_generator=StubGenerator()).assemble(
            AssemblyInput(
                project_id="p1",
                work_orders=[_wo("1", {"src/app.ts": "import { db } from '@/lib/db'\n"})],
            )
        )

        generated = [e for e in events if e.type == "missing_file_generated"]
        assert [e.path for e in generated] == ["src/lib/db.ts"]
        passes = [e for e in events if e.type == "validation_pass"]
        assert [(e.pass_number, e.warnings) for e in passes] == [(1, 1), (2, 0)]


class TestFindMissingFiles:
    def test_reports_missing_targets(self):
        missing = _orchestrator().find_missing_files({
            "src/app.ts": "import { db } from '@/lib/db'\n",
        })

        [info] = missing
        assert info.suggested_path == "src/lib/db.ts"
        assert info.imported_by == ["src/app.ts"]
