"""
Tests for VirtualFileSet — folding work-order file operations.
"""

import pytest

from codeweld.assembler.errors import AssemblyInputError
from codeweld.assembler.file_set import VirtualFileSet, canonical_path, find_plural_duplicates
from codeweld.config.models import FileAction, WorkOrder, WorkOrderFile


# =========================================================================
# Helpers
# =========================================================================


def _op(path: str, action: str = "create", content: str | None = "x") -> WorkOrderFile:
    return WorkOrderFile(path=path, action=FileAction(action), content=content)


def _wo(wo_id: str, *files: WorkOrderFile, order: int | None = None) -> WorkOrder:
    return WorkOrder(id=wo_id, title=wo_id, files=list(files), order=order)


# =========================================================================
# Path canonicalisation
# =========================================================================


class TestCanonicalPath:
    """Paths are normalised before they become keys."""

    def test_strips_leading_dot_slash(self):
        assert canonical_path("./src/a.ts") == "src/a.ts"

    def test_strips_leading_slash(self):
        assert canonical_path("/src/a.ts") == "src/a.ts"

    def test_converts_backslashes(self):
        assert canonical_path("src\\lib\\db.ts") == "src/lib/db.ts"

    def test_collapses_double_slashes(self):
        assert canonical_path("src//lib///db.ts") == "src/lib/db.ts"


# =========================================================================
# Applying work orders
# =========================================================================


class TestApply:
    """Fold semantics of create / modify / delete."""

    def test_last_write_wins(self):
        files = VirtualFileSet.from_work_orders([
            _wo("1", _op("src/a.ts", content="one")),
            _wo("2", _op("src/a.ts", "modify", "two")),
        ])

        assert files.get("src/a.ts") == "two"
        assert len(files) == 1

    def test_delete_dominates_earlier_writes(self):
        files = VirtualFileSet.from_work_orders([
            _wo("1", _op("src/a.ts", content="one")),
            _wo("2", _op("src/a.ts", "modify", "two")),
            _wo("3", _op("src/a.ts", "delete", None)),
        ])

        assert "src/a.ts" not in files
        assert len(files) == 0

    def test_delete_of_absent_path_is_ignored(self):
        files = VirtualFileSet.from_work_orders([_wo("1", _op("nope.ts", "delete", None))])

        assert len(files) == 0
        assert files.counts.deleted == 1

    def test_recreate_after_delete_appends_to_order(self):
        files = VirtualFileSet.from_work_orders([
            _wo("1", _op("a.ts"), _op("b.ts")),
            _wo("2", _op("a.ts", "delete", None)),
            _wo("3", _op("a.ts", content="again")),
        ])

        assert files.paths() == ["b.ts", "a.ts"]

    def test_existing_files_are_seeded_first(self):
        files = VirtualFileSet.from_work_orders(
            [_wo("1", _op("src/new.ts"))],
            existing_files={"./src/old.ts": "old"},
        )

        assert files.paths() == ["src/old.ts", "src/new.ts"]
        assert files.get("src/old.ts") == "old"

    def test_paths_are_canonicalised_on_apply_and_lookup(self):
        files = VirtualFileSet.from_work_orders([_wo("1", _op("./src\\a.ts", content="a"))])

        assert "src/a.ts" in files
        assert "./src/a.ts" in files
        assert files.get("/src/a.ts") == "a"

    def test_counts_by_action(self):
        files = VirtualFileSet()
        counts = files.apply_all([
            _wo("1", _op("a.ts"), _op("b.ts")),
            _wo("2", _op("a.ts", "modify"), _op("b.ts", "delete", None)),
        ])

        assert (counts.created, counts.modified, counts.deleted) == (2, 1, 1)
        assert counts.total == 4
        assert files.counts.total == 4

    def test_snapshot_is_a_copy(self):
        files = VirtualFileSet.from_work_orders([_wo("1", _op("a.ts"))])
        snapshot = files.snapshot()
        snapshot["b.ts"] = "y"

        assert "b.ts" not in files


class TestStructuralErrors:
    """Caller bugs raise AssemblyInputError."""

    def test_work_order_without_files(self):
        with pytest.raises(AssemblyInputError, match="no files"):
            VirtualFileSet().apply(_wo("empty"))

    def test_empty_path(self):
        with pytest.raises(AssemblyInputError, match="empty path"):
            VirtualFileSet().apply(_wo("1", _op("  ")))

    def test_missing_content_in_strict_mode(self):
        with pytest.raises(AssemblyInputError) as exc_info:
            VirtualFileSet().apply(_wo("wo-7", _op("src/a.ts", content=None)))

        assert exc_info.value.work_order_id == "wo-7"
        assert exc_info.value.path == "src/a.ts"

    def test_missing_content_defaults_to_empty_when_lenient(self):
        files = VirtualFileSet(strict_content=False)
        files.apply(_wo("1", _op("src/a.ts", content=None)))

        assert files.get("src/a.ts") == ""

    def test_invalid_work_order_leaves_file_set_untouched(self):
        files = VirtualFileSet()
        with pytest.raises(AssemblyInputError):
            files.apply(_wo("1", _op("ok.ts"), _op("bad.ts", content=None)))

        assert len(files) == 0
        assert files.counts.total == 0


# =========================================================================
# Plural duplicates
# =========================================================================


SOURCE_EXTENSIONS = [".ts", ".tsx", ".js", ".jsx"]


class TestPluralDuplicates:
    """Singular/plural sibling modules collapse to the singular one."""

    def test_plural_with_singular_sibling_is_found(self):
        paths = [
            "src/models/user.ts",
            "src/models/users.ts",
            "src/models/post.ts",
            "src/models/comments.ts",
            "src/models/address.ts",
            "src/lib/users.ts",
        ]

        assert find_plural_duplicates(paths, SOURCE_EXTENSIONS) == ["src/models/users.ts"]

    def test_extensions_may_differ(self):
        paths = ["src/components/card.tsx", "src/components/cards.ts"]

        assert find_plural_duplicates(paths, SOURCE_EXTENSIONS) == ["src/components/cards.ts"]

    def test_non_source_files_are_ignored(self):
        paths = ["docs/note.md", "docs/notes.md", "root.ts", "roots.ts"]

        assert find_plural_duplicates(paths, SOURCE_EXTENSIONS) == ["roots.ts"]

    def test_remove_updates_files_and_counts(self):
        files = VirtualFileSet({
            "src/models/user.ts": "export class User {}\n",
            "src/models/users.ts": "export class User {}\n",
        })

        removed = files.remove_plural_duplicates(SOURCE_EXTENSIONS)

        assert removed == ["src/models/users.ts"]
        assert files.paths() == ["src/models/user.ts"]
        assert files.counts.deleted == 1
