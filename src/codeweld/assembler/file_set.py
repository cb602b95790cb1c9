"""
Virtual file set for assembly.

Folds the file operations of ordered work orders into a single
path -> content mapping. Pure in-memory data; nothing touches disk.
"""

import logging
import posixpath
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass

from codeweld.assembler.errors import AssemblyInputError
from codeweld.config.models import FileAction, WorkOrder, WorkOrderFile

logger = logging.getLogger(__name__)


def canonical_path(path: str) -> str:
    """Normalize a project-relative path to the form used as a file set key."""
    normalized = path.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    normalized = normalized.lstrip("/")
    while "//" in normalized:
        normalized = normalized.replace("//", "/")
    return normalized


def find_plural_duplicates(paths: Iterable[str], extensions: Iterable[str]) -> list[str]:
    """Plural-named source files that have a singular sibling, in path order."""
    paths = list(paths)
    suffixes = tuple(extensions)
    stems: dict[str, set[str]] = {}
    for path in paths:
        directory, _, name = path.rpartition("/")
        if name.endswith(suffixes):
            stems.setdefault(directory, set()).add(posixpath.splitext(name)[0])

    duplicates = []
    for path in sorted(paths):
        directory, _, name = path.rpartition("/")
        if not name.endswith(suffixes):
            continue
        stem = posixpath.splitext(name)[0]
        if stem.endswith("s") and not stem.endswith("ss") and stem[:-1] in stems[directory]:
            duplicates.append(path)
    return duplicates


@dataclass
class ApplyCounts:
    """Number of operations applied, by action."""

    created: int = 0
    modified: int = 0
    deleted: int = 0

    @property
    def total(self) -> int:
        return self.created + self.modified + self.deleted


class VirtualFileSet:
    """Ordered mapping of project paths to file content.

    Later operations win: a ``delete`` removes the path (absent paths are
    ignored), ``create`` and ``modify`` both set the content. Key insertion
    order is preserved so diagnostics come out in a stable order.

    Usage:
        files = VirtualFileSet.from_work_orders(work_orders, existing_files)
        content = files.get("src/lib/db.ts")
        snapshot = files.snapshot()
    """

    def __init__(
        self,
        existing_files: Mapping[str, str] | None = None,
        strict_content: bool = True,
    ):
        self.strict_content = strict_content
        self.counts = ApplyCounts()
        self._files: dict[str, str] = {}
        if existing_files:
            for path, content in existing_files.items():
                key = canonical_path(path)
                if not key:
                    raise AssemblyInputError("Existing file has an empty path")
                self._files[key] = content if content is not None else ""

    @classmethod
    def from_work_orders(
        cls,
        work_orders: Iterable[WorkOrder],
        existing_files: Mapping[str, str] | None = None,
        strict_content: bool = True,
    ) -> "VirtualFileSet":
        """Build a file set by folding work orders left to right."""
        file_set = cls(existing_files, strict_content=strict_content)
        file_set.apply_all(work_orders)
        return file_set

    # =========================================================================
    # Applying work orders
    # =========================================================================

    def apply_all(self, work_orders: Iterable[WorkOrder]) -> ApplyCounts:
        """Apply work orders in the given order. Returns the counts for this call."""
        counts = ApplyCounts()
        for work_order in work_orders:
            applied = self.apply(work_order)
            counts.created += applied.created
            counts.modified += applied.modified
            counts.deleted += applied.deleted
        return counts

    def apply(self, work_order: WorkOrder) -> ApplyCounts:
        """Apply a single work order.

        The whole work order is checked before anything is applied, so a
        structurally invalid work order leaves the file set untouched.

        Raises:
            AssemblyInputError: If the work order has no files, a file has an
                empty path, or a create/modify carries no content in strict mode
        """
        if not work_order.files:
            raise AssemblyInputError("Work order references no files", work_order.id)

        for file in work_order.files:
            self._check_file(work_order, file)

        counts = ApplyCounts()
        for file in work_order.files:
            self._apply_file(file, counts)

        self.counts.created += counts.created
        self.counts.modified += counts.modified
        self.counts.deleted += counts.deleted

        logger.debug(
            f"Applied work order {work_order.id}: {counts.created} created, "
            f"{counts.modified} modified, {counts.deleted} deleted"
        )
        return counts

    def _check_file(self, work_order: WorkOrder, file: WorkOrderFile) -> None:
        if not canonical_path(file.path):
            raise AssemblyInputError("File operation has an empty path", work_order.id)
        if (
            file.action != FileAction.DELETE
            and file.content is None
            and self.strict_content
        ):
            raise AssemblyInputError(
                f"No content provided for {file.action.value} action",
                work_order.id,
                file.path,
            )

    def _apply_file(self, file: WorkOrderFile, counts: ApplyCounts) -> None:
        path = canonical_path(file.path)

        if file.action == FileAction.DELETE:
            self._files.pop(path, None)
            counts.deleted += 1
            return

        self._files[path] = file.content if file.content is not None else ""
        if file.action == FileAction.CREATE:
            counts.created += 1
        else:
            counts.modified += 1

    # =========================================================================
    # Clean-up
    # =========================================================================

    def remove_plural_duplicates(self, extensions: Iterable[str]) -> list[str]:
        """Delete ``users.ts`` when a sibling ``user.ts`` exists.

        Generators sometimes write the same module under a singular and a
        plural name. Only source files with one of ``extensions`` are
        compared, and the singular one is kept. Returns the removed paths.
        """
        removed = find_plural_duplicates(self._files, extensions)
        for path in removed:
            del self._files[path]
        self.counts.deleted += len(removed)
        if removed:
            logger.info(f"Removed {len(removed)} plural duplicate files: {', '.join(removed)}")
        return removed

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, path: str) -> str | None:
        return self._files.get(canonical_path(path))

    def paths(self) -> list[str]:
        return list(self._files)

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(list(self._files.items()))

    def snapshot(self) -> dict[str, str]:
        """Return a plain copy of the current path -> content mapping."""
        return dict(self._files)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and canonical_path(path) in self._files

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._files))
