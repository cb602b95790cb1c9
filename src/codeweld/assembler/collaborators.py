"""
Interfaces for the collaborators the orchestrator calls between passes.

Both produce new work orders; the orchestrator applies them and validates
again. Implementations usually wrap a language model, but anything that can
turn diagnostics into file operations works.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field

from codeweld.config.models import Diagnostic, MissingFileInfo, WorkOrder


@dataclass(frozen=True)
class MissingExport:
    """A named import absent from its resolved target."""

    file: str
    line: int
    target: str
    name: str


@dataclass
class FixRequest:
    """Everything a fix provider sees for one validation pass."""

    pass_number: int
    errors: list[Diagnostic]
    missing_exports: list[MissingExport]
    files: Mapping[str, str]
    missing_files: list[MissingFileInfo] = field(default_factory=list)

    def missing_by_target(self) -> dict[str, list[str]]:
        """Missing names grouped by the file that should export them."""
        grouped: dict[str, list[str]] = {}
        for item in self.missing_exports:
            names = grouped.setdefault(item.target, [])
            if item.name not in names:
                names.append(item.name)
        return grouped


class FixProvider(ABC):
    """Turns missing-export errors into corrective work orders."""

    @abstractmethod
    def generate_fixes(self, request: FixRequest) -> list[WorkOrder]:
        """
        Produce work orders that fix some or all errors.

        Args:
            request: Errors of the current pass and a snapshot of the files

        Returns:
            Work orders to apply before the next pass (empty when nothing can be fixed)
        """
        pass


class MissingFileGenerator(ABC):
    """Produces files that are imported but were never generated."""

    @abstractmethod
    def generate(
        self, missing: list[MissingFileInfo], files: Mapping[str, str]
    ) -> list[WorkOrder]:
        """
        Produce work orders creating some or all missing files.

        Args:
            missing: Expected paths with the exports they must provide
            files: Snapshot of the current file set

        Returns:
            Work orders to apply before the next pass
        """
        pass
