"""
Assembly engine.

Folds AI-generated work orders into a virtual project, checks that every
internal import resolves to a file exporting the requested names, finds
files that were imported but never generated, and extracts the external
packages the project depends on.
"""

from codeweld.assembler.auto_fixer import ExportAutoFixer
from codeweld.assembler.collaborators import (
    FixProvider,
    FixRequest,
    MissingExport,
    MissingFileGenerator,
)
from codeweld.assembler.dependencies import DependencyExtractor
from codeweld.assembler.errors import (
    AssemblyError,
    AssemblyInputError,
    ConcurrentAssemblyError,
)
from codeweld.assembler.events import ProjectEventBus
from codeweld.assembler.file_set import VirtualFileSet
from codeweld.assembler.locks import ProjectLockRegistry
from codeweld.assembler.missing_files import MissingFileFinder
from codeweld.assembler.orchestrator import AssemblyInput, AssemblyOrchestrator
from codeweld.assembler.quick_validate import quick_validate
from codeweld.assembler.resolver import PathResolver
from codeweld.assembler.scanner import ModuleScanner
from codeweld.assembler.validator import ConsistencyValidator, ValidationReport

__all__ = [
    "AssemblyError",
    "AssemblyInput",
    "AssemblyInputError",
    "AssemblyOrchestrator",
    "ConcurrentAssemblyError",
    "ConsistencyValidator",
    "DependencyExtractor",
    "ExportAutoFixer",
    "FixProvider",
    "FixRequest",
    "MissingExport",
    "MissingFileFinder",
    "MissingFileGenerator",
    "ModuleScanner",
    "PathResolver",
    "ProjectEventBus",
    "ProjectLockRegistry",
    "ValidationReport",
    "VirtualFileSet",
    "quick_validate",
]
