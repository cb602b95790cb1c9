"""
Quick validation of a plain path -> content map.

Runs the consistency check once, with no work orders, phases or repair
passes. Useful as a cheap pre-check before handing files to a full run.
"""

import logging
from collections.abc import Mapping, Sequence

from codeweld.assembler.file_set import VirtualFileSet
from codeweld.assembler.resolver import PathResolver
from codeweld.assembler.tsconfig import load_path_aliases
from codeweld.assembler.validator import ConsistencyValidator
from codeweld.config.models import QuickValidationResult

logger = logging.getLogger(__name__)


def quick_validate(
    files: Mapping[str, str],
    aliases: Mapping[str, str] | None = None,
    extensions: Sequence[str] | None = None,
) -> QuickValidationResult:
    """
    Validate imports and exports of a file map.

    Args:
        files: Project-relative path -> file content
        aliases: Import prefix -> directory table. When None, the paths of a
            tsconfig.json in ``files`` are used, else ``{"@/": "src/"}``
        extensions: Source extensions tried during resolution

    Returns:
        QuickValidationResult; ``valid`` is False only for error diagnostics,
        and ``import_count`` counts alias and relative imports
    """
    snapshot = VirtualFileSet(files, strict_content=False).snapshot()
    if aliases is None:
        aliases = load_path_aliases(snapshot)
    validator = ConsistencyValidator(PathResolver(aliases, extensions))
    report = validator.validate(snapshot)

    logger.debug(
        f"Quick validation of {len(snapshot)} files: "
        f"{report.error_count} errors, {len(report.warnings)} warnings"
    )
    return QuickValidationResult(
        valid=report.error_count == 0,
        errors=report.diagnostics,
        file_count=len(snapshot),
        import_count=report.import_count,
    )
