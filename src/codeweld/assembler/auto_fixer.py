"""
Deterministic export fixer.

Generated files often define a helper and only ``export default`` it, while
a sibling file imports the helper by name. When the target defines the name
locally, appending a named export list is enough to satisfy the import.
"""

import logging
import re

from codeweld.assembler.collaborators import FixProvider, FixRequest
from codeweld.assembler.scanner import ModuleScanner
from codeweld.config.models import FileAction, WorkOrder, WorkOrderFile

logger = logging.getLogger(__name__)

_NAMED_EXPORT_LIST_RE = re.compile(r"^[ \t]*export\s*\{", re.MULTILINE)


def _defines(content: str, name: str) -> bool:
    pattern = re.compile(
        rf"(?:(?:async\s+)?function\*?|const|let|var|class)\s+{re.escape(name)}\b"
    )
    return pattern.search(content) is not None


class ExportAutoFixer(FixProvider):
    """Appends ``export { ... }`` to default-exporting files that define the names."""

    def __init__(self, scanner: ModuleScanner | None = None):
        self.scanner = scanner or ModuleScanner()

    def generate_fixes(self, request: FixRequest) -> list[WorkOrder]:
        operations: list[WorkOrderFile] = []

        for target, names in request.missing_by_target().items():
            content = request.files.get(target)
            if content is None:
                continue
            exports = self.scanner.scan_exports(content)
            # ES export lists cannot be appended to a CommonJS module
            if not exports.has_default or exports.commonjs:
                continue
            # An existing export list may be partial; editing it is left to a real fixer
            if _NAMED_EXPORT_LIST_RE.search(content):
                continue

            defined = [name for name in names if _defines(content, name)]
            if not defined:
                continue

            operations.append(WorkOrderFile(
                path=target,
                action=FileAction.MODIFY,
                content=f"{content.rstrip()}\n\nexport {{ {', '.join(defined)} }}\n",
                description=f"Export {', '.join(defined)} by name",
            ))
            logger.info(f"Auto-fix: exporting {', '.join(defined)} from {target}")

        if not operations:
            return []

        return [WorkOrder(
            id=f"autofix-exports-pass-{request.pass_number}",
            title="Add missing named exports",
            description="Export locally defined names that were only default-exported",
            files=operations,
        )]
