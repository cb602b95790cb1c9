"""
Missing File Finder for assembly.

Groups unresolved imports by their most specific expected location, so the
result can be handed to a file-generation step as a contract: which exports
the missing file must provide and who imports it.
"""

import logging
from collections.abc import Iterable

from codeweld.assembler.resolver import PathResolver
from codeweld.assembler.validator import UnresolvedImport
from codeweld.config.models import MissingFileInfo

logger = logging.getLogger(__name__)


class MissingFileFinder:
    """Aggregates unresolved imports into MissingFileInfo entries."""

    def __init__(self, resolver: PathResolver | None = None):
        self.resolver = resolver or PathResolver()

    def find(self, unresolved: Iterable[UnresolvedImport]) -> list[MissingFileInfo]:
        """Group by first candidate path, in first-seen order."""
        missing: dict[str, MissingFileInfo] = {}

        for item in unresolved:
            if not item.candidates:
                continue
            path = item.candidates[0]

            info = missing.get(path)
            if info is None:
                info = MissingFileInfo(
                    path=path,
                    suggested_path=self.resolver.suggested_path(path),
                )
                missing[path] = info

            for name in item.requested_exports:
                if name not in info.required_exports:
                    info.required_exports.append(name)
            if item.file not in info.imported_by:
                info.imported_by.append(item.file)

        if missing:
            logger.info(f"Found {len(missing)} missing files")
        return list(missing.values())
