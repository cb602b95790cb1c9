"""
Dependency Extractor for assembly.

Collects the distinct external packages a generated project imports.
Purely syntactic: no versions, no registry lookups.
"""

import logging
from collections.abc import Mapping

from codeweld.assembler.resolver import PathResolver, package_root
from codeweld.assembler.scanner import ModuleInfo

logger = logging.getLogger(__name__)


class DependencyExtractor:
    """Extracts root package names from external import and re-export sources."""

    def __init__(self, resolver: PathResolver | None = None):
        self.resolver = resolver or PathResolver()

    def extract(self, modules: Mapping[str, ModuleInfo]) -> list[str]:
        """Return sorted, de-duplicated root package names."""
        packages: set[str] = set()

        for module in modules.values():
            sources = [imp.source for imp in module.imports]
            sources.extend(r.source for r in module.reexports)
            for source in sources:
                if not self.resolver.is_external(source):
                    continue
                root = package_root(source)
                if root:
                    packages.add(root)

        logger.debug(f"Extracted {len(packages)} external dependencies")
        return sorted(packages)
