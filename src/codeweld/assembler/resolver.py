"""
Path Resolver for assembly validation.

Turns a raw import source plus the importing file's path into an ordered
list of candidate project paths. Alias prefixes are substituted with their
target directory; relative sources are normalized against the importer's
directory. Anything else is an external package and is never resolved
against the file set.
"""

import logging
import posixpath
from collections.abc import Container, Mapping, Sequence
from enum import Enum

from codeweld.config.models import DEFAULT_ALIASES, DEFAULT_SOURCE_EXTENSIONS

logger = logging.getLogger(__name__)

INDEX_BASENAME = "index"

# Imports of these are taken literally when suggesting a path to generate
_ASSET_EXTENSIONS = (
    ".css", ".scss", ".sass", ".less", ".json", ".svg",
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".md",
)


class SourceKind(str, Enum):
    """How an import source string is interpreted."""

    ALIAS = "alias"
    RELATIVE = "relative"
    EXTERNAL = "external"


def is_relative_source(source: str) -> bool:
    return source in (".", "..") or source.startswith(("./", "../"))


def package_root(source: str) -> str:
    """Root package name of an external source.

    Examples:
        "lodash/fp" -> "lodash"
        "@tanstack/react-query/devtools" -> "@tanstack/react-query"
    """
    parts = source.split("/")
    if source.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def _normalize(path: str) -> str:
    normalized = posixpath.normpath(path) if path else path
    if normalized == ".":
        return ""
    return normalized


class PathResolver:
    """Resolves import sources to candidate canonical paths.

    Candidate order is fixed, most specific first:
    ``base, base+ext..., base/index+ext...`` for each configured extension.
    The first candidate present in the file set wins, which keeps resolution
    deterministic when both ``foo.ts`` and ``foo/index.ts`` exist.
    """

    def __init__(
        self,
        aliases: Mapping[str, str] | None = None,
        extensions: Sequence[str] | None = None,
    ):
        self.aliases = dict(aliases if aliases is not None else DEFAULT_ALIASES)
        self.extensions = tuple(extensions or DEFAULT_SOURCE_EXTENSIONS)
        # Longest prefix first so "@/components/" beats "@/"
        self._prefixes = sorted(self.aliases, key=len, reverse=True)

    def classify(self, source: str) -> SourceKind:
        if is_relative_source(source):
            return SourceKind.RELATIVE
        if self._match_alias(source) is not None:
            return SourceKind.ALIAS
        return SourceKind.EXTERNAL

    def is_external(self, source: str) -> bool:
        return self.classify(source) == SourceKind.EXTERNAL

    def _match_alias(self, source: str) -> str | None:
        for prefix in self._prefixes:
            if source.startswith(prefix):
                return prefix
        return None

    def resolve_base(self, source: str, from_file: str) -> str | None:
        """Project path the source points at, before extension fallbacks."""
        if is_relative_source(source):
            from_dir = posixpath.dirname(from_file)
            return _normalize(posixpath.join(from_dir, source))

        prefix = self._match_alias(source)
        if prefix is None:
            return None
        return _normalize(self.aliases[prefix] + source[len(prefix):])

    def candidates(self, source: str, from_file: str) -> list[str]:
        """Ordered candidate paths for a source; empty for external packages."""
        base = self.resolve_base(source, from_file)
        if base is None:
            return []

        candidates = [base] if base else []
        candidates.extend(base + ext for ext in self.extensions)
        index_base = posixpath.join(base, INDEX_BASENAME) if base else INDEX_BASENAME
        candidates.extend(index_base + ext for ext in self.extensions)
        return candidates

    def resolve(
        self, source: str, from_file: str, available: Container[str]
    ) -> str | None:
        """First candidate present in ``available``, or None."""
        for candidate in self.candidates(source, from_file):
            if candidate in available:
                return candidate
        return None

    def suggested_path(self, path: str) -> str:
        """Path a generator should write for a missing first candidate."""
        if path.endswith(self.extensions + _ASSET_EXTENSIONS):
            return path
        return path + self.extensions[0]
