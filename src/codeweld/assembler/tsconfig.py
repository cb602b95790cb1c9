"""
Import aliases from a project's tsconfig.json / jsconfig.json.

``compilerOptions.paths`` entries such as ``"~/*": ["./app/*"]`` become the
prefix table the resolver uses (``{"~/": "app/"}``). Only the first target
of each entry is used, and ``baseUrl`` is prepended when set.
"""

import logging
import posixpath
import re
from collections.abc import Mapping

import orjson

logger = logging.getLogger(__name__)

CONFIG_FILES = ("tsconfig.json", "jsconfig.json")

# String literals are matched first so '//' and '/*' inside them survive
_COMMENT_RE = re.compile(r'("(?:\\.|[^"\\])*")|/\*.*?\*/|//[^\n]*', re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r'("(?:\\.|[^"\\])*")|,(?=\s*[}\]])')


def _strip_jsonc(text: str) -> str:
    """Drop comments and trailing commas, which tsconfig files allow."""
    text = _COMMENT_RE.sub(lambda m: m.group(1) or "", text)
    return _TRAILING_COMMA_RE.sub(lambda m: m.group(1) or "", text)


def _clean_target(target: str, base_url: str) -> str:
    target = target.removesuffix("*").removeprefix("./")
    return posixpath.join(base_url, target) if base_url else target


def parse_path_aliases(text: str) -> dict[str, str]:
    """Alias table from the text of a tsconfig file.

    Raises:
        ValueError: If the text is not a JSON object once comments are removed
    """
    try:
        data = orjson.loads(_strip_jsonc(text))
    except orjson.JSONDecodeError as e:
        raise ValueError(f"Invalid tsconfig JSON: {e}")
    if not isinstance(data, dict):
        raise ValueError("tsconfig must contain a JSON object")

    options = data.get("compilerOptions")
    options = options if isinstance(options, dict) else {}
    paths = options.get("paths")
    paths = paths if isinstance(paths, dict) else {}
    base_url = posixpath.normpath(str(options.get("baseUrl") or "."))
    if base_url == ".":
        base_url = ""

    aliases: dict[str, str] = {}
    for pattern, targets in paths.items():
        if not isinstance(targets, list) or not targets or not isinstance(targets[0], str):
            continue
        prefix = pattern.removesuffix("*")
        if not prefix or prefix.startswith("."):
            logger.debug(f"Ignoring tsconfig path pattern {pattern!r}")
            continue
        aliases[prefix] = _clean_target(targets[0], base_url)
    return aliases


def load_path_aliases(files: Mapping[str, str]) -> dict[str, str] | None:
    """Alias table of the root tsconfig.json (or jsconfig.json) in a snapshot.

    Returns None when no config file is present, it cannot be parsed, or it
    declares no usable paths, so the caller falls back to its own aliases.
    """
    for name in CONFIG_FILES:
        text = files.get(name)
        if text is None:
            continue
        try:
            aliases = parse_path_aliases(text)
        except ValueError as e:
            logger.warning(f"Ignoring {name}: {e}")
            return None
        if aliases:
            logger.debug(f"Loaded {len(aliases)} path aliases from {name}")
            return aliases
        return None
    return None
