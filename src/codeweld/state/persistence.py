"""
State persistence layer for CodeWeld.

Loads work orders and project trees from disk and saves assembly results.
The engine itself never touches the filesystem; this is the outer surface
the CLI (or any other caller) uses around it.
"""

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import orjson
import yaml
from pydantic import ValidationError

from codeweld.assembler.errors import AssemblyInputError
from codeweld.assembler.file_set import canonical_path
from codeweld.assembler.tsconfig import CONFIG_FILES
from codeweld.config.models import AssemblyResult, WorkOrder

logger = logging.getLogger(__name__)

SKIPPED_DIRECTORIES = frozenset({"node_modules", ".git", ".next", "dist", "build", ".turbo"})

_YAML_SUFFIXES = (".yaml", ".yml")


def _read_structured(path: Path) -> Any:
    if path.suffix.lower() in _YAML_SUFFIXES:
        with open(path) as f:
            try:
                return yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise AssemblyInputError(f"Invalid YAML in {path}: {e}")

    with open(path, "rb") as f:
        try:
            return orjson.loads(f.read())
        except orjson.JSONDecodeError as e:
            raise AssemblyInputError(f"Invalid JSON in {path}: {e}")


def load_work_orders(path: Path) -> list[WorkOrder]:
    """
    Load work orders from a JSON or YAML file.

    The file holds either a list of work orders or a mapping with a
    ``work_orders`` list.

    Raises:
        AssemblyInputError: If the file cannot be parsed or a work order is invalid
    """
    data = _read_structured(path)
    if isinstance(data, dict):
        data = data.get("work_orders")
    if not isinstance(data, list):
        raise AssemblyInputError(f"{path} must contain a list of work orders")

    work_orders = []
    for index, raw in enumerate(data):
        try:
            work_orders.append(WorkOrder.model_validate(raw))
        except ValidationError as e:
            raise AssemblyInputError(f"Invalid work order #{index} in {path}:\n{e}")

    logger.info(f"Loaded {len(work_orders)} work orders from {path}")
    return work_orders


def load_directory(
    root: Path,
    extensions: Iterable[str] | None = None,
    always_include: Iterable[str] = CONFIG_FILES,
) -> dict[str, str]:
    """
    Read a project tree into a path -> content map.

    Args:
        root: Project root; keys are relative to it, with ``/`` separators
        extensions: Only files with these suffixes are read (all when None)
        always_include: Relative paths read whatever their suffix (tsconfig.json)

    Returns:
        Files in sorted path order. Dependency and build directories are
        skipped, and files that are not UTF-8 text are left out.
    """
    suffixes = tuple(extensions) if extensions else None
    included = set(always_include)
    files: dict[str, str] = {}

    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if any(part in SKIPPED_DIRECTORIES for part in relative.parts):
            continue
        if not path.is_file():
            continue
        if suffixes and not path.name.endswith(suffixes) and relative.as_posix() not in included:
            continue
        try:
            files[canonical_path(relative.as_posix())] = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Skipping non-text file {relative}")

    logger.info(f"Loaded {len(files)} files from {root}")
    return files


def save_assembly_result(result: AssemblyResult, output_path: Path) -> Path:
    """
    Save an assembly result as JSON.

    Returns:
        Path to the saved file
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "wb") as f:
        f.write(orjson.dumps(
            result.model_dump(mode="json"),
            option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS
        ))
    return output_path


def load_assembly_result(path: Path) -> AssemblyResult:
    """Load a result previously written by save_assembly_result."""
    with open(path, "rb") as f:
        return AssemblyResult.model_validate(orjson.loads(f.read()))


def write_files(files: dict[str, str], output_dir: Path) -> list[Path]:
    """
    Write an assembled file map below ``output_dir``.

    Raises:
        AssemblyInputError: If a path would escape the output directory
    """
    base = output_dir.resolve()

    # Every target is checked before anything is written
    targets: list[tuple[Path, str]] = []
    for relative, content in files.items():
        target = (base / canonical_path(relative)).resolve()
        if not target.is_relative_to(base):
            raise AssemblyInputError(f"Refusing to write outside {output_dir}", path=relative)
        targets.append((target, content))

    written = []
    for target, content in targets:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        written.append(target)

    logger.info(f"Wrote {len(written)} files to {output_dir}")
    return written
