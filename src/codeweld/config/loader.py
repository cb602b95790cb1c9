"""
Configuration loader for CodeWeld.

Handles loading configuration from YAML files and CLI arguments.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import (
    DEFAULT_ALIASES,
    DEFAULT_PHASES,
    DEFAULT_SOURCE_EXTENSIONS,
    AssemblyOptions,
    CodeWeldConfig,
    ProjectConfig,
    ResolverConfig,
)


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""

    pass


def parse_alias_args(values: list[str] | None) -> dict[str, str] | None:
    """Parse ``PREFIX=DIR`` pairs given on the command line."""
    if not values:
        return None

    aliases: dict[str, str] = {}
    for raw in values:
        if "=" not in raw:
            raise ConfigurationError(
                f"Invalid alias '{raw}'. Expected PREFIX=DIRECTORY (e.g. @/=src/)"
            )
        prefix, target = raw.split("=", 1)
        if not prefix:
            raise ConfigurationError(f"Invalid alias '{raw}': empty prefix")
        aliases[prefix] = target
    return aliases


def load_config_from_yaml(config_path: Path) -> CodeWeldConfig:
    """Load configuration from a YAML file."""
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

    if raw_config is None:
        raise ConfigurationError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ConfigurationError("Configuration file must contain a mapping")

    try:
        return CodeWeldConfig(**raw_config)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed:\n{e}")


def create_config_from_args(
    project_name: str | None = None,
    aliases: dict[str, str] | None = None,
    source_extensions: list[str] | None = None,
    max_validation_passes: int | None = None,
    phases: list[str] | None = None,
    **kwargs: Any,
) -> CodeWeldConfig:
    """Create configuration from CLI arguments."""
    try:
        resolver = ResolverConfig(
            aliases=aliases if aliases is not None else dict(DEFAULT_ALIASES),
            source_extensions=source_extensions or list(DEFAULT_SOURCE_EXTENSIONS),
            max_reexport_depth=kwargs.pop("max_reexport_depth", 1),
            # Aliases given on the command line win over tsconfig.json paths
            use_tsconfig_paths=kwargs.pop("use_tsconfig_paths", aliases is None),
        )

        assembly_overrides = {
            key: kwargs.pop(key)
            for key in list(kwargs)
            if key in AssemblyOptions.model_fields
        }
        if max_validation_passes is not None:
            assembly_overrides["max_validation_passes"] = max_validation_passes

        config_dict: dict[str, Any] = {
            "project": ProjectConfig(name=project_name or "codeweld_project"),
            "resolver": resolver,
            "assembly": AssemblyOptions(**assembly_overrides),
            "phases": phases or list(DEFAULT_PHASES),
        }
        if "log_level" in kwargs:
            config_dict["log_level"] = kwargs["log_level"]

        return CodeWeldConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed:\n{e}")


def override_config(
    config: CodeWeldConfig,
    aliases: dict[str, str] | None = None,
    max_validation_passes: int | None = None,
) -> CodeWeldConfig:
    """Apply CLI overrides to a loaded configuration, re-running validation."""
    data = config.model_dump()
    if aliases is not None:
        data["resolver"]["aliases"] = aliases
        data["resolver"]["use_tsconfig_paths"] = False
    if max_validation_passes is not None:
        data["assembly"]["max_validation_passes"] = max_validation_passes

    try:
        return CodeWeldConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed:\n{e}")


def generate_default_config(output_path: Path) -> None:
    """Generate a default configuration file."""
    default_config = {
        "project": {
            "name": "my_project",
        },
        "resolver": {
            "aliases": dict(DEFAULT_ALIASES),
            "source_extensions": list(DEFAULT_SOURCE_EXTENSIONS),
            "max_reexport_depth": 1,
            "use_tsconfig_paths": True,
        },
        "assembly": {
            "validate_imports": True,
            "validate_exports": True,
            "extract_dependencies": True,
            "generate_missing_files": True,
            "auto_fix_exports": True,
            "max_validation_passes": 3,
            "strict_content": True,
            "deduplicate_plurals": False,
        },
        "phases": list(DEFAULT_PHASES),
        "log_level": "INFO",
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)
