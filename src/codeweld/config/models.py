"""
Core configuration and data models for CodeWeld.

Defines configuration structures and the work-order / assembly result
records using Pydantic for validation.
"""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class FileAction(str, Enum):
    """Operation a work order performs on a single file."""

    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


class Severity(str, Enum):
    """Diagnostic severity levels."""

    ERROR = "error"  # Blocks success
    WARNING = "warning"  # Reported only


class PhaseStatus(str, Enum):
    """Outcome of a single assembly phase."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


DEFAULT_ALIASES: dict[str, str] = {"@/": "src/"}

DEFAULT_SOURCE_EXTENSIONS: list[str] = [".ts", ".tsx", ".js", ".jsx"]

DEFAULT_PHASES: list[str] = [
    "scaffold",
    "models",
    "services",
    "components",
    "pages",
    "integration",
]


# ============================================================================
# Resolver Configuration
# ============================================================================


class ResolverConfig(BaseModel):
    """Configuration for module path resolution and scanning."""

    aliases: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_ALIASES),
        description="Import prefix to project directory mapping",
    )
    source_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SOURCE_EXTENSIONS),
        description="Extensions tried (in order) when resolving an import",
    )
    max_reexport_depth: int = Field(
        default=1,
        ge=1,
        le=16,
        description="How far 'export * from' chains are followed (1 = no following)",
    )
    use_tsconfig_paths: bool = Field(
        default=True,
        description="Prefer compilerOptions.paths of the project's tsconfig.json over 'aliases'",
    )

    @field_validator("source_extensions")
    @classmethod
    def _dotted_extensions(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one source extension is required")
        return [ext if ext.startswith(".") else f".{ext}" for ext in value]

    @field_validator("aliases")
    @classmethod
    def _non_empty_prefixes(cls, value: dict[str, str]) -> dict[str, str]:
        for prefix in value:
            if not prefix:
                raise ValueError("alias prefixes must be non-empty")
            if prefix.startswith("."):
                raise ValueError(f"alias prefix '{prefix}' collides with relative imports")
        return value


# ============================================================================
# Assembly Configuration
# ============================================================================


class AssemblyOptions(BaseModel):
    """Options controlling a single assembly run."""

    validate_imports: bool = Field(default=True, description="Report unresolved imports")
    validate_exports: bool = Field(
        default=True, description="Cross-check named imports against target exports"
    )
    extract_dependencies: bool = Field(
        default=True, description="Collect external package names"
    )
    generate_missing_files: bool = Field(
        default=True, description="Ask the missing-file generator for unresolved targets"
    )
    auto_fix_exports: bool = Field(
        default=True,
        description="Apply deterministic export fixes when no fix provider is given",
    )
    max_validation_passes: int = Field(
        default=3, ge=1, description="Upper bound on detect/fix/re-detect passes"
    )
    strict_content: bool = Field(
        default=True,
        description="Reject create/modify operations that carry no content",
    )
    deduplicate_plurals: bool = Field(
        default=False,
        description="After the apply phases, delete plural-named modules that have a singular sibling",
    )


class ProjectConfig(BaseModel):
    """Overall project configuration."""

    name: str = Field(default="codeweld_project", description="Project name")


# ============================================================================
# Main Configuration
# ============================================================================


class CodeWeldConfig(BaseModel):
    """Root configuration model for CodeWeld."""

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    assembly: AssemblyOptions = Field(default_factory=AssemblyOptions)
    phases: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PHASES),
        description="Ordered phase labels work orders are grouped under",
    )
    log_level: str = Field(default="INFO", description="Root logging level for the CLI")

    @field_validator("phases")
    @classmethod
    def _unique_phases(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("phase labels must be unique")
        return value


# ============================================================================
# Work Order Models
# ============================================================================


class WorkOrderFile(BaseModel):
    """A single file operation inside a work order."""

    path: str = Field(description="Project-relative file path")
    action: FileAction
    content: str | None = None
    description: str | None = None


class WorkOrder(BaseModel):
    """A batch of file operations produced by one generation step."""

    id: str
    title: str = ""
    description: str = ""
    files: list[WorkOrderFile] = Field(default_factory=list)
    order: int | None = Field(default=None, description="Ascending application order")
    phase: str | None = Field(default=None, description="Phase label this work order belongs to")
    dependencies: list[str] = Field(
        default_factory=list, description="IDs of work orders this one builds on"
    )


# ============================================================================
# Diagnostics and Results
# ============================================================================


class Diagnostic(BaseModel):
    """A structural problem found in the assembled file set."""

    file: str
    line: int = Field(default=0, description="1-based line, 0 for file-level problems")
    message: str
    severity: Severity
    fixable: bool = False

    def key(self) -> tuple[str, int, str, str]:
        """Identity used to compare diagnostics across validation passes."""
        return (self.file, self.line, self.message, self.severity.value)


class MissingFileInfo(BaseModel):
    """A path that is imported but never produced, with its generation contract."""

    path: str = Field(description="Most specific expected location (first candidate)")
    suggested_path: str = Field(description="Path a generator should write, with extension")
    required_exports: list[str] = Field(default_factory=list)
    imported_by: list[str] = Field(default_factory=list)


class PhaseResult(BaseModel):
    """Result of one orchestrator phase."""

    phase: str
    status: PhaseStatus
    files_processed: int = 0
    errors: list[Diagnostic] = Field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.errors if d.severity == Severity.ERROR)


class AssemblyStats(BaseModel):
    """Counters accumulated over an assembly run."""

    total_files: int = 0
    files_created: int = 0
    files_modified: int = 0
    files_deleted: int = 0
    missing_files_generated: int = 0
    validation_passes: int = 0
    errors_fixed: int = 0
    time_ms: float = 0.0


class AssemblyResult(BaseModel):
    """Return value of a full assembly run."""

    success: bool
    project_id: str
    files: dict[str, str] = Field(default_factory=dict)
    dependencies: list[str] = Field(default_factory=list)
    validation_errors: list[Diagnostic] = Field(default_factory=list)
    stats: AssemblyStats = Field(default_factory=AssemblyStats)
    phases: list[PhaseResult] = Field(default_factory=list)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.validation_errors if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.validation_errors if d.severity == Severity.WARNING]


class QuickValidationResult(BaseModel):
    """Result of a fast pre-check over a plain path to content map."""

    valid: bool
    errors: list[Diagnostic] = Field(default_factory=list)
    file_count: int = 0
    import_count: int = 0
