"""
CodeWeld CLI - Main entry point.

Provides commands for assembling AI-generated work orders into a consistent
project and for checking existing project trees.
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from codeweld.assembler import (
    AssemblyError,
    AssemblyInput,
    AssemblyOrchestrator,
    ConsistencyValidator,
    DependencyExtractor,
    quick_validate,
)
from codeweld.assembler.events import (
    AssemblyEvent,
    DependencyExtractedEvent,
    ErrorEvent,
    PhaseCompleteEvent,
    PhaseStartEvent,
    ValidationPassEvent,
)
from codeweld.config.loader import (
    ConfigurationError,
    create_config_from_args,
    generate_default_config,
    load_config_from_yaml,
    override_config,
    parse_alias_args,
)
from codeweld.config.models import AssemblyResult, CodeWeldConfig, Diagnostic, Severity
from codeweld.state.persistence import (
    load_directory,
    load_work_orders,
    save_assembly_result,
    write_files,
)

app = typer.Typer(
    name="codeweld",
    help="Assemble AI-generated work orders into an internally consistent project",
    no_args_is_help=True,
)

console = Console()


# =============================================================================
# Helper Functions
# =============================================================================


def setup_logging(level: str, verbose: bool = False):
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, format="%(name)s: %(message)s")


def validate_path(path: str, must_exist: bool = True) -> Path:
    """Validate and return a Path object."""
    p = Path(path)
    if must_exist and not p.exists():
        raise typer.BadParameter(f"Path does not exist: {path}")
    return p


def resolve_config(
    config: Optional[str],
    alias: Optional[List[str]],
    project_name: Optional[str] = None,
    max_passes: Optional[int] = None,
) -> CodeWeldConfig:
    """Load the YAML config when given, otherwise build one from CLI options."""
    aliases = parse_alias_args(alias)
    if config:
        return override_config(
            load_config_from_yaml(Path(config)),
            aliases=aliases,
            max_validation_passes=max_passes,
        )
    return create_config_from_args(
        project_name=project_name,
        aliases=aliases,
        max_validation_passes=max_passes,
    )


def print_event(event: AssemblyEvent):
    """Render orchestrator progress events."""
    if isinstance(event, PhaseStartEvent):
        console.print(f"[cyan]▶ {event.phase}[/cyan]")
    elif isinstance(event, PhaseCompleteEvent):
        color = {"success": "green", "partial": "yellow"}.get(event.status.value, "red")
        console.print(f"  [{color}]{event.status.value}[/{color}]")
    elif isinstance(event, DependencyExtractedEvent):
        console.print(f"  {event.count} dependencies")
    elif isinstance(event, ValidationPassEvent):
        console.print(
            f"  pass {event.pass_number}: {event.errors} errors, {event.warnings} warnings"
        )
    elif isinstance(event, ErrorEvent):
        console.print(f"  [red]{event.message}[/red]")


def diagnostics_table(diagnostics: list[Diagnostic], title: str = "Diagnostics") -> Table:
    table = Table(title=title)
    table.add_column("Severity", justify="center")
    table.add_column("File", style="cyan")
    table.add_column("Line", justify="right")
    table.add_column("Message")

    for d in diagnostics:
        color = "red" if d.severity == Severity.ERROR else "yellow"
        table.add_row(f"[{color}]{d.severity.value}[/{color}]", d.file, str(d.line), d.message)
    return table


def display_result(result: AssemblyResult):
    """Display an assembly result summary."""
    stats = result.stats
    status = "[bold green]success[/bold green]" if result.success else "[bold red]failed[/bold red]"
    info_text = f"""
[bold cyan]Project:[/bold cyan] {result.project_id}
[bold cyan]Status:[/bold cyan] {status}
[bold cyan]Files:[/bold cyan] {stats.total_files} ({stats.files_created} created, {stats.files_modified} modified, {stats.files_deleted} deleted)
[bold cyan]Validation passes:[/bold cyan] {stats.validation_passes} ({stats.errors_fixed} errors fixed)
[bold cyan]Dependencies:[/bold cyan] {", ".join(result.dependencies) or "none"}
[bold cyan]Time:[/bold cyan] {stats.time_ms:.0f}ms
    """
    console.print(Panel(
        info_text.strip(),
        title="Assembly Result",
        border_style="bold green" if result.success else "bold red",
    ))

    if result.validation_errors:
        console.print(diagnostics_table(result.validation_errors))


# =============================================================================
# Commands
# =============================================================================


@app.command()
def assemble(
    work_orders: str = typer.Argument(..., help="JSON or YAML file containing work orders"),
    project_id: str = typer.Option("local", "--project-id", "-p", help="Project identifier"),
    existing: Optional[str] = typer.Option(None, "--existing", "-e", help="Directory with files to seed the assembly"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to configuration YAML file"),
    alias: Optional[List[str]] = typer.Option(None, "--alias", "-a", help="Import alias PREFIX=DIR (repeatable)"),
    max_passes: Optional[int] = typer.Option(None, "--max-passes", help="Maximum validation passes"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the assembled files to this directory"),
    result_file: Optional[str] = typer.Option(None, "--result", "-r", help="Save the assembly result as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Assemble work orders into a project and validate it.

    Examples:
        codeweld assemble work_orders.json -o ./generated
        codeweld assemble orders.yaml --existing ./app -a "@/=src/" -r result.json
    """
    try:
        cfg = resolve_config(config, alias, project_name=project_id, max_passes=max_passes)
        setup_logging(cfg.log_level, verbose)

        orders = load_work_orders(validate_path(work_orders))
        existing_files = (
            load_directory(validate_path(existing), cfg.resolver.source_extensions)
            if existing
            else {}
        )

        orchestrator = AssemblyOrchestrator(cfg, on_event=print_event)
        result = orchestrator.assemble(AssemblyInput(
            project_id=project_id,
            project_name=cfg.project.name,
            work_orders=orders,
            existing_files=existing_files,
        ))

        display_result(result)

        if output:
            written = write_files(result.files, Path(output))
            console.print(f"\n[green]✓[/green] Wrote {len(written)} files to {output}")
        if result_file:
            save_assembly_result(result, Path(result_file))
            console.print(f"[green]✓[/green] Result saved to {result_file}")

        if not result.success:
            raise typer.Exit(1)

    except ConfigurationError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        raise typer.Exit(1)
    except (AssemblyError, OSError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(1)


@app.command()
def validate(
    project_dir: str = typer.Argument(..., help="Project directory to validate"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to configuration YAML file"),
    alias: Optional[List[str]] = typer.Option(None, "--alias", "-a", help="Import alias PREFIX=DIR (repeatable)"),
    warnings: bool = typer.Option(True, "--warnings/--no-warnings", help="Show unresolved-import warnings"),
):
    """
    Quick-validate imports and exports of an existing project tree.

    Exits with status 1 when any named import is missing from its target.
    """
    try:
        cfg = resolve_config(config, alias)
        setup_logging(cfg.log_level)

        files = load_directory(validate_path(project_dir), cfg.resolver.source_extensions)
        resolver = AssemblyOrchestrator(cfg).resolver_for(files=files)
        result = quick_validate(files, resolver.aliases, resolver.extensions)

        shown = [
            d for d in result.errors
            if warnings or d.severity == Severity.ERROR
        ]
        if shown:
            console.print(diagnostics_table(shown))

        error_count = sum(1 for d in result.errors if d.severity == Severity.ERROR)
        summary = f"{result.file_count} files, {result.import_count} internal imports, {error_count} errors"
        if result.valid:
            console.print(f"\n[green]✓[/green] Valid: {summary}")
        else:
            console.print(f"\n[red]✗[/red] Invalid: {summary}")
            raise typer.Exit(1)

    except ConfigurationError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def missing(
    project_dir: str = typer.Argument(..., help="Project directory to scan"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to configuration YAML file"),
    alias: Optional[List[str]] = typer.Option(None, "--alias", "-a", help="Import alias PREFIX=DIR (repeatable)"),
):
    """
    List files that are imported but do not exist.
    """
    try:
        cfg = resolve_config(config, alias)
        setup_logging(cfg.log_level)

        files = load_directory(validate_path(project_dir), cfg.resolver.source_extensions)
        missing_files = AssemblyOrchestrator(cfg).find_missing_files(files)

        if not missing_files:
            console.print("[green]✓[/green] No missing files")
            return

        table = Table(title="Missing Files")
        table.add_column("Path", style="cyan")
        table.add_column("Required Exports")
        table.add_column("Imported By")
        for info in missing_files:
            table.add_row(
                info.suggested_path,
                ", ".join(info.required_exports) or "-",
                "\n".join(info.imported_by),
            )
        console.print(table)

    except ConfigurationError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def deps(
    project_dir: str = typer.Argument(..., help="Project directory to scan"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to configuration YAML file"),
    alias: Optional[List[str]] = typer.Option(None, "--alias", "-a", help="Import alias PREFIX=DIR (repeatable)"),
):
    """
    List the external packages a project imports.
    """
    try:
        cfg = resolve_config(config, alias)
        setup_logging(cfg.log_level)

        files = load_directory(validate_path(project_dir), cfg.resolver.source_extensions)
        orchestrator = AssemblyOrchestrator(cfg)
        resolver = orchestrator.resolver_for(files=files)
        modules = ConsistencyValidator(resolver).scan_all(files)
        packages = DependencyExtractor(resolver).extract(modules)

        for package in packages:
            console.print(package)
        if not packages:
            console.print("[yellow]No external dependencies found[/yellow]")

    except ConfigurationError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def init(
    output: str = typer.Option("./codeweld.yaml", "--output", "-o", help="Output path for config file"),
):
    """
    Generate a default configuration file.

    Creates a codeweld.yaml with sensible defaults that you can customize.
    """
    output_path = Path(output)

    if output_path.exists():
        if not typer.confirm(f"{output} already exists. Overwrite?"):
            console.print("[yellow]Cancelled.[/yellow]")
            raise typer.Abort()

    generate_default_config(output_path)
    console.print(f"[green]✓[/green] Generated configuration file: {output}")
    console.print("\nEdit this file to set your import aliases and assembly phases.")


# =============================================================================
# Entry Point
# =============================================================================


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
