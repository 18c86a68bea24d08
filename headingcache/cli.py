"""Command Line Interface for the Heading-Cache.

Operator commands for discovery reconciliation and patient status. The CLI
uses the configured document store; set HC_DB_TYPE=duckdb and HC_DB_PATH so
that state persists between invocations.

Security Impact:
    - All commands validate inputs before any mutation
    - Reconciliation changes are listed from the audit trail after each run
"""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from headingcache.domain.ports import HeadingCacheError
from headingcache.domain.validation import validate_source_id
from headingcache.infrastructure.logging_config import setup_logging
from headingcache.infrastructure.settings import settings

app = typer.Typer(
    name="headingcache",
    help="Heading-Cache: patient record cache and discovery reconciliation",
    add_completion=False
)
console = Console()


def create_core_cli():
    """Create the core from configuration (CLI wrapper)."""
    try:
        from headingcache.main import create_core
        return create_core(settings.config_manager)
    except Exception as e:
        console.print(f"[red]✗[/red] Failed to create heading cache: {str(e)}")
        raise typer.Exit(code=1)


def _print_revert_results(results: list[dict]) -> None:
    if not results:
        console.print("[yellow]⚠[/yellow] Nothing to revert")
        return

    table = Table(title="Reverted records")
    table.add_column("Source ID")
    table.add_column("Patient ID")
    table.add_column("Heading")
    table.add_column("Host")
    table.add_column("Deleted")
    for result in results:
        table.add_row(
            result["sourceId"],
            str(result["patientId"]),
            result["heading"],
            result["host"],
            "yes" if result["deleted"] else "no"
        )
    console.print(table)


@app.command()
def merge(
    patient_id: str = typer.Argument(..., help="Patient identifier (numeric)"),
    heading: str = typer.Argument(..., help="Heading name, or 'finished' to mark the patient ready"),
    input_file: Optional[Path] = typer.Argument(None, help="JSON file with a list of discovery records", exists=True),
    host: Optional[str] = typer.Option(None, "--host", "-H", help="Origin host (defaults to HC_DEFAULT_HOST)"),
) -> None:
    """Merge discovery records for a patient's heading.

    Examples:
        headingcache merge 9999999000 procedures discovery.json
        headingcache merge 9999999000 finished
    """
    records: list = []
    if input_file is not None:
        try:
            records = json.loads(input_file.read_text())
        except json.JSONDecodeError as e:
            console.print(f"[red]✗[/red] Invalid JSON in {input_file}: {str(e)}")
            raise typer.Exit(code=1)
        if not isinstance(records, list):
            console.print("[red]✗[/red] Discovery file must contain a JSON list")
            raise typer.Exit(code=1)

    core = create_core_cli()
    try:
        result = core.merge_discovery_data(patient_id, heading, records, host=host)
    except HeadingCacheError as e:
        console.print(f"[red]✗[/red] Merge failed: {str(e)}")
        raise typer.Exit(code=1)
    finally:
        core.close()

    merged = [log for log in core.audit_logger.get_logs() if log["entity"] == "discovery_link"]
    console.print(f"[green]✓[/green] refresh: {str(result['refresh']).lower()}")
    console.print(f"[dim]Links created:[/dim] {len(merged)}")


@app.command()
def revert(
    patient_id: str = typer.Argument(..., help="Patient identifier (numeric)"),
    heading: str = typer.Argument(..., help="Heading name"),
) -> None:
    """Revert every discovery merge for a patient's heading."""
    core = create_core_cli()
    try:
        results = core.revert_discovery_data(patient_id, heading)
    except HeadingCacheError as e:
        console.print(f"[red]✗[/red] Revert failed: {str(e)}")
        raise typer.Exit(code=1)
    finally:
        core.close()

    _print_revert_results(results)


@app.command("revert-all")
def revert_all(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Revert every discovery merge for every patient."""
    if not yes:
        typer.confirm("Revert all discovery data?", abort=True)

    core = create_core_cli()
    try:
        results = core.revert_all_discovery_data()
    except HeadingCacheError as e:
        console.print(f"[red]✗[/red] Revert failed: {str(e)}")
        raise typer.Exit(code=1)
    finally:
        core.close()

    _print_revert_results(results)


@app.command()
def status(
    patient_id: str = typer.Argument(..., help="Patient identifier (numeric)"),
    check: bool = typer.Option(False, "--check", help="Bump requestNo as a client poll would"),
) -> None:
    """Show a patient's load status."""
    core = create_core_cli()
    try:
        if check:
            state = core.status_check(patient_id)
        else:
            record = core.status_service.get(patient_id)
            state = record.to_document() if record is not None else None
    except HeadingCacheError as e:
        console.print(f"[red]✗[/red] Status failed: {str(e)}")
        raise typer.Exit(code=1)
    finally:
        core.close()

    if state is None:
        console.print(f"[yellow]⚠[/yellow] No status recorded for patient {patient_id}")
        raise typer.Exit(code=1)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_row("Status:", state["status"])
    table.add_row("New patient:", "yes" if state["new_patient"] else "no")
    table.add_row("Request no:", str(state["requestNo"]))
    console.print(table)


@app.command()
def show(
    source_id: str = typer.Argument(..., help="Record source id"),
) -> None:
    """Show a cached record and its discovery link."""
    try:
        validate_source_id(source_id)
    except HeadingCacheError as e:
        console.print(f"[red]✗[/red] {str(e)}")
        raise typer.Exit(code=1)

    core = create_core_cli()
    try:
        record = core.heading_cache.get(source_id)
        link = core.links.get_by_source_id(source_id)
        versions = core.heading_cache.by_version.get_all_versions(source_id)
    except HeadingCacheError as e:
        console.print(f"[red]✗[/red] Lookup failed: {str(e)}")
        raise typer.Exit(code=1)
    finally:
        core.close()

    if record is None:
        console.print(f"[yellow]⚠[/yellow] No record cached for {source_id}")
        raise typer.Exit(code=1)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_row("Source ID:", record.source_id)
    table.add_row("Patient ID:", str(record.patient_id))
    table.add_row("Heading:", record.heading)
    table.add_row("Host:", record.host)
    table.add_row("Date:", str(record.date))
    table.add_row("Versions:", ", ".join(str(v) for v in versions))
    table.add_row("Discovery ID:", link.discovery if link is not None else "-")
    console.print(table)
    console.print_json(json.dumps(record.payload))


@app.command()
def info() -> None:
    """Display configuration."""
    console.print("[bold blue]Heading-Cache[/bold blue]\n")

    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_row("Application:", f"{settings.app_name} v{settings.app_version}")
    info_table.add_row("Database Type:", settings.db_config.db_type)
    if settings.db_config.db_type == "duckdb":
        info_table.add_row("Database Path:", settings.get_db_path())
    info_table.add_row("Default Host:", settings.default_host)
    info_table.add_row("Hosts:", ", ".join(settings.hosts))
    info_table.add_row("Headings:", ", ".join(settings.headings.names()))
    console.print(info_table)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    version: bool = typer.Option(False, "--version", help="Show version information"),
) -> None:
    """Heading-Cache: patient record cache and discovery reconciliation."""
    if version:
        console.print(f"{settings.app_name} v{settings.app_version}")
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit()

    level = "DEBUG" if verbose else settings.log_level
    setup_logging(use_json=settings.app_config.log_json, log_level=level)


if __name__ == "__main__":
    app()
