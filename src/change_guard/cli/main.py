"""Command-line interface for change-guard."""

import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.table import Table

from change_guard.analysis.conflict_engine import ConflictEngine
from change_guard.cli.config_loader import load_runtime_config
from change_guard.config.presets import PresetConfig
from change_guard.config.runtime_config import RuntimeConfig
from change_guard.core.coordinator import ChangeCoordinator
from change_guard.core.models import CodeChange, ValidationContext
from change_guard.utils.diff import unified_diff

console = Console()
logger = logging.getLogger(__name__)

_SEVERITY_STYLE = {
    "none": "green",
    "low": "green",
    "medium": "yellow",
    "high": "red",
    "critical": "bold red",
}


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Validate proposed source changes and analyze conflicts between them.

    Registers the `conflicts`, `validate` and `diff` subcommands.
    """


def config_options(func: Any) -> Any:  # noqa: ANN401
    """Attach the shared --config/--log-level/--log-file options to a command."""
    func = click.option(
        "--log-file",
        type=click.Path(dir_okay=False),
        help="Path to log file (default: stderr only)",
    )(func)
    func = click.option(
        "--log-level",
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
        help="Logging level (default: INFO)",
    )(func)
    func = click.option(
        "--config",
        type=str,
        help=(
            f"Configuration preset name ({'/'.join(PresetConfig.names())}) "
            "or path to configuration file (YAML/TOML)"
        ),
    )(func)
    return func


def _setup(
    config: str | None,
    log_level: str | None,
    log_file: str | None,
    **overrides: Any,  # noqa: ANN401
) -> RuntimeConfig:
    """Load runtime configuration and configure logging.

    Raises:
        click.Abort: If the configuration cannot be loaded.
    """
    try:
        cli_overrides = {
            "log_level": log_level.upper() if log_level else None,
            "log_file": str(log_file) if log_file else None,
            **overrides,
        }
        runtime_config, _ = load_runtime_config(config=config, cli_overrides=cli_overrides)

        # Configure logging
        log_handler = (
            logging.FileHandler(runtime_config.log_file)
            if runtime_config.log_file
            else logging.StreamHandler()
        )
        logging.basicConfig(
            level=getattr(logging, runtime_config.log_level),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=[log_handler],
            force=True,
        )
    except Exception as e:
        console.print(f"[red]❌ Configuration error: {e}[/red]")
        raise click.Abort() from e
    return runtime_config


def load_changes(path: Path) -> list[CodeChange]:
    """Read a JSON or YAML list of change records.

    Each record needs ``file_path``, ``start_line``, ``end_line``,
    ``original_code`` and ``modified_code``; ``change_id`` defaults to the
    record's position.

    Raises:
        ValueError: If the document is not a list of valid change records.
    """
    text = path.read_text(encoding="utf-8")
    data = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
    if isinstance(data, dict) and "changes" in data:
        data = data["changes"]
    if not isinstance(data, list):
        raise ValueError("Changes file must contain a list of changes")

    changes: list[CodeChange] = []
    for index, record in enumerate(data, start=1):
        if not isinstance(record, dict):
            raise ValueError(f"Change #{index} is not a mapping")
        try:
            changes.append(
                CodeChange(
                    file_path=str(record["file_path"]),
                    start_line=int(record["start_line"]),
                    end_line=int(record["end_line"]),
                    original_code=str(record.get("original_code", "")),
                    modified_code=str(record["modified_code"]),
                    change_id=str(record.get("change_id", f"change-{index}")),
                    author=record.get("author"),
                    description=record.get("description"),
                )
            )
        except KeyError as e:
            raise ValueError(f"Change #{index} is missing field {e}") from e
    return changes


@cli.command()
@click.argument("changes_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--auto-resolve-severity",
    type=click.Choice(["none", "low", "medium", "high", "critical"], case_sensitive=False),
    help="Highest severity resolved automatically (default: low)",
)
@click.option("--show-resolved", is_flag=True, help="Print the text of auto-resolved conflicts")
@config_options
def conflicts(
    changes_file: Path,
    auto_resolve_severity: str | None,
    show_resolved: bool,
    config: str | None,
    log_level: str | None,
    log_file: str | None,
) -> None:
    """Detect and auto-resolve conflicts between proposed changes.

    CHANGES_FILE is a JSON or YAML list of changes with file_path, start_line,
    end_line, original_code and modified_code.

    Raises:
        click.Abort: If the file cannot be read or analysis fails.
    """
    runtime_config = _setup(
        config, log_level, log_file, auto_resolve_severity=auto_resolve_severity
    )

    try:
        changes = load_changes(changes_file)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]❌ Could not load changes: {e}[/red]")
        raise click.Abort() from e

    console.print(f"Analyzing {len(changes)} change(s) from {changes_file}")

    try:
        engine = ConflictEngine(runtime_config.to_conflict_options())
        analysis = engine.detect_and_resolve_conflicts(changes)
    except Exception as e:
        console.print(f"❌ Error analyzing conflicts: {e}")
        logger.exception("Failed to analyze conflicts")
        raise click.Abort() from e

    if not analysis.conflicts:
        console.print("✅ No conflicts detected")
        return

    resolved_ids = {id(r.conflict) for r in analysis.auto_resolved}

    table = Table(title="Conflict Analysis")
    table.add_column("File", style="cyan")
    table.add_column("Changes", style="white")
    table.add_column("Kind", style="yellow")
    table.add_column("Severity")
    table.add_column("Strategy", style="blue")
    table.add_column("Lines", style="magenta")
    table.add_column("Status")

    for conflict in analysis.conflicts:
        severity = conflict.severity.value
        lines = sorted(conflict.affected_lines)
        status = (
            "[green]auto-resolved[/green]"
            if id(conflict) in resolved_ids
            else "[red]needs review[/red]"
        )
        table.add_row(
            conflict.file_path,
            f"{conflict.change1.change_id} / {conflict.change2.change_id}",
            conflict.kind.value,
            f"[{_SEVERITY_STYLE[severity]}]{severity}[/{_SEVERITY_STYLE[severity]}]",
            conflict.suggested_strategy.value,
            f"{lines[0]}-{lines[-1]}" if lines else "-",
            status,
        )

    console.print(table)

    stats = analysis.stats
    console.print(
        f"\n📊 Found {stats.total_conflicts} conflict(s) in {stats.total_changes} change(s)"
    )
    console.print(f"  • Auto-resolved: {stats.auto_resolved}")
    console.print(f"  • Unresolved: {stats.unresolved}")
    console.print(f"  • Non-conflicting changes: {len(analysis.non_conflicting_changes)}")

    if show_resolved:
        for resolution in analysis.auto_resolved:
            console.print(
                f"\n[bold]{resolution.conflict.file_path}[/bold] "
                f"({resolution.strategy_used.value}):"
            )
            console.print(resolution.resolved_content, markup=False, highlight=False)

    if stats.unresolved:
        console.print("\n[yellow]💡 Some conflicts require manual review[/yellow]")


@cli.command()
@click.argument("source_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--unit-id", required=True, help="Unit identifier (the component name)")
@click.option("--unit-name", help="Declared unit name, if different from --unit-id")
@click.option(
    "--strict/--no-strict",
    "strict_validation",
    default=None,
    help="Enable/disable the security stage",
)
@click.option(
    "--sandbox/--no-sandbox",
    "sandbox_execution",
    default=None,
    help="Enable/disable the sandbox dry run",
)
@config_options
def validate(
    source_file: Path,
    unit_id: str,
    unit_name: str | None,
    strict_validation: bool | None,
    sandbox_execution: bool | None,
    config: str | None,
    log_level: str | None,
    log_file: str | None,
) -> None:
    """Run the validation pipeline over SOURCE_FILE and report the issues.

    Exits with status 1 when the source would be rejected.
    """
    runtime_config = _setup(
        config,
        log_level,
        log_file,
        strict_validation=strict_validation,
        sandbox_execution=sandbox_execution,
    )

    try:
        source = source_file.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]❌ Could not read {source_file}: {e}[/red]")
        raise click.Abort() from e

    coordinator = ChangeCoordinator.from_config(runtime_config)
    context = ValidationContext(unit_id=unit_id, unit_name=unit_name or unit_id)
    try:
        result = coordinator.validate_code(source, context)
        if result.success and runtime_config.sandbox_execution:
            sandbox = coordinator.dry_run(source, context)
            if not sandbox.success:
                result = replace(sandbox, issues=(*result.issues, *sandbox.issues))
    except Exception as e:
        console.print(f"❌ Error validating {source_file}: {e}")
        logger.exception("Validation failed unexpectedly")
        raise click.Abort() from e

    if result.issues:
        table = Table(title=f"Validation of {unit_id}")
        table.add_column("Stage", style="cyan")
        table.add_column("Severity")
        table.add_column("Location", style="magenta")
        table.add_column("Message")
        table.add_column("Auto-fix", style="green")
        for issue in result.issues:
            location = f"{issue.line}:{issue.column}" if issue.line is not None else "-"
            table.add_row(
                issue.stage or "-",
                issue.severity.value,
                location,
                issue.message,
                "yes" if issue.auto_fixable else "",
            )
        console.print(table)

    if result.success:
        console.print(f"✅ {unit_id} passed validation")
        return

    console.print(f"[red]❌ {result.error}[/red]")
    sys.exit(1)


@cli.command()
@click.argument("old_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("new_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def diff(old_file: Path, new_file: Path) -> None:
    """Print a unified diff between OLD_FILE and NEW_FILE."""
    try:
        old_text = old_file.read_text(encoding="utf-8")
        new_text = new_file.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]❌ Could not read input: {e}[/red]")
        raise click.Abort() from e

    output = unified_diff(old_text, new_text, path=new_file.name)
    if not output:
        console.print("✅ No differences")
        return
    click.echo(output)


if __name__ == "__main__":
    cli()
