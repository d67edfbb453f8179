"""Console and JSON rendering of migration results."""

import json
import logging
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config.models import EnvironmentSpec
from .migration.models import (
    BatchResult,
    MigrationResult,
    MigrationStatus,
    StepStatus,
)

logger = logging.getLogger(__name__)

STEP_STYLES = {
    StepStatus.SUCCEEDED: "green",
    StepStatus.WARNED: "yellow",
    StepStatus.FAILED: "red",
}

STATUS_STYLES = {
    MigrationStatus.SUCCEEDED: "green",
    MigrationStatus.COMPLETED_WITH_WARNINGS: "yellow",
    MigrationStatus.ABORTED: "red",
}


def environment_table(result: MigrationResult) -> Table:
    """One row per step of an environment's pipeline."""
    status = result.status.value if result.status else "running"
    table = Table(
        title=f"Environment: {result.environment} ({status})",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("Step", style="cyan")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Detail", overflow="fold")

    for outcome in result.outcomes:
        style = STEP_STYLES.get(outcome.status, "white")
        table.add_row(
            outcome.step_name,
            f"[{style}]{outcome.status.value}[/{style}]",
            f"{outcome.duration_seconds:.1f}s",
            escape(outcome.detail),
        )
    return table


def batch_summary(batch: BatchResult) -> Panel:
    """Which environments aborted versus completed (with or without warnings)."""
    lines = []
    for result in batch.results:
        style = STATUS_STYLES.get(result.status, "white")
        status = result.status.value if result.status else "unknown"
        suffix = " (cancelled)" if result.cancelled else ""
        lines.append(
            f"[{style}]{status:<24}[/{style}] {result.environment}"
            f"  last state: {result.last_completed_state.value}{suffix}"
        )

    lines.append("")
    lines.append(
        f"[bold]Succeeded:[/bold] {len(batch.completed)}  "
        f"[bold]With warnings:[/bold] {len(batch.completed_with_warnings)}  "
        f"[bold]Aborted:[/bold] {len(batch.aborted)}"
    )
    border = "red" if batch.aborted else "yellow" if batch.completed_with_warnings else "green"
    return Panel("\n".join(lines), title="Migration Summary", border_style=border)


def render_batch(batch: BatchResult, console: Optional[Console] = None) -> None:
    console = console or Console()
    for result in batch.results:
        console.print(environment_table(result))
    console.print(batch_summary(batch))


def plan_table(environments: Sequence[EnvironmentSpec]) -> Table:
    """Tabulate what a migration of `environments` would touch."""
    table = Table(title="Migration Plan", show_header=True, header_style="bold magenta")
    table.add_column("Environment", style="cyan")
    table.add_column("Source vault")
    table.add_column("Target vault")
    table.add_column("Location")
    table.add_column("Network")
    table.add_column("Login")

    for env in environments:
        network = f"{env.vnet}/{env.subnet}" if env.replicates_network else "-"
        login = env.principal.app_id if env.principal else "ambient"
        table.add_row(
            env.name,
            f"{env.source.resource_group}/{env.source.key_vault_name}",
            f"{env.target.resource_group}/{env.target.key_vault_name}",
            env.target.location,
            network,
            login,
        )
    return table


def write_report(batch: BatchResult, path: Path) -> Path:
    """Persist the batch as a JSON migration log."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(batch.to_dict(), f, indent=2)
    logger.info(f"Migration log written to {path}")
    return path
