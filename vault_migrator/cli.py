"""
Command line interface for Vault Migrator.

Exit codes:
    0   every environment completed (possibly with warnings)
    1   configuration error
    2   at least one environment aborted
    130 the run was cancelled (SIGINT/SIGTERM)
"""

import logging
import signal
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from .config import create_default_config, load_config
from .exceptions import ConfigurationError
from .logging_config import setup_logging
from .migration.orchestrator import MigrationOrchestrator
from .reporting import plan_table, render_batch, write_report

logger = logging.getLogger(__name__)
console = Console()

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_ABORTED = 2
EXIT_CANCELLED = 130


def _install_cancel_handlers(orchestrator: MigrationOrchestrator) -> dict:
    """Route SIGINT/SIGTERM to orchestrator.cancel(); returns the previous handlers."""

    def handler(signum, frame):
        logger.warning(f"Received {signal.Signals(signum).name}; cancelling migration")
        orchestrator.cancel()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[signum] = signal.signal(signum, handler)
        except ValueError:
            # Not in the main thread
            pass
    return previous


def _restore_handlers(previous: dict) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


@click.group()
@click.option(
    "--log-level",
    default="INFO",
    help="Logging level (DEBUG, INFO, WARNING, ERROR)",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write logs to this file",
)
@click.option("--json-logs", is_flag=True, help="Render structured logs as JSON")
@click.pass_context
def cli(ctx, log_level, log_file, json_logs):
    """Vault Migrator - move Key Vault resources between Azure subscriptions."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level.upper()
    setup_logging(ctx.obj["log_level"], log_file=log_file, json_logs=json_logs)


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Environment configuration file (YAML or JSON)",
)
@click.option(
    "--environment",
    "-e",
    "environments",
    multiple=True,
    help="Only migrate the named environment (repeatable)",
)
@click.option("--max-workers", type=int, default=None, help="Environments migrated concurrently")
@click.option(
    "--report",
    "report_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the migration log as JSON",
)
@click.pass_context
def migrate(ctx, config_path, environments, max_workers, report_path):
    """Migrate every configured environment."""
    try:
        settings = load_config(
            config_path, {"max_workers": max_workers, "report_path": report_path}
        )
        selected = settings.select(list(environments))
    except ConfigurationError as e:
        console.print(f"[red]❌ Configuration error: {escape(str(e))}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)
    except KeyError as e:
        console.print(f"[red]❌ {escape(str(e.args[0]))}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)

    if not selected:
        console.print("[yellow]No environments configured; nothing to do[/yellow]")
        sys.exit(EXIT_OK)

    orchestrator = MigrationOrchestrator.from_settings(settings)
    previous = _install_cancel_handlers(orchestrator)
    try:
        batch = orchestrator.run(selected)
    finally:
        _restore_handlers(previous)

    render_batch(batch, console)
    if settings.report_path:
        write_report(batch, settings.report_path)

    if batch.cancelled:
        console.print("[yellow]⚠️  Migration cancelled[/yellow]")
        sys.exit(EXIT_CANCELLED)
    if batch.aborted:
        console.print(f"[red]❌ {len(batch.aborted)} environment(s) aborted[/red]")
        sys.exit(EXIT_ABORTED)
    console.print("[green]✅ Migration completed[/green]")


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Environment configuration file (YAML or JSON)",
)
def validate(config_path):
    """Validate the configuration and print the migration plan."""
    try:
        settings = load_config(config_path)
    except ConfigurationError as e:
        console.print(f"[red]❌ Configuration error: {escape(str(e))}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)

    console.print(plan_table(settings.environments))
    console.print(
        f"[green]✅ {len(settings.environments)} environment(s) valid[/green]"
    )


@cli.command("init-config")
@click.argument(
    "path", type=click.Path(dir_okay=False, path_type=Path), required=False
)
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init_config(path, force):
    """Write a commented sample configuration."""
    try:
        written = create_default_config(path, force=force)
    except ConfigurationError as e:
        console.print(f"[red]❌ {escape(e.message)}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)
    console.print(f"[green]✅ Sample configuration written to {written}[/green]")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
