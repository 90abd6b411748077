"""
durastate CLI
=============

Operator commands for a durastate deployment.

Commands:
    durastate recover <module:registry>     - Resume every unfinished record
    durastate list [--unfinished]           - List stored records
    durastate show <record_id>              - Show one record
"""

import json
import sys
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import build_engine, create_store, load_config, load_registry, recovery_policy
from .errors import DurableStateError
from .log import configure_logging
from .recovery import RecoveryPolicy
from .registry import Registry, StateDescriptor

console = Console()


class _AnyStateRegistry(Registry):
    """Stand-in used when no workflow is given: nothing is terminal."""

    def __init__(self):
        super().__init__({"*": StateDescriptor()}, name="")

    def __contains__(self, state) -> bool:
        return True


def _open_store(config: dict, workflow: Optional[str]):
    registry = load_registry(workflow) if workflow else _AnyStateRegistry()
    return registry, create_store(config, registry)


@click.group()
@click.version_option(version=__version__, prog_name="durastate")
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to durastate.yaml (default: $DURASTATE_CONFIG or ./durastate.yaml)",
)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str]):
    """durastate - durable state machine engine"""
    try:
        config = load_config(config_path)
    except DurableStateError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)
    configure_logging(config.get("logging", {}).get("level", "info"))
    ctx.obj = config


@main.command()
@click.argument("workflow")
@click.option(
    "--policy", "-p",
    type=click.Choice([p.value for p in RecoveryPolicy]),
    default=None,
    help="Override recovery.policy from the config",
)
@click.pass_obj
def recover(config: dict, workflow: str, policy: Optional[str]):
    """Resume every unfinished record of WORKFLOW (module:attribute)."""
    try:
        registry = load_registry(workflow)
        engine = build_engine(config, registry)
        chosen = RecoveryPolicy(policy) if policy else recovery_policy(config)
        result = engine.recover_all(chosen)
    except DurableStateError as e:
        console.print(f"[red]Recovery aborted:[/red] {e}")
        sys.exit(1)

    table = Table(title=f"Recovery: {registry.name}", show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Found", str(result.found))
    table.add_row("Completed", f"[green]{result.completed}[/green]")
    table.add_row("Paused", f"[yellow]{result.paused}[/yellow]")
    table.add_row("Failed", f"[red]{result.failed}[/red]" if result.failed else "0")
    table.add_row("Skipped", str(result.skipped))
    console.print(table)

    for record_id, error in result.errors.items():
        console.print(f"  [red]✗[/red] {record_id}: {error}")

    if not result.ok:
        sys.exit(1)


@main.command("list")
@click.option("--workflow", "-w", default=None, help="Registry as module:attribute")
@click.option("--unfinished", "-u", is_flag=True, help="Only records that are not terminal (needs --workflow)")
@click.pass_obj
def list_records(config: dict, workflow: Optional[str], unfinished: bool):
    """List stored records."""
    if unfinished and not workflow:
        raise click.UsageError("--unfinished needs --workflow to know which states are terminal")

    try:
        registry, store = _open_store(config, workflow)
        with store:
            records = store.find_unfinished() if unfinished else store.list_records()
    except DurableStateError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if not records:
        console.print("[dim]No records found[/dim]")
        return

    table = Table(title="Records")
    table.add_column("Record ID")
    table.add_column("Workflow")
    table.add_column("State")
    table.add_column("Version", justify="right")
    table.add_column("Updated")

    for record in records:
        table.add_row(
            record.record_id,
            record.workflow or "N/A",
            _format_state(registry, record.state),
            str(record.version),
            record.updated_at[:19],
        )

    console.print(table)


@main.command()
@click.argument("record_id")
@click.option("--workflow", "-w", default=None, help="Registry as module:attribute")
@click.pass_obj
def show(config: dict, record_id: str, workflow: Optional[str]):
    """Show one record."""
    try:
        registry, store = _open_store(config, workflow)
        with store:
            record = store.get(record_id)
    except DurableStateError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if record is None:
        console.print(f"[red]Record not found: {record_id}[/red]")
        sys.exit(1)

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Record ID", record.record_id)
    table.add_row("Workflow", record.workflow or "N/A")
    table.add_row("State", _format_state(registry, record.state))
    table.add_row("Version", str(record.version))
    table.add_row("Created", record.created_at)
    table.add_row("Updated", record.updated_at)
    table.add_row("Payload", json.dumps(record.payload, indent=2, sort_keys=True))
    console.print(table)


def _format_state(registry: Registry, state: str) -> str:
    """Format state with color: green terminal, yellow in flight"""
    if isinstance(registry, _AnyStateRegistry):
        return state
    if state not in registry:
        return f"[red]{state}?[/red]"
    color = "green" if registry.is_terminal(state) else "yellow"
    return f"[{color}]{state}[/{color}]"


if __name__ == "__main__":
    main()
