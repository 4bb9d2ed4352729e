"""State commands - inspect recorded state (read-only)."""

import json
import sys
import click
from ...utils.errors import InfraWeaveError
from ...utils.logging import get_logger
from ..utils import describe_error, exit_code_for, format_error, resolve_settings, open_state_store, echo, EXIT_ERROR

logger = get_logger("cli.state")


@click.group()
def state():
    """Inspect the state file."""
    pass


@state.command(name="list")
@click.pass_context
def list_records(ctx):
    """List recorded declarations with status and provider id."""
    try:
        settings = resolve_settings(ctx)
        with open_state_store(settings) as store:
            records = store.load()
        if not records:
            echo("State is empty.")
            return
        for declaration_id in sorted(records):
            record = records[declaration_id]
            echo(
                f"{declaration_id:<24} {record.resource_type:<20} {record.status.value:<10} "
                f"{record.provider_assigned_id or '-'}"
            )
    except InfraWeaveError as e:
        echo(describe_error(e), err=True)
        sys.exit(exit_code_for(e))


@state.command()
@click.argument('declaration_id')
@click.pass_context
def show(ctx, declaration_id):
    """Show one state record as JSON."""
    try:
        settings = resolve_settings(ctx)
        with open_state_store(settings) as store:
            records = store.load()
        record = records.get(declaration_id)
        if record is None:
            echo(format_error(f"No state recorded for '{declaration_id}'"), err=True)
            sys.exit(EXIT_ERROR)
        echo(json.dumps(record.model_dump(mode="json"), indent=2, default=str))
    except InfraWeaveError as e:
        echo(describe_error(e), err=True)
        sys.exit(exit_code_for(e))
