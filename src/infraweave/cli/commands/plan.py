"""Plan command - show what apply would do, without doing it."""

import json
import sys
from pathlib import Path
import click
from ... import plan_file
from ...ingest.declaration_loader import parse_var_overrides
from ...presentation.human_formatter import format_plan
from ...report.artifact import write_plan
from ...utils.errors import InfraWeaveError
from ...utils.logging import get_logger
from ..utils import (
    describe_error,
    exit_code_for,
    format_error,
    resolve_settings,
    open_state_store,
    quiet_logging,
    echo,
    EXIT_ERROR,
)

logger = get_logger("cli.plan")


@click.command()
@click.argument('declarations', type=click.Path(exists=False))
@click.option('--var', 'variables', multiple=True, help='Parameter override name=value (repeatable)')
@click.option('--json', 'json_output', is_flag=True, help='Output the plan as JSON')
@click.option('--out', '-o', type=click.Path(), help='Also save the plan JSON to a file')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
@click.pass_context
def plan(ctx, declarations, variables, json_output, out, quiet):
    """Compute and print the ordered plan for a declaration file."""
    quiet_logging(quiet)
    try:
        settings = resolve_settings(ctx)
        store = open_state_store(settings)
        try:
            current_plan = plan_file(declarations, store, parse_var_overrides(variables))
        finally:
            store.close()

        if out:
            write_plan(current_plan, Path(out))
            if not quiet:
                echo(f"Plan saved to: {out}", err=True)

        if json_output:
            echo(json.dumps(current_plan.to_dict(), indent=2, default=str))
        else:
            echo(format_plan(current_plan))

    except InfraWeaveError as e:
        echo(describe_error(e), err=True)
        sys.exit(exit_code_for(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        echo(format_error(f"Planning failed: {e}"), err=True)
        sys.exit(EXIT_ERROR)
