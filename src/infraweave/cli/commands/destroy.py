"""Destroy command - delete every recorded resource in reverse dependency order."""

import sys
import click
from ... import destroy_plan, apply as apply_plan
from ...presentation.human_formatter import format_plan, format_run_result
from ...utils.errors import InfraWeaveError
from ...utils.logging import get_logger
from ..utils import (
    describe_error,
    exit_code_for,
    exit_code_for_outcome,
    format_error,
    resolve_settings,
    open_state_store,
    build_provider,
    apply_options,
    quiet_logging,
    echo,
    EXIT_OK,
    EXIT_ERROR,
)

logger = get_logger("cli.destroy")


@click.command()
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@click.option('--workers', type=click.IntRange(min=1), help='Operations allowed in flight at once')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
@click.pass_context
def destroy(ctx, yes, workers, quiet):
    """Delete every resource recorded in the state file."""
    quiet_logging(quiet)
    try:
        settings = resolve_settings(ctx, max_workers=workers)
        provider = build_provider(settings)
        store = open_state_store(settings)
        try:
            current_plan = destroy_plan(store)
            echo(format_plan(current_plan))
            if current_plan.is_empty:
                sys.exit(EXIT_OK)
            if not yes:
                click.confirm(f"Destroy {len(current_plan.operations)} resource(s)?", abort=True)
            result = apply_plan(current_plan, provider, store, options=apply_options(settings))
        finally:
            store.close()

        echo("")
        echo(format_run_result(result, current_plan))
        sys.exit(exit_code_for_outcome(result.outcome))

    except InfraWeaveError as e:
        echo(describe_error(e), err=True)
        sys.exit(exit_code_for(e))
    except click.Abort:
        raise
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        echo(format_error(f"Destroy failed: {e}"), err=True)
        sys.exit(EXIT_ERROR)
