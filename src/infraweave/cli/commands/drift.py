"""Drift command - compare recorded state with the provider."""

import json
import sys
import click
from ...execution.drift import detect_drift, refresh_state
from ...presentation.human_formatter import format_drift_report
from ...utils.errors import InfraWeaveError
from ...utils.logging import get_logger
from ..utils import (
    describe_error,
    exit_code_for,
    format_error,
    resolve_settings,
    open_state_store,
    build_provider,
    quiet_logging,
    echo,
    EXIT_ERROR,
    EXIT_FAILED,
)

logger = get_logger("cli.drift")


@click.command()
@click.option('--refresh', is_flag=True, help='Write provider-side changes back into the state file')
@click.option('--exit-code', 'use_exit_code', is_flag=True, help='Exit with 2 when drift is found')
@click.option('--json', 'json_output', is_flag=True, help='Output the drift report as JSON')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
@click.pass_context
def drift(ctx, refresh, use_exit_code, json_output, quiet):
    """Read applied resources back from the provider and report drift."""
    quiet_logging(quiet)
    try:
        settings = resolve_settings(ctx)
        provider = build_provider(settings)
        store = open_state_store(settings)
        try:
            report = detect_drift(store.load(), provider)
            if refresh and report.has_drift:
                count = refresh_state(report, store)
                if not quiet:
                    echo(f"Refreshed {count} state record(s)", err=True)
        finally:
            store.close()

        if json_output:
            echo(json.dumps(report.model_dump(mode="json"), indent=2, default=str))
        else:
            echo(format_drift_report(report))

        if use_exit_code and report.has_drift:
            sys.exit(EXIT_FAILED)

    except InfraWeaveError as e:
        echo(describe_error(e), err=True)
        sys.exit(exit_code_for(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        echo(format_error(f"Drift check failed: {e}"), err=True)
        sys.exit(EXIT_ERROR)
