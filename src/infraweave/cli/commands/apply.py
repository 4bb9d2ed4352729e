"""Apply command - reconcile declarations against the provider."""

import json
import sys
from pathlib import Path
import click
from ... import plan_file, apply as apply_plan
from ...ingest.declaration_loader import parse_var_overrides
from ...presentation.human_formatter import format_plan, format_run_result
from ...report.artifact import generate_artifacts
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

logger = get_logger("cli.apply")


@click.command()
@click.argument('declarations', type=click.Path(exists=False))
@click.option('--var', 'variables', multiple=True, help='Parameter override name=value (repeatable)')
@click.option('--workers', type=click.IntRange(min=1), help='Operations allowed in flight at once')
@click.option('--deadline', type=click.FloatRange(min=0, min_open=True), help='Cancel the run after this many seconds')
@click.option('--artifacts', type=click.Path(), help='Write plan/run JSON artifacts to this directory')
@click.option('--json', 'json_output', is_flag=True, help='Output the run result as JSON')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
@click.pass_context
def apply(ctx, declarations, variables, workers, deadline, artifacts, json_output, quiet):
    """
    Plan a declaration file and execute the plan.

    Exit codes: 0 success, 1 runtime error, 2 failed or blocked declarations,
    3 invalid declarations or dependency cycle, 4 cancelled.
    """
    quiet_logging(quiet)
    try:
        settings = resolve_settings(ctx, max_workers=workers)
        provider = build_provider(settings)
        store = open_state_store(settings)
        try:
            current_plan = plan_file(declarations, store, parse_var_overrides(variables))
            if not quiet and not json_output:
                echo(format_plan(current_plan))
                echo("")
            if current_plan.is_empty:
                if json_output:
                    echo(json.dumps({"outcome": "SUCCESS", "results": []}, indent=2))
                sys.exit(EXIT_OK)
            result = apply_plan(current_plan, provider, store, options=apply_options(settings, deadline))
        finally:
            store.close()

        if artifacts:
            generate_artifacts(current_plan, Path(artifacts), result)

        if json_output:
            echo(json.dumps(result.model_dump(mode="json"), indent=2))
        else:
            echo(format_run_result(result, current_plan))

        sys.exit(exit_code_for_outcome(result.outcome))

    except InfraWeaveError as e:
        echo(describe_error(e), err=True)
        sys.exit(exit_code_for(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        echo(format_error(f"Apply failed: {e}"), err=True)
        sys.exit(EXIT_ERROR)
