"""Validate command - check declarations without touching state or providers."""

import sys
import click
from ... import prepare
from ...ingest.declaration_loader import load_declarations, parse_var_overrides
from ...utils.errors import InfraWeaveError
from ...utils.logging import get_logger
from ..utils import describe_error, exit_code_for, format_error, quiet_logging, echo, EXIT_ERROR

logger = get_logger("cli.validate")


@click.command()
@click.argument('declarations', type=click.Path(exists=False))
@click.option('--var', 'variables', multiple=True, help='Parameter override name=value (repeatable)')
@click.option('--quiet', is_flag=True, help='Suppress progress messages')
def validate(declarations, variables, quiet):
    """Validate a declaration file and check it for dependency cycles."""
    quiet_logging(quiet)
    try:
        document = load_declarations(declarations, parse_var_overrides(variables))
        graph = prepare(document.resources)

        echo(
            f"Valid: {graph.graph.number_of_nodes()} declarations, "
            f"{graph.graph.number_of_edges()} dependencies"
        )
        if not quiet and graph.graph.number_of_nodes():
            echo(f"Creation order: {', '.join(graph.creation_order())}")

    except InfraWeaveError as e:
        echo(describe_error(e), err=True)
        sys.exit(exit_code_for(e))
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        echo(format_error(f"Validation failed: {e}"), err=True)
        sys.exit(EXIT_ERROR)
