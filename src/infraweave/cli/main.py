"""Main CLI entry point for InfraWeave."""

import click
from .commands.validate import validate
from .commands.plan import plan
from .commands.apply import apply
from .commands.destroy import destroy
from .commands.drift import drift
from .commands.state import state
from .commands.version import version
from ..providers.registry import SUPPORTED_PROVIDERS
from ..utils.logging import get_logger
from .. import __version__

logger = get_logger("cli.main")


@click.group()
@click.version_option(version=__version__, prog_name="infraweave", message="%(prog)s version %(version)s")
@click.option('--config', 'config_path', type=click.Path(), help='Engine config YAML (overrides .infraweave/config.yaml)')
@click.option('--state', 'state_path', type=click.Path(), help='State file path')
@click.option('--provider', type=click.Choice(sorted(SUPPORTED_PROVIDERS)), help='Provider capability to use')
@click.pass_context
def cli(ctx, config_path, state_path, provider):
    """InfraWeave - Declarative infrastructure provisioning."""
    ctx.ensure_object(dict)
    ctx.obj.update({"config_path": config_path, "state_path": state_path, "provider": provider})


cli.add_command(validate)
cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(drift)
cli.add_command(state)
cli.add_command(version)
