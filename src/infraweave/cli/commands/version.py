"""Version command - show InfraWeave version."""

import click
from ... import __version__


@click.command()
def version():
    """Show InfraWeave version."""
    click.echo(f"infraweave version {__version__}")
