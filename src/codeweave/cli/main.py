"""CodeWeave CLI - cwv command."""

import click

from codeweave import __version__
from codeweave.cli.clear import clear_command
from codeweave.cli.index import index_command
from codeweave.cli.search import search_command
from codeweave.cli.status import status_command
from codeweave.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="cwv")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """CodeWeave - hierarchical semantic code search."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(index_command, name="index")
cli.add_command(search_command, name="search")
cli.add_command(status_command, name="status")
cli.add_command(clear_command, name="clear")


if __name__ == "__main__":
    cli()
