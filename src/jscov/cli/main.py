"""jscov CLI - jscov command."""

import click

from jscov.cli.merge import merge_command
from jscov.cli.report import report_command
from jscov.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="jscov")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """jscov - Merge V8 JavaScript coverage into Istanbul coverage reports."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(report_command, name="report")
cli.add_command(merge_command, name="merge")


if __name__ == "__main__":
    cli()
