"""
Handles the 'open' command: print the path of a pristine or clone.
"""

import click

from ..cli_utils import CliContext, handle_errors, pass_cli


@click.command('open')
@click.argument('target')
@pass_cli
@handle_errors
def open_cmd(cli: CliContext, target: str):
    """Print the path of a pristine or clone.

    \b
    Example:
        cd "$(repoman open ripgrep-x7k2p9)"
    """
    click.echo(str(cli.repoman.find_path(target)))
