"""
Handles the 'list' command.
"""

import click

from ..cli_utils import CliContext, handle_errors, json_option, pass_cli
from ..output import emit
from ..render import render_repo_list


@click.command('list')
@click.option('--verbose', '-v', is_flag=True, help='Show URLs, aliases, tags and last sync')
@json_option
@pass_cli
@handle_errors
def list_cmd(cli: CliContext, verbose: bool, as_json: bool):
    """List vault entries with their pristine and clones."""
    rows = cli.repoman.list_repos()
    if as_json:
        emit(rows)
    else:
        render_repo_list(rows, verbose=verbose)
