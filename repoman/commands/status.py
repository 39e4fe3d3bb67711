"""
Handles the 'status' command.
"""

import click

from ..cli_utils import CliContext, handle_errors, json_option, pass_cli
from ..output import emit_one
from ..render import render_status


@click.command('status')
@click.argument('name')
@json_option
@pass_cli
@handle_errors
def status_cmd(cli: CliContext, name: str, as_json: bool):
    """Show pristine and clone status for NAME.

    For each clone: branch, dirty state, ahead/behind its upstream and
    whether its alternates pointer still reaches the pristine.
    """
    status = cli.repoman.status(name)
    if as_json:
        emit_one(status)
    else:
        render_status(status)
