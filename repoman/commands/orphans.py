"""
Handles the 'orphans' command: find clone directories nothing refers to.
"""

import click

from ..cli_utils import CliContext, handle_errors, json_option, pass_cli
from ..output import emit_one
from ..render import render_orphans


@click.command('orphans')
@click.option('--cleanup', is_flag=True, help='Remove orphaned directories and dangling records')
@json_option
@pass_cli
@handle_errors
def orphans_cmd(cli: CliContext, cleanup: bool, as_json: bool):
    """Report (or remove) clones that metadata and disk disagree about."""
    report = cli.repoman.orphans(cleanup=cleanup)
    if as_json:
        emit_one(report)
    else:
        render_orphans(report)
