"""
Handles the 'sync' command: fetch pristines from their remotes.
"""

from typing import Optional

import click

from ..cli_utils import CliContext, check_summary, handle_errors, json_option, pass_cli
from ..output import emit, emit_one
from ..render import console, render_summary


@click.command('sync')
@click.argument('name', required=False)
@click.option('--all', 'all_repos', is_flag=True, help='Sync every initialized pristine')
@json_option
@pass_cli
@handle_errors
def sync_cmd(cli: CliContext, name: Optional[str], all_repos: bool, as_json: bool):
    """Fetch all branches and tags into the pristine for NAME.

    Clones are not touched; use 'repoman update' for that.

    \b
    Examples:
        repoman sync ripgrep
        repoman sync --all
    """
    if all_repos == bool(name):
        raise click.UsageError("Give a repository NAME or --all")

    if all_repos:
        summary = cli.repoman.sync_all()
        if as_json:
            emit([*summary.details, summary])
        else:
            render_summary(summary)
        check_summary(summary)
        return

    head = cli.repoman.sync(name)
    if as_json:
        emit_one({'name': cli.repoman.resolve(name), 'head': head})
    else:
        console.print(f"Pristine '{cli.repoman.resolve(name)}' synced at {head[:12] if head else 'empty'}")
