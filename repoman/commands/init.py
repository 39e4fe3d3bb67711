"""
Handles the 'init' command: create pristine mirrors.
"""

from typing import Optional

import click

from ..cli_utils import CliContext, check_summary, handle_errors, json_option, pass_cli
from ..output import emit, emit_one
from ..render import console, render_summary


@click.command('init')
@click.argument('name', required=False)
@click.option('--all', 'all_repos', is_flag=True, help='Initialize every vault entry without a pristine')
@json_option
@pass_cli
@handle_errors
def init_cmd(cli: CliContext, name: Optional[str], all_repos: bool, as_json: bool):
    """Create the pristine (bare mirror) for NAME.

    \b
    Examples:
        repoman init ripgrep
        repoman init --all
    """
    if all_repos == bool(name):
        raise click.UsageError("Give a repository NAME or --all")

    if all_repos:
        summary = cli.repoman.init_all()
        if as_json:
            emit([*summary.details, summary])
        else:
            render_summary(summary)
        check_summary(summary)
        return

    path = cli.repoman.init(name)
    if as_json:
        emit_one({'name': cli.repoman.resolve(name), 'path': str(path)})
    else:
        console.print(f"Pristine created at {path}")
