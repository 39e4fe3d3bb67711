"""
Handles the 'update' command: sync a pristine and fast-forward its clones.
"""

from typing import Optional

import click

from ..cli_utils import CliContext, check_summary, handle_errors, json_option, pass_cli
from ..errors import UpdateFailed
from ..output import emit, emit_one
from ..render import console, render_summary

_OUTCOME_STYLE = {
    'fast_forwarded': 'green',
    'up_to_date': 'dim',
    'diverged': 'yellow',
    'skipped': 'yellow',
    'failed': 'red',
}


@click.command('update')
@click.argument('name', required=False)
@click.option('--all', 'all_repos', is_flag=True, help='Update every initialized pristine')
@json_option
@pass_cli
@handle_errors
def update_cmd(cli: CliContext, name: Optional[str], all_repos: bool, as_json: bool):
    """Sync the pristine for NAME, then fast-forward each clone.

    Clones with local commits are reported as diverged and left alone.

    \b
    Examples:
        repoman update ripgrep
        repoman update --all
    """
    if all_repos == bool(name):
        raise click.UsageError("Give a repository NAME or --all")

    if all_repos:
        summary = cli.repoman.update_all()
        if as_json:
            emit([*summary.details, summary])
        else:
            render_summary(summary)
        check_summary(summary)
        return

    try:
        result = cli.repoman.update(name)
    except UpdateFailed as e:
        _report(e.name, e.head, [u.to_dict() for u in e.updates], as_json)
        raise
    _report(cli.repoman.resolve(name), result["head"], result["clones"], as_json)


def _report(name: str, head: Optional[str], clones, as_json: bool) -> None:
    if as_json:
        emit_one({"name": name, "head": head, "clones": clones})
        return
    console.print(f"Pristine '{name}' synced")
    for clone in clones:
        style = _OUTCOME_STYLE.get(clone['outcome'], 'white')
        message = f" ({clone['message']})" if clone.get('message') else ''
        console.print(f"  {clone['clone']}: [{style}]{clone['outcome']}[/{style}]{message}")
