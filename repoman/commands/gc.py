"""
Handles the 'gc' command.
"""

import click

from ..cli_utils import CliContext, handle_errors, json_option, pass_cli
from ..output import emit_one
from ..render import render_gc


@click.command('gc')
@click.option('--days', type=int, default=30, show_default=True,
              help='Clones whose HEAD commit is older than this are stale')
@click.option('--dry-run', is_flag=True, help='Report what would be removed without changing anything')
@json_option
@pass_cli
@handle_errors
def gc_cmd(cli: CliContext, days: int, dry_run: bool, as_json: bool):
    """Remove stale clones and compact pristines."""
    if days < 0:
        raise click.BadParameter("must not be negative", param_hint='--days')
    report = cli.repoman.gc(days=days, dry_run=dry_run)
    if as_json:
        emit_one(report)
    else:
        render_gc(report)
