"""
Handles the 'alias' command.
"""

from typing import Optional

import click

from ..cli_utils import CliContext, handle_errors, json_option, pass_cli
from ..output import emit, emit_one
from ..render import console, render_aliases


@click.command('alias')
@click.argument('name', required=False)
@click.argument('alias', required=False)
@click.option('--remove', '-r', 'remove', metavar='ALIAS', help='Remove ALIAS')
@json_option
@pass_cli
@handle_errors
def alias_cmd(cli: CliContext, name: Optional[str], alias: Optional[str],
              remove: Optional[str], as_json: bool):
    """Create an alias for a repository, or list aliases.

    \b
    Examples:
        repoman alias ripgrep rg
        repoman alias --remove rg
        repoman alias
    """
    repoman = cli.repoman

    if remove:
        target = repoman.remove_alias(remove)
        if as_json:
            emit_one({'alias': remove, 'removed': True, 'name': target})
        else:
            console.print(f"Removed alias '{remove}' (was '{target}')")
        return

    if name and alias:
        canonical = repoman.alias(name, alias)
        if as_json:
            emit_one({'alias': alias, 'name': canonical})
        else:
            console.print(f"Alias '{alias}' -> '{canonical}'")
        return

    if name:
        raise click.UsageError("Give both NAME and ALIAS to create an alias")

    aliases = repoman.aliases()
    if as_json:
        emit({'alias': a, 'name': n} for a, n in sorted(aliases.items()))
    else:
        render_aliases(aliases)
