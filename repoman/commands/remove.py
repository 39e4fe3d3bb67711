"""
Handles the 'remove' command: delete a repository and everything derived from it.
"""

import click

from ..cli_utils import CliContext, handle_errors, json_option, pass_cli
from ..output import emit_one
from ..render import console


@click.command('remove')
@click.argument('name')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@json_option
@pass_cli
@handle_errors
def remove_cmd(cli: CliContext, name: str, yes: bool, as_json: bool):
    """Remove NAME from the vault with its clones, pristine, metadata and aliases."""
    repoman = cli.repoman
    canonical = repoman.resolve(name)
    if not yes and not as_json:
        click.confirm(f"Remove '{canonical}' and all of its clones?", abort=True)

    result = repoman.remove(canonical)
    if as_json:
        emit_one(result)
        return
    console.print(
        f"Removed '{result.name}' ({len(result.clones_removed)} clone(s), "
        f"pristine {'removed' if result.pristine_removed else 'absent'}, "
        f"{len(result.aliases_removed)} alias(es))"
    )
