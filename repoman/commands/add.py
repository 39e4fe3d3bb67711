"""
Handles the 'add' command: register a repository in the vault.
"""

from typing import Optional

import click

from ..cli_utils import CliContext, handle_errors, json_option, pass_cli
from ..output import emit_one
from ..render import console


@click.command('add')
@click.argument('url', required=False)
@json_option
@pass_cli
@handle_errors
def add_cmd(cli: CliContext, url: Optional[str], as_json: bool):
    """Add a repository URL to the vault.

    Without URL, adds the git repository in the current directory with
    all of its remotes.

    \b
    Examples:
        repoman add https://github.com/BurntSushi/ripgrep.git
        repoman add git@github.com:sharkdp/fd.git
        cd ~/src/project && repoman add
    """
    result = cli.repoman.add(url)
    if as_json:
        emit_one(result)
        return
    for warning in result.warnings:
        console.print(f"[yellow]{warning}[/yellow]")
        console.print("[dim]You can change the default later by editing the metadata.[/dim]")
    console.print(f"Repository '{result.name}' added to vault")
