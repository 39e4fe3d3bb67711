"""
Handles the 'clone' command: create a working copy from a pristine.
"""

from typing import Optional

import click

from ..cli_utils import CliContext, handle_errors, json_option, pass_cli
from ..hooks import clone_hook_env, run_hooks
from ..output import emit_one
from ..render import console


@click.command('clone')
@click.argument('pristine')
@click.argument('clone_name', required=False)
@click.option('--branch', '-b', help='Branch to check out (default: the pristine default branch)')
@click.option('--no-hooks', is_flag=True, help='Do not run post_clone hooks')
@json_option
@pass_cli
@handle_errors
def clone_cmd(cli: CliContext, pristine: str, clone_name: Optional[str],
              branch: Optional[str], no_hooks: bool, as_json: bool):
    """Create a clone of PRISTINE sharing its object store.

    The clone lands in <clones_dir>/<pristine>-<CLONE_NAME>; a random
    six-character name is used when CLONE_NAME is omitted.

    \b
    Examples:
        repoman clone ripgrep
        repoman clone ripgrep bugfix -b master
    """
    repoman = cli.repoman
    record = repoman.clone(pristine, clone_name, branch)
    name = repoman.resolve(pristine)

    hooks = []
    if not no_hooks:
        metadata = repoman.store.read_metadata(name)
        hooks = run_hooks(metadata.hook_config, 'post_clone', cwd=record.path,
                          env=clone_hook_env(name, record.name, record.path))

    if as_json:
        emit_one({'repo': name, **record.to_dict(),
                  'hooks': [{'command': h.command, 'returncode': h.returncode} for h in hooks]})
        return
    console.print(f"Clone created: {record.path}")
    for hook in hooks:
        if not hook.ok:
            console.print(f"[yellow]post_clone hook failed: {hook.command}[/yellow]")
