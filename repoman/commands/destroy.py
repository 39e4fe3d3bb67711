"""
Handles the 'destroy' command: remove clones and pristines.
"""

from pathlib import Path
from typing import Optional

import click

from ..cli_utils import CliContext, handle_errors, json_option, pass_cli
from ..errors import RepomanError
from ..hooks import clone_hook_env, run_hooks
from ..output import emit, emit_one
from ..render import console


def _pre_destroy_hooks(repoman, target: str) -> None:
    try:
        found = repoman.clones.find(target)
    except RepomanError:
        return
    if found is None:
        return
    repo, record = found
    if not Path(record.path).is_dir():
        return
    metadata = repoman.store.read_metadata(repo)
    run_hooks(metadata.hook_config, 'pre_destroy', cwd=record.path,
              env=clone_hook_env(repo, record.name, record.path))


@click.command('destroy')
@click.argument('target', required=False)
@click.option('--all-clones', 'all_clones', metavar='PRISTINE', help='Destroy every clone of PRISTINE')
@click.option('--all-pristines', is_flag=True, help='Destroy every pristine (clones become unhealthy)')
@click.option('--stale', type=int, metavar='DAYS', help='Destroy clones whose HEAD is older than DAYS')
@click.option('--no-hooks', is_flag=True, help='Do not run pre_destroy hooks')
@json_option
@pass_cli
@handle_errors
def destroy_cmd(cli: CliContext, target: Optional[str], all_clones: Optional[str],
                all_pristines: bool, stale: Optional[int], no_hooks: bool, as_json: bool):
    """Destroy a clone or pristine by name.

    TARGET is matched against clone names first, then pristine names.

    \b
    Examples:
        repoman destroy ripgrep-x7k2p9
        repoman destroy --all-clones ripgrep
        repoman destroy --stale 30
    """
    modes = [bool(target), bool(all_clones), all_pristines, stale is not None]
    if sum(modes) != 1:
        raise click.UsageError("Give exactly one of TARGET, --all-clones, --all-pristines or --stale")

    repoman = cli.repoman

    if target:
        if not no_hooks:
            _pre_destroy_hooks(repoman, target)
        kind, path = repoman.destroy(target)
        if as_json:
            emit_one({'destroyed': kind, 'path': path})
        else:
            console.print(f"Destroyed {kind}: {path}")
        return

    if all_clones:
        paths = repoman.destroy_all_clones(all_clones)
        if as_json:
            emit({'destroyed': 'clone', 'path': p} for p in paths)
        else:
            console.print(f"Destroyed {len(paths)} clone(s) of '{repoman.resolve(all_clones)}'")
        return

    if all_pristines:
        names = repoman.destroy_all_pristines()
        if as_json:
            emit({'destroyed': 'pristine', 'name': n} for n in names)
        else:
            console.print(f"Destroyed {len(names)} pristine(s)")
        return

    removed = repoman.destroy_stale(stale)
    if as_json:
        emit(removed)
    else:
        for item in removed:
            console.print(f"Destroyed stale clone {item.path} ({item.age_days:.0f} days)")
        console.print(f"Destroyed {len(removed)} stale clone(s)")
