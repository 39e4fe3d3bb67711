#!/usr/bin/env python3

import click

from repoman import __version__
from repoman.cli_utils import CliContext
from repoman.commands.add import add_cmd
from repoman.commands.init import init_cmd
from repoman.commands.clone import clone_cmd
from repoman.commands.sync import sync_cmd
from repoman.commands.update import update_cmd
from repoman.commands.destroy import destroy_cmd
from repoman.commands.orphans import orphans_cmd
from repoman.commands.list import list_cmd
from repoman.commands.status import status_cmd
from repoman.commands.open import open_cmd
from repoman.commands.alias import alias_cmd
from repoman.commands.gc import gc_cmd
from repoman.commands.remove import remove_cmd
from repoman.commands.agent import agent_cmd


@click.group()
@click.version_option(version=__version__, prog_name='repoman')
@click.option('--debug', is_flag=True, help='Verbose logging to stderr')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              help='Config file (default: $REPOMAN_CONFIG or ~/.config/repoman/config.*)')
@click.pass_context
def cli(ctx, debug, config_path):
    """repoman - Space-efficient local cache of git repositories.

    Repositories are registered in a vault, mirrored once as bare
    pristines, and checked out as cheap clones that share the pristine's
    objects.

    \b
    Typical flow:
        repoman add https://github.com/BurntSushi/ripgrep.git
        repoman init ripgrep
        repoman clone ripgrep
        repoman update --all
    """
    if ctx.obj is None:
        ctx.obj = CliContext(debug=debug, config_path=config_path)
    else:
        ctx.obj.debug = ctx.obj.debug or debug


# Vault
cli.add_command(add_cmd)
cli.add_command(alias_cmd)
cli.add_command(remove_cmd)
cli.add_command(list_cmd)

# Pristines and clones
cli.add_command(init_cmd)
cli.add_command(sync_cmd)
cli.add_command(update_cmd)
cli.add_command(clone_cmd)
cli.add_command(destroy_cmd)
cli.add_command(open_cmd)

# Maintenance
cli.add_command(status_cmd)
cli.add_command(gc_cmd)
cli.add_command(orphans_cmd)
cli.add_command(agent_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
