"""
Handles the 'agent' command group: the background sync daemon.
"""

import click

from ..agent import AgentController
from ..cli_utils import CliContext, handle_errors, json_option, pass_cli
from ..output import emit_one
from ..render import console


@click.group('agent')
def agent_cmd():
    """Background agent that polls remotes and auto-syncs pristines.

    \b
    Examples:
        repoman agent start
        repoman agent status
        repoman agent stop
    """
    pass


@agent_cmd.command('start')
@pass_cli
@handle_errors
def agent_start(cli: CliContext):
    """Start the agent in the background."""
    pid = AgentController(cli.settings, cli.config_path).start()
    console.print(f"Agent started (pid {pid}), log: {cli.settings.agent_log}")


@agent_cmd.command('stop')
@pass_cli
@handle_errors
def agent_stop(cli: CliContext):
    """Stop the running agent."""
    pid = AgentController(cli.settings).stop()
    console.print(f"Agent stopped (pid {pid})")


@agent_cmd.command('status')
@json_option
@pass_cli
@handle_errors
def agent_status(cli: CliContext, as_json: bool):
    """Show whether the agent is running."""
    status = AgentController(cli.settings).status()
    if as_json:
        emit_one(status)
    elif status.running:
        console.print(f"Agent running (pid {status.pid})")
        console.print(f"Log: {status.log_file}")
    else:
        console.print("Agent not running")


@agent_cmd.command('run')
@pass_cli
@handle_errors
def agent_run(cli: CliContext):
    """Run the agent in the foreground (used by 'agent start')."""
    AgentController(cli.settings).run_foreground(cli.repoman, debug=cli.debug)
