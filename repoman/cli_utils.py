"""
Common CLI utilities and decorators for consistent command behavior.
"""

import sys
from dataclasses import dataclass, field
from functools import wraps
from typing import Optional

import click

from .config import Settings, load_config, setup_logging
from .domain.operation import OperationSummary
from .exit_codes import (
    CommandError,
    PartialSuccessError,
    INTERRUPTED,
    USAGE_ERROR,
)
from .output import emit_error
from .render import err_console


@dataclass
class CliContext:
    """
    State shared by all commands of one invocation.

    The Repoman facade is built on first use so that ``--help`` and
    ``--version`` never touch the filesystem.
    """
    debug: bool = False
    config_path: Optional[str] = None
    _repoman: Optional[object] = field(default=None, repr=False)
    _settings: Optional[Settings] = field(default=None, repr=False)

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            if self._repoman is not None:
                self._settings = self._repoman.settings
            else:
                self._settings = Settings.from_config(load_config(self.config_path))
                setup_logging(self._settings, debug=self.debug)
        return self._settings

    @property
    def repoman(self):
        if self._repoman is None:
            from .api import Repoman
            self._repoman = Repoman(self.settings)
        return self._repoman


pass_cli = click.make_pass_decorator(CliContext, ensure=True)


def json_option(func):
    """Add ``--json`` for JSONL output."""
    return click.option('--json', 'as_json', is_flag=True,
                        help='Output JSONL instead of tables')(func)


def handle_errors(func):
    """
    Turn repoman errors into a one-line message and the matching exit code.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        as_json = kwargs.get('as_json', False)
        try:
            return func(*args, **kwargs)
        except click.ClickException:
            raise
        except KeyboardInterrupt:
            err_console.print("[red]Interrupted[/red]")
            sys.exit(INTERRUPTED)
        except CommandError as e:
            if as_json:
                emit_error(str(e), type=type(e).__name__, exit_code=e.exit_code)
            else:
                err_console.print(f"[red]Error:[/red] {e}", highlight=False)
            sys.exit(e.exit_code)
        except ValueError as e:
            if as_json:
                emit_error(str(e), type="ValueError", exit_code=USAGE_ERROR)
            else:
                err_console.print(f"[red]Error:[/red] {e}", highlight=False)
            sys.exit(USAGE_ERROR)

    return wrapper


def check_summary(summary: OperationSummary) -> None:
    """Raise PartialSuccessError when any repository in a bulk run failed."""
    if summary.failed:
        raise PartialSuccessError(
            f"{summary.operation}: {summary.failed} of {summary.total} repositories failed",
            succeeded=summary.successful,
            failed=summary.failed,
        )
