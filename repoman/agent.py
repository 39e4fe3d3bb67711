"""
Background agent for repoman.

The agent polls the remotes of every initialized pristine. Each repository
is due ``sync_interval`` seconds after its last sync (or last check); the
loop sleeps until the earliest due time instead of ticking at a fixed rate.
When a repository is due the agent looks for a newer release tag and, if
``auto_sync`` is on, syncs the pristine.

Metadata is re-read on every wake, so edits made while the agent sleeps
(new repositories, changed intervals) take effect on the next cycle.

Process management mirrors a classic pid-file daemon:
- ``<logs_dir>/agent.pid`` holds the pid of the running agent
- ``<logs_dir>/agent.log`` receives its log output
"""

import asyncio
import os
import signal
import subprocess
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
import logging

from .api import Repoman
from .config import Settings, setup_logging
from .domain.metadata import SyncKind
from .errors import AgentError, RepomanError

logger = logging.getLogger(__name__)

MIN_SLEEP = 1.0
STOP_TIMEOUT = 30.0


@dataclass
class CheckResult:
    name: str
    new_tag: Optional[str] = None
    synced: bool = False
    error: Optional[str] = None


class AgentScheduler:
    """
    Due-time scheduler for pristine polling.

    Example:
        scheduler = AgentScheduler(Repoman())
        asyncio.run(scheduler.run())
    """

    def __init__(self, repoman: Repoman, clock: Callable[[], float] = time.time):
        self.repoman = repoman
        self.clock = clock
        self.stop_event: Optional[asyncio.Event] = None
        self._last_checked: Dict[str, float] = {}
        self.cycles = 0

    @property
    def default_interval(self) -> int:
        return self.repoman.settings.default_sync_interval

    def plan(self, now: float) -> Tuple[List[str], float]:
        """
        Work out which repositories are due at ``now``.

        Returns:
            (due names, seconds until the next repository becomes due)
        """
        due = []
        next_wait = float(self.default_interval)
        for name in self.repoman.pristines.initialized():
            try:
                metadata = self.repoman.store.read_metadata(name)
            except RepomanError as e:
                logger.warning(f"Skipping '{name}': {e}")
                continue

            interval = metadata.sync_interval or self.default_interval
            last = metadata.last_sync.timestamp.timestamp() if metadata.last_sync else None
            checked = self._last_checked.get(name)
            if checked is not None:
                last = max(last or 0.0, checked)

            if last is None or last + interval <= now:
                due.append(name)
            else:
                next_wait = min(next_wait, last + interval - now)

        return due, max(next_wait, MIN_SLEEP)

    def check_repo(self, name: str) -> CheckResult:
        """Look for a new tag and auto-sync one repository. Never raises."""
        result = CheckResult(name=name)
        try:
            metadata = self.repoman.store.read_metadata(name)
            new_tag = self.repoman.pristines.check_for_new_tag(name)
            if new_tag:
                logger.info(f"New tag for '{name}': {new_tag}")
                self.repoman.pristines.record_latest_tag(name, new_tag)
                result.new_tag = new_tag
            if metadata.auto_sync:
                self.repoman.pristines.sync(name, SyncKind.AUTO)
                result.synced = True
        except RepomanError as e:
            logger.error(f"Agent check of '{name}' failed: {e}")
            result.error = str(e)
        except Exception as e:
            logger.exception(f"Unexpected error checking '{name}'")
            result.error = str(e) or type(e).__name__
        finally:
            self._last_checked[name] = self.clock()
        return result

    async def run_cycle(self, names: List[str]) -> List[CheckResult]:
        """Check every due repository concurrently and wait for all of them."""
        results = await asyncio.gather(
            *(asyncio.to_thread(self.check_repo, name) for name in names)
        )
        self.cycles += 1
        return list(results)

    def request_stop(self) -> None:
        if self.stop_event is not None:
            self.stop_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except (NotImplementedError, RuntimeError, ValueError):
                logger.debug(f"Cannot install handler for {sig!r}")

    async def run(self, install_signals: bool = True, max_cycles: Optional[int] = None) -> None:
        """
        Main loop. Returns once a stop is requested; a cycle in flight
        always completes first.
        """
        self.stop_event = asyncio.Event()
        if install_signals:
            self._install_signal_handlers()
        logger.info("Agent started")

        while not self.stop_event.is_set():
            due, wait = self.plan(self.clock())
            if due:
                logger.info(f"Checking {len(due)} repositories: {', '.join(due)}")
                await self.run_cycle(due)
                if max_cycles is not None and self.cycles >= max_cycles:
                    break
                continue

            logger.debug(f"Sleeping {wait:.0f}s until the next repository is due")
            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=wait)
            except asyncio.TimeoutError:
                pass

        logger.info("Agent stopped")


@dataclass
class AgentStatus:
    running: bool
    pid: Optional[int]
    pid_file: str
    log_file: str

    def to_dict(self):
        return {
            'running': self.running,
            'pid': self.pid,
            'pid_file': self.pid_file,
            'log_file': self.log_file,
        }


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class AgentController:
    """Starts, stops and inspects the agent process through its pid file."""

    def __init__(self, settings: Settings, config_path: Optional[os.PathLike] = None):
        self.settings = settings
        self.config_path = config_path

    @property
    def pid_file(self):
        return self.settings.pid_file

    def read_pid(self) -> Optional[int]:
        try:
            return int(self.pid_file.read_text().strip())
        except FileNotFoundError:
            return None
        except ValueError:
            logger.warning(f"Ignoring malformed pid file {self.pid_file}")
            return None

    def running_pid(self) -> Optional[int]:
        """Pid of the live agent; removes a stale pid file."""
        pid = self.read_pid()
        if pid is None:
            if self.pid_file.exists():
                self.pid_file.unlink(missing_ok=True)
            return None
        if pid_alive(pid):
            return pid
        logger.info(f"Removing stale pid file for dead process {pid}")
        self.pid_file.unlink(missing_ok=True)
        return None

    def status(self) -> AgentStatus:
        pid = self.running_pid()
        return AgentStatus(
            running=pid is not None,
            pid=pid,
            pid_file=str(self.pid_file),
            log_file=str(self.settings.agent_log),
        )

    def _settings_env(self) -> Dict[str, str]:
        """Environment that makes the child resolve the same settings."""
        s = self.settings
        env = {
            'REPOMAN_VAULT_DIR': str(s.vault_dir),
            'REPOMAN_PRISTINES_DIR': str(s.pristines_dir),
            'REPOMAN_CLONES_DIR': str(s.clones_dir),
            'REPOMAN_PLUGINS_DIR': str(s.plugins_dir),
            'REPOMAN_LOGS_DIR': str(s.logs_dir),
            'REPOMAN_DEFAULT_SYNC_INTERVAL': str(s.default_sync_interval),
            'REPOMAN_LOCK_TIMEOUT': str(s.lock_timeout),
            'REPOMAN_GIT_TIMEOUT': str(s.git_timeout),
            'REPOMAN_MAX_AUTH_ATTEMPTS': str(s.max_auth_attempts),
            'REPOMAN_LOGGING_LEVEL': s.log_level,
        }
        if self.config_path is not None:
            env['REPOMAN_CONFIG'] = str(Path(self.config_path).expanduser().resolve())
        return env

    def write_pid(self, pid: int) -> None:
        self.pid_file.parent.mkdir(parents=True, exist_ok=True)
        self.pid_file.write_text(f"{pid}\n")

    def start(self) -> int:
        """
        Launch ``python -m repoman agent run`` in the background.

        Raises:
            AgentError: an agent is already running
        """
        existing = self.running_pid()
        if existing is not None:
            raise AgentError(f"Agent already running (pid {existing})")

        self.settings.logs_dir.mkdir(parents=True, exist_ok=True)
        env = os.environ.copy()
        env.update(self._settings_env())
        with open(self.settings.agent_log, 'a') as log:
            process = subprocess.Popen(
                [sys.executable, "-m", "repoman", "agent", "run"],
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        self.write_pid(process.pid)
        logger.info(f"Agent started (pid {process.pid}), logging to {self.settings.agent_log}")
        return process.pid

    def stop(self, timeout: float = STOP_TIMEOUT) -> int:
        """
        Send SIGTERM and wait for the agent to exit.

        Raises:
            AgentError: no agent is running, or it did not exit in time
        """
        pid = self.running_pid()
        if pid is None:
            raise AgentError("Agent is not running")

        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            self.pid_file.unlink(missing_ok=True)
            return pid

        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if not pid_alive(pid):
                self.pid_file.unlink(missing_ok=True)
                logger.info(f"Agent stopped (pid {pid})")
                return pid
            time.sleep(0.2)
        raise AgentError(f"Agent (pid {pid}) did not exit within {timeout:g}s")

    def run_foreground(self, repoman: Optional[Repoman] = None, debug: bool = False) -> None:
        """Run the scheduler in this process until SIGTERM/SIGINT."""
        existing = self.running_pid()
        if existing is not None and existing != os.getpid():
            raise AgentError(f"Agent already running (pid {existing})")

        setup_logging(self.settings, debug=debug, log_file=self.settings.agent_log,
                      console=sys.stderr.isatty())
        self.write_pid(os.getpid())
        try:
            scheduler = AgentScheduler(repoman or Repoman(self.settings))
            asyncio.run(scheduler.run())
        finally:
            if self.read_pid() == os.getpid():
                self.pid_file.unlink(missing_ok=True)
