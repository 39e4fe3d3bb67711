"""
Repository hooks.

``hook_config`` in a repository's metadata maps an event name to one shell
command or a list of them:

    "hook_config": {
        "post_clone": ["make bootstrap"],
        "pre_destroy": "git stash list"
    }

Hooks run in the clone directory with ``REPOMAN_REPO``, ``REPOMAN_CLONE``
and ``REPOMAN_CLONE_PATH`` set. A failing hook is logged; it never undoes
the clone or blocks the destroy.
"""

import os
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

HOOK_EVENTS = ('post_clone', 'pre_destroy')


@dataclass
class HookResult:
    event: str
    command: str
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def commands_for(hook_config: Optional[Dict[str, Any]], event: str) -> List[str]:
    if not hook_config:
        return []
    value = hook_config.get(event)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v]


def run_hooks(
    hook_config: Optional[Dict[str, Any]],
    event: str,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: int = 600,
) -> List[HookResult]:
    """
    Run every command registered for ``event``.

    Args:
        hook_config: The repository's ``hook_config``
        event: One of HOOK_EVENTS
        cwd: Working directory (the clone); must exist
        env: Extra environment variables for the hook

    Returns:
        One HookResult per command, in order
    """
    results = []
    commands = commands_for(hook_config, event)
    if not commands:
        return results

    full_env = os.environ.copy()
    full_env.update(env or {})
    for command in commands:
        logger.info(f"Running {event} hook: {command}")
        try:
            proc = subprocess.run(
                command,
                shell=True,
                cwd=cwd,
                env=full_env,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
            output = (proc.stdout or '') + (proc.stderr or '')
            result = HookResult(event, command, proc.returncode, output.strip())
        except subprocess.TimeoutExpired:
            result = HookResult(event, command, -1, f"timed out after {timeout}s")
        except OSError as e:
            result = HookResult(event, command, -1, str(e))

        if result.ok:
            if result.output:
                logger.debug(result.output)
        else:
            logger.warning(f"{event} hook '{command}' failed ({result.returncode}): {result.output}")
        results.append(result)
    return results


def clone_hook_env(repo: str, clone_name: str, clone_path: str) -> Dict[str, str]:
    return {
        'REPOMAN_REPO': repo,
        'REPOMAN_CLONE': clone_name,
        'REPOMAN_CLONE_PATH': clone_path,
    }
