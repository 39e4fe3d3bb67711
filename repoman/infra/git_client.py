"""
Git client infrastructure for repoman.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic

Network operations (clone, fetch, ls-remote) go through ``run_network``,
which negotiates credentials with a CredentialProvider and retries while
the remote rejects them.
"""

import os
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING
import logging

from ..errors import GitCommandError, NetworkFailure

if TYPE_CHECKING:
    from ..domain.metadata import AuthConfig
    from ..services.credentials import CredentialProvider

logger = logging.getLogger(__name__)


@dataclass
class GitResult:
    """Outcome of one git invocation."""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout.strip()

    def lines(self) -> List[str]:
        return [line for line in self.stdout.splitlines() if line.strip()]


@dataclass
class GitStatus:
    """Result of git status for a working tree."""
    branch: Optional[str] = None
    clean: bool = True
    changed_files: int = 0
    ahead: int = 0
    behind: int = 0
    has_upstream: bool = False


class GitClient:
    """
    Abstraction over git commands.

    Example:
        client = GitClient()
        status = client.status("/path/to/clone")
        if status.clean:
            print("Working tree is clean")
    """

    def __init__(self, timeout: int = 900, executable: str = "git"):
        """
        Initialize GitClient.

        Args:
            timeout: Command timeout in seconds
            executable: git binary to invoke
        """
        self.timeout = timeout
        self.executable = executable

    def run(
        self,
        args: Sequence[str],
        cwd: Optional[os.PathLike] = None,
        env: Optional[Dict[str, str]] = None,
        check: bool = False,
    ) -> GitResult:
        """
        Run a git command.

        Args:
            args: Arguments after ``git``
            cwd: Working directory
            env: Extra environment variables
            check: Raise GitCommandError on non-zero exit

        Returns:
            GitResult with stdout, stderr and return code
        """
        args = [str(a) for a in args]
        full_env = None
        if env:
            full_env = os.environ.copy()
            full_env.update(env)

        logger.debug(f"git {' '.join(args)} (cwd={cwd})")
        try:
            proc = subprocess.run(
                [self.executable, *args],
                cwd=str(cwd) if cwd else None,
                env=full_env,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
            result = GitResult(args, proc.returncode, proc.stdout or "", proc.stderr or "")
        except subprocess.TimeoutExpired:
            logger.warning(f"Git command timed out: git {' '.join(args)}")
            result = GitResult(args, -1, "", f"timed out after {self.timeout}s")
        except FileNotFoundError as e:
            raise GitCommandError(args, 127, f"git executable not found: {e}") from e

        if check and not result.ok:
            raise GitCommandError(args, result.returncode, result.stderr)
        return result

    def run_network(
        self,
        args: Sequence[str],
        url: str,
        credentials: 'CredentialProvider',
        auth: Optional['AuthConfig'] = None,
        cwd: Optional[os.PathLike] = None,
    ) -> GitResult:
        """
        Run a git command that talks to ``url``.

        One attempt counter is created for the whole operation. Before every
        attempt the provider is asked for a credential; it raises
        AuthenticationFailed once the attempts are used up.

        Raises:
            AuthenticationFailed: credentials were rejected too often
            NetworkFailure: git failed for a non-authentication reason
        """
        counter = credentials.new_counter()
        while True:
            credential = credentials.negotiate(url, counter, auth)
            result = self.run(args, cwd=cwd, env=credential.env)
            if result.ok:
                return result
            if credentials.is_auth_error(result.stderr):
                logger.debug(
                    f"Credential '{credential.kind.value}' rejected by {url} "
                    f"(attempt {counter.attempts})"
                )
                continue
            raise NetworkFailure(url, result.stderr.strip() or f"exit code {result.returncode}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_git_repo(self, path: os.PathLike) -> bool:
        """Check if path is a git working tree or bare repository."""
        if not Path(path).is_dir():
            return False
        return self.run(["rev-parse", "--git-dir"], cwd=path).ok

    def rev_parse(self, path: os.PathLike, ref: str = "HEAD") -> Optional[str]:
        result = self.run(["rev-parse", "--verify", "--quiet", ref], cwd=path)
        return result.output if result.ok and result.output else None

    def ref_exists(self, path: os.PathLike, ref: str) -> bool:
        return self.rev_parse(path, ref) is not None

    def current_branch(self, path: os.PathLike) -> Optional[str]:
        """Get current branch name, None when HEAD is detached."""
        result = self.run(["symbolic-ref", "--quiet", "--short", "HEAD"], cwd=path)
        if result.ok and result.output:
            return result.output
        return None

    def branches(self, path: os.PathLike) -> List[str]:
        result = self.run(["for-each-ref", "--format=%(refname:short)", "refs/heads"], cwd=path)
        return result.lines() if result.ok else []

    def tags(self, path: os.PathLike) -> List[str]:
        result = self.run(["tag", "--list"], cwd=path)
        return result.lines() if result.ok else []

    def config_get(self, path: os.PathLike, key: str) -> Optional[str]:
        result = self.run(["config", "--get", key], cwd=path)
        return result.output if result.ok and result.output else None

    def remotes(self, path: os.PathLike) -> Dict[str, str]:
        """Map remote name to fetch URL."""
        remotes = {}
        result = self.run(["remote"], cwd=path)
        if not result.ok:
            return remotes
        for name in result.lines():
            url = self.config_get(path, f"remote.{name.strip()}.url")
            if url:
                remotes[name.strip()] = url
        return remotes

    def last_commit_time(self, path: os.PathLike, ref: str = "HEAD") -> Optional[datetime]:
        """Committer time of ``ref``."""
        result = self.run(["log", "-1", "--format=%ct", ref], cwd=path)
        if not result.ok or not result.output:
            return None
        try:
            return datetime.fromtimestamp(int(result.output), tz=timezone.utc)
        except ValueError:
            return None

    def ahead_behind(self, path: os.PathLike, upstream: str) -> Optional[tuple]:
        result = self.run(["rev-list", "--left-right", "--count", f"HEAD...{upstream}"], cwd=path)
        if not result.ok:
            return None
        parts = result.output.split()
        if len(parts) != 2:
            return None
        try:
            return int(parts[0]), int(parts[1])
        except ValueError:
            return None

    def status(self, path: os.PathLike) -> GitStatus:
        """
        Get working tree status.

        Args:
            path: Path to a git working tree

        Returns:
            GitStatus with branch, dirty state and upstream divergence
        """
        status = GitStatus(branch=self.current_branch(path))

        result = self.run(["status", "--porcelain"], cwd=path)
        if result.ok:
            changed = result.lines()
            status.changed_files = len(changed)
            status.clean = not changed

        upstream = self.run(["rev-parse", "--abbrev-ref", "@{upstream}"], cwd=path)
        if upstream.ok and upstream.output:
            counts = self.ahead_behind(path, "@{upstream}")
            if counts is not None:
                status.has_upstream = True
                status.ahead, status.behind = counts

        return status

    def show_file(self, path: os.PathLike, ref: str, filename: str) -> Optional[str]:
        result = self.run(["show", f"{ref}:{filename}"], cwd=path)
        return result.stdout if result.ok else None

    def tree_files(self, path: os.PathLike, ref: str = "HEAD") -> List[str]:
        result = self.run(["ls-tree", "--name-only", ref], cwd=path)
        return result.lines() if result.ok else []
