"""
Error taxonomy for repoman.

Every error raised by the core is a RepomanError, which is a CommandError
carrying the exit code the CLI should terminate with.
"""

from typing import Optional

from .exit_codes import (
    CommandError,
    NOT_FOUND,
    CONFLICT,
    PERMISSION_ERROR,
    NETWORK_ERROR,
    AUTH_ERROR,
    DATA_ERROR,
    LOCK_ERROR,
    GENERAL_ERROR,
)

AUTH_HELP = """\
Authentication failed. Possible solutions:
  - For SSH: make sure your key is loaded with 'ssh-add ~/.ssh/id_ed25519'
  - On macOS: add the key to the keychain with 'ssh-add --apple-use-keychain ~/.ssh/id_ed25519'
  - For HTTPS: configure a credential helper ('git config --global credential.helper store')
    or set auth_config.token_env_var in the repository metadata
  - Check that you have access to the repository"""


class RepomanError(CommandError):
    """Base class for all repoman errors."""


class DuplicateRepository(RepomanError):
    """A vault entry (or alias) with this name already exists."""

    def __init__(self, name: str):
        super().__init__(f"Repository '{name}' already exists in vault", CONFLICT)
        self.name = name


class RepositoryNotFound(RepomanError):
    """
    Lookup failed.

    ``kind`` says what was looked up: ``vault``, ``pristine``, ``clone``,
    ``branch`` or ``alias``.
    """

    _MESSAGES = {
        'vault': "Repository '{name}' not found in vault",
        'pristine': "Pristine '{name}' not found. Run 'repoman init {name}' first",
        'clone': "Clone or pristine '{name}' not found",
        'branch': "Branch '{name}' not found",
        'alias': "Alias '{name}' not found",
    }

    def __init__(self, name: str, kind: str = 'vault', detail: Optional[str] = None):
        message = self._MESSAGES.get(kind, "'{name}' not found").format(name=name)
        if detail:
            message = f"{message} {detail}"
        super().__init__(message, NOT_FOUND)
        self.name = name
        self.kind = kind


class AlreadyExists(RepomanError):
    """A pristine or clone directory is already present."""

    def __init__(self, what: str, path: Optional[str] = None):
        message = f"{what} already exists"
        if path:
            message += f" at {path}"
        super().__init__(message, CONFLICT)
        self.path = path


class NamingConflict(RepomanError):
    """An alias or clone name collides with an existing name, or is invalid."""

    def __init__(self, message: str):
        super().__init__(message, CONFLICT)


class AuthenticationFailed(RepomanError):
    """Credential negotiation gave up."""

    def __init__(self, url: str, attempts: int):
        super().__init__(
            f"Authentication failed for {url} after {attempts} attempts\n\n{AUTH_HELP}",
            AUTH_ERROR,
        )
        self.url = url
        self.attempts = attempts


class NetworkFailure(RepomanError):
    """A git network operation failed for a reason other than authentication."""

    def __init__(self, url: str, message: str):
        super().__init__(f"Network operation on {url} failed: {message}", NETWORK_ERROR)
        self.url = url


class CorruptMetadata(RepomanError):
    """A JSON document exists but cannot be parsed or has the wrong shape."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Corrupt metadata in {path}: {reason}", DATA_ERROR)
        self.path = path


class FilesystemFailure(RepomanError):
    """Creating, moving or removing files on disk failed."""

    def __init__(self, message: str):
        super().__init__(message, PERMISSION_ERROR)


class GitCommandError(RepomanError):
    """A local git command exited non-zero."""

    def __init__(self, args, returncode: int, stderr: str = ""):
        command = ' '.join(['git', *args])
        message = f"'{command}' failed with exit code {returncode}"
        if stderr:
            message += f": {stderr.strip()}"
        super().__init__(message, GENERAL_ERROR)
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr


class LockTimeout(RepomanError):
    """Another process holds the pristine lock for too long."""

    def __init__(self, name: str, timeout: float):
        super().__init__(
            f"Timed out after {timeout:g}s waiting for the lock on pristine '{name}'",
            LOCK_ERROR,
        )
        self.name = name


class AgentError(RepomanError):
    """Agent start/stop failed."""


class UpdateFailed(RepomanError):
    """The pristine synced but at least one clone could not be updated."""

    def __init__(self, name: str, head: Optional[str], updates):
        self.name = name
        self.head = head
        self.updates = list(updates)
        failed = [u.clone for u in self.updates if u.outcome == "failed"]
        super().__init__(
            f"Update of '{name}' failed for clone(s): {', '.join(failed)}",
            GENERAL_ERROR,
        )
