"""
Standard exit codes for repoman commands.

Following Unix/POSIX conventions for command-line tools.
"""

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
NOT_FOUND = 64           # Repository, pristine, clone or alias not found
CONFLICT = 65            # Name already taken (duplicate, alias clash, existing clone)
CONFIG_ERROR = 66        # Configuration file error
PERMISSION_ERROR = 67    # Filesystem operation failed
NETWORK_ERROR = 68       # Remote unreachable or git transport failure
AUTH_ERROR = 69          # Authentication/authorization failed
DATA_ERROR = 70          # Corrupt vault or metadata document
PARTIAL_SUCCESS = 71     # Some operations succeeded, some failed
LOCK_ERROR = 72          # Could not acquire a pristine lock
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class PartialSuccessError(CommandError):
    """Raised when some operations succeed and some fail."""
    def __init__(self, message: str, succeeded: int = 0, failed: int = 0):
        super().__init__(message, PARTIAL_SUCCESS)
        self.succeeded = succeeded
        self.failed = failed
