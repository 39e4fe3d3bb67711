"""
Credential negotiation for git network operations.

Every network operation creates one AttemptCounter and hands it to
``CredentialProvider.negotiate`` before each try. The counter belongs to
that operation alone; once it passes the maximum, negotiation raises
AuthenticationFailed instead of offering yet another credential.

Credentials are offered in priority order among those the URL allows:

1. the repository's configured SSH key (``auth_config.ssh_key_path``)
2. a token read from ``auth_config.token_env_var``
3. the default SSH agent / identity, or git's own credential helper for HTTPS

A failed attempt moves on to the next candidate; the last candidate is
repeated until the attempts run out.
"""

import base64
import os
import re
import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
import logging

from ..domain.metadata import AuthConfig
from ..errors import AuthenticationFailed

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3

AUTH_ERROR_PATTERNS = (
    'authentication failed',
    'permission denied',
    'could not read username',
    'could not read password',
    'invalid username or password',
    'invalid credentials',
    'access denied',
    'terminal prompts disabled',
    'host key verification failed',
    'the requested url returned error: 401',
    'the requested url returned error: 403',
    'repository not found',
)

_SCP_LIKE = re.compile(r'^(?:(?P<user>[\w.-]+)@)?[\w.-]+:(?!//)')


class CredentialKind(Enum):
    SSH_KEY = "ssh_key"
    TOKEN = "token"
    DEFAULT = "default"
    NONE = "none"


class Transport(Enum):
    SSH = "ssh"
    HTTPS = "https"
    LOCAL = "local"


@dataclass
class AttemptCounter:
    """Attempts made by one network operation, across all its retries."""
    maximum: int = DEFAULT_MAX_ATTEMPTS
    attempts: int = 0

    def increment(self) -> int:
        self.attempts += 1
        return self.attempts

    @property
    def exhausted(self) -> bool:
        return self.attempts > self.maximum


@dataclass
class Credential:
    """A credential expressed as environment for the git child process."""
    kind: CredentialKind
    env: Dict[str, str] = field(default_factory=dict)


def transport_for(url: str) -> Transport:
    """Which credential types a URL can use."""
    lowered = url.lower()
    if lowered.startswith(('ssh://', 'git+ssh://', 'ssh+git://')):
        return Transport.SSH
    if lowered.startswith(('http://', 'https://')):
        return Transport.HTTPS
    if lowered.startswith('file://') or lowered.startswith(('/', '.', '~')):
        return Transport.LOCAL
    if _SCP_LIKE.match(url) and not os.path.exists(url):
        return Transport.SSH
    return Transport.LOCAL


def username_for(url: str) -> str:
    """User name embedded in the URL, defaulting to ``git``."""
    match = re.match(r'^[a-z+]+://(?P<user>[^@/:]+)(?::[^@/]*)?@', url, re.IGNORECASE)
    if match:
        return match.group('user')
    match = _SCP_LIKE.match(url)
    if match and match.group('user'):
        return match.group('user')
    return 'git'


def is_auth_error(message: Optional[str]) -> bool:
    """True when git's stderr says the remote rejected our credentials."""
    if not message:
        return False
    lowered = message.lower()
    return any(pattern in lowered for pattern in AUTH_ERROR_PATTERNS)


class CredentialProvider:
    """
    Chooses credentials for git network operations.

    Example:
        provider = CredentialProvider(max_attempts=3)
        counter = provider.new_counter()
        credential = provider.negotiate(url, counter, metadata.auth_config)
    """

    def __init__(self, max_attempts: int = DEFAULT_MAX_ATTEMPTS, environ: Optional[Dict[str, str]] = None):
        self.max_attempts = max_attempts
        self._environ = environ if environ is not None else os.environ

    def new_counter(self) -> AttemptCounter:
        return AttemptCounter(maximum=self.max_attempts)

    @staticmethod
    def is_auth_error(message: Optional[str]) -> bool:
        return is_auth_error(message)

    def candidates(self, url: str, auth: Optional[AuthConfig] = None) -> List[Credential]:
        """Credentials usable for ``url``, best first."""
        auth = auth or AuthConfig()
        transport = transport_for(url)
        base_env = {'GIT_TERMINAL_PROMPT': '0'}

        if transport is Transport.LOCAL:
            return [Credential(CredentialKind.NONE, dict(base_env))]

        result = []
        if transport is Transport.SSH:
            if auth.ssh_key_path:
                key = Path(auth.ssh_key_path).expanduser()
                if key.exists():
                    result.append(Credential(CredentialKind.SSH_KEY, {
                        **base_env,
                        'GIT_SSH_COMMAND': f"ssh -i {shlex.quote(str(key))} -o IdentitiesOnly=yes -o BatchMode=yes",
                    }))
                else:
                    logger.warning(f"Configured SSH key {key} does not exist; skipping it")
            result.append(Credential(CredentialKind.DEFAULT, {
                **base_env,
                'GIT_SSH_COMMAND': "ssh -o BatchMode=yes",
            }))
            return result

        if auth.token_env_var:
            token = self._environ.get(auth.token_env_var)
            if token:
                pair = f"{username_for(url)}:{token}".encode()
                header = "Authorization: Basic " + base64.b64encode(pair).decode()
                result.append(Credential(CredentialKind.TOKEN, {
                    **base_env,
                    'GIT_CONFIG_COUNT': '1',
                    'GIT_CONFIG_KEY_0': 'http.extraHeader',
                    'GIT_CONFIG_VALUE_0': header,
                }))
            else:
                logger.warning(f"Token variable {auth.token_env_var} is not set; skipping it")
        result.append(Credential(CredentialKind.DEFAULT, dict(base_env)))
        return result

    def negotiate(self, url: str, counter: AttemptCounter, auth: Optional[AuthConfig] = None) -> Credential:
        """
        Offer the next credential for ``url``.

        Raises:
            AuthenticationFailed: once ``counter`` exceeds the maximum
        """
        attempt = counter.increment()
        if counter.exhausted:
            raise AuthenticationFailed(url, counter.maximum)

        options = self.candidates(url, auth)
        credential = options[min(attempt, len(options)) - 1]
        logger.debug(f"Offering {credential.kind.value} credential for {url} (attempt {attempt})")
        return credential
