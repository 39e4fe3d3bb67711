"""
Tests for credential negotiation and authenticated git retries.
"""

import base64
from unittest.mock import patch

import pytest

from repoman.domain.metadata import AuthConfig
from repoman.errors import AuthenticationFailed, NetworkFailure
from repoman.infra.git_client import GitClient, GitResult
from repoman.services.credentials import (
    AttemptCounter,
    CredentialKind,
    CredentialProvider,
    Transport,
    is_auth_error,
    transport_for,
    username_for,
)

SSH_URL = "git@github.com:owner/private.git"
HTTPS_URL = "https://github.com/owner/private.git"


class TestTransport:

    @pytest.mark.parametrize("url,expected", [
        ("https://github.com/a/b.git", Transport.HTTPS),
        ("http://example.com/a.git", Transport.HTTPS),
        ("ssh://git@example.com/a.git", Transport.SSH),
        ("git@github.com:a/b.git", Transport.SSH),
        ("/srv/git/a.git", Transport.LOCAL),
        ("file:///srv/git/a.git", Transport.LOCAL),
    ])
    def test_transport_for(self, url, expected):
        assert transport_for(url) is expected

    def test_username_for(self):
        assert username_for("https://alice@example.com/a.git") == "alice"
        assert username_for("deploy@host:a.git") == "deploy"
        assert username_for("https://example.com/a.git") == "git"


class TestAuthErrorDetection:

    @pytest.mark.parametrize("stderr", [
        "git@github.com: Permission denied (publickey).",
        "fatal: Authentication failed for 'https://github.com/a/b.git/'",
        "fatal: could not read Username for 'https://github.com': terminal prompts disabled",
        "ERROR: Repository not found.",
        "The requested URL returned error: 403",
    ])
    def test_recognized(self, stderr):
        assert is_auth_error(stderr)

    @pytest.mark.parametrize("stderr", [
        None,
        "",
        "fatal: unable to access 'https://x/': Could not resolve host: x",
        "fatal: the remote end hung up unexpectedly",
    ])
    def test_not_auth(self, stderr):
        assert not is_auth_error(stderr)


class TestCandidates:

    def test_local_gets_no_credential(self):
        candidates = CredentialProvider().candidates("/srv/git/tool.git")
        assert [c.kind for c in candidates] == [CredentialKind.NONE]
        assert candidates[0].env['GIT_TERMINAL_PROMPT'] == '0'

    def test_ssh_key_before_default(self, tmp_path):
        key = tmp_path / "id_deploy"
        key.write_text("key")
        candidates = CredentialProvider().candidates(SSH_URL, AuthConfig(ssh_key_path=str(key)))

        assert [c.kind for c in candidates] == [CredentialKind.SSH_KEY, CredentialKind.DEFAULT]
        assert str(key) in candidates[0].env['GIT_SSH_COMMAND']
        assert "IdentitiesOnly=yes" in candidates[0].env['GIT_SSH_COMMAND']
        assert "BatchMode=yes" in candidates[1].env['GIT_SSH_COMMAND']

    def test_missing_ssh_key_is_skipped(self, tmp_path):
        auth = AuthConfig(ssh_key_path=str(tmp_path / "absent"))
        candidates = CredentialProvider().candidates(SSH_URL, auth)
        assert [c.kind for c in candidates] == [CredentialKind.DEFAULT]

    def test_token_for_https(self):
        provider = CredentialProvider(environ={"TOOL_TOKEN": "s3cret"})
        candidates = provider.candidates(HTTPS_URL, AuthConfig(token_env_var="TOOL_TOKEN"))

        assert [c.kind for c in candidates] == [CredentialKind.TOKEN, CredentialKind.DEFAULT]
        env = candidates[0].env
        assert env['GIT_CONFIG_KEY_0'] == 'http.extraHeader'
        encoded = env['GIT_CONFIG_VALUE_0'].split()[-1]
        assert base64.b64decode(encoded).decode() == "git:s3cret"

    def test_unset_token_is_skipped(self):
        provider = CredentialProvider(environ={})
        candidates = provider.candidates(HTTPS_URL, AuthConfig(token_env_var="TOOL_TOKEN"))
        assert [c.kind for c in candidates] == [CredentialKind.DEFAULT]

    def test_ssh_key_ignored_for_https(self, tmp_path):
        key = tmp_path / "id_deploy"
        key.write_text("key")
        candidates = CredentialProvider(environ={}).candidates(HTTPS_URL, AuthConfig(ssh_key_path=str(key)))
        assert [c.kind for c in candidates] == [CredentialKind.DEFAULT]


class TestNegotiate:

    def test_counter_exhaustion(self):
        counter = AttemptCounter(maximum=2)
        provider = CredentialProvider(max_attempts=2)
        provider.negotiate(HTTPS_URL, counter)
        provider.negotiate(HTTPS_URL, counter)
        with pytest.raises(AuthenticationFailed):
            provider.negotiate(HTTPS_URL, counter)

    def test_rotates_through_candidates(self, tmp_path):
        key = tmp_path / "id_deploy"
        key.write_text("key")
        auth = AuthConfig(ssh_key_path=str(key))
        provider = CredentialProvider(max_attempts=3)
        counter = provider.new_counter()

        kinds = [provider.negotiate(SSH_URL, counter, auth).kind for _ in range(3)]

        assert kinds == [CredentialKind.SSH_KEY, CredentialKind.DEFAULT, CredentialKind.DEFAULT]

    def test_counters_are_independent(self):
        provider = CredentialProvider(max_attempts=1)
        provider.negotiate(HTTPS_URL, provider.new_counter())
        provider.negotiate(HTTPS_URL, provider.new_counter())


class TestRunNetwork:
    """GitClient.run_network retry behaviour with git mocked out."""

    def _rejected(self, args, **kwargs):
        return GitResult(list(args), 128, "", "git@github.com: Permission denied (publickey).")

    def test_auth_failure_gives_up_after_max_attempts(self):
        client = GitClient()
        provider = CredentialProvider(max_attempts=3)

        with patch.object(GitClient, 'run', side_effect=self._rejected) as mock_run:
            with pytest.raises(AuthenticationFailed) as exc:
                client.run_network(["ls-remote", SSH_URL], SSH_URL, provider)

        assert mock_run.call_count == 3
        assert exc.value.exit_code == 69
        assert "ssh-add" in str(exc.value)

    def test_success_after_rejection(self):
        client = GitClient()
        provider = CredentialProvider(max_attempts=3)
        results = [
            self._rejected(["fetch"]),
            GitResult(["fetch"], 0, "ok\n", ""),
        ]

        with patch.object(GitClient, 'run', side_effect=results) as mock_run:
            result = client.run_network(["fetch"], SSH_URL, provider)

        assert result.output == "ok"
        assert mock_run.call_count == 2

    def test_non_auth_failure_is_network_failure(self):
        client = GitClient()
        failure = GitResult(["fetch"], 128, "", "fatal: Could not resolve host: github.com")

        with patch.object(GitClient, 'run', return_value=failure) as mock_run:
            with pytest.raises(NetworkFailure) as exc:
                client.run_network(["fetch"], HTTPS_URL, CredentialProvider())

        assert mock_run.call_count == 1
        assert "Could not resolve host" in str(exc.value)
        assert exc.value.exit_code == 68

    def test_credential_env_reaches_git(self):
        client = GitClient()
        provider = CredentialProvider(environ={"TOOL_TOKEN": "t"})

        with patch.object(GitClient, 'run', return_value=GitResult(["fetch"], 0)) as mock_run:
            client.run_network(["fetch"], HTTPS_URL, provider, auth=AuthConfig(token_env_var="TOOL_TOKEN"))

        env = mock_run.call_args.kwargs['env']
        assert env['GIT_TERMINAL_PROMPT'] == '0'
        assert env['GIT_CONFIG_KEY_0'] == 'http.extraHeader'
