"""
Shared fixtures for repoman tests.

Tests that need the git executable use the ``upstream`` factory and are
skipped when git is not installed.
"""

import os
import shutil
import subprocess
from pathlib import Path

import pytest

from repoman.api import Repoman
from repoman.config import Settings

GIT = shutil.which("git")

requires_git = pytest.mark.skipif(GIT is None, reason="git executable not available")

GIT_ENV = {
    'GIT_AUTHOR_NAME': 'Repoman Test',
    'GIT_AUTHOR_EMAIL': 'test@example.com',
    'GIT_COMMITTER_NAME': 'Repoman Test',
    'GIT_COMMITTER_EMAIL': 'test@example.com',
    'GIT_CONFIG_NOSYSTEM': '1',
}


def git(*args, cwd=None, env=None):
    full_env = os.environ.copy()
    full_env.update(GIT_ENV)
    full_env.update(env or {})
    return subprocess.run(
        ["git", *args], cwd=cwd, env=full_env,
        capture_output=True, text=True, check=True,
    ).stdout.strip()


class Upstream:
    """A throwaway non-bare repository standing in for a remote."""

    def __init__(self, path: Path):
        self.path = path
        path.mkdir(parents=True)
        git("init", "--quiet", cwd=path)
        git("symbolic-ref", "HEAD", "refs/heads/main", cwd=path)
        git("config", "commit.gpgsign", "false", cwd=path)

    @property
    def url(self) -> str:
        return str(self.path)

    def commit(self, filename="file.txt", content=None, message=None, date=None):
        target = self.path / filename
        target.write_text(content if content is not None else f"{filename} {os.urandom(4).hex()}\n")
        git("add", filename, cwd=self.path)
        env = {'GIT_AUTHOR_DATE': date, 'GIT_COMMITTER_DATE': date} if date else None
        git("commit", "--quiet", "-m", message or f"update {filename}", cwd=self.path, env=env)
        return git("rev-parse", "HEAD", cwd=self.path)

    def tag(self, name):
        git("tag", name, cwd=self.path)

    def branch(self, name):
        git("branch", name, cwd=self.path)

    def head(self):
        return git("rev-parse", "HEAD", cwd=self.path)


@pytest.fixture
def settings(tmp_path):
    """Settings with every directory under a temporary base."""
    s = Settings.under(tmp_path / "repoman", default_sync_interval=3600, lock_timeout=5)
    s.ensure_dirs()
    return s


@pytest.fixture
def rm(settings):
    """A Repoman facade over temporary directories."""
    return Repoman(settings)


@pytest.fixture
def upstream(tmp_path):
    """Factory for upstream repositories with one initial commit."""
    def _make(name="project", readme="# Project\n\nA test project.\n"):
        repo = Upstream(tmp_path / "remotes" / name)
        repo.commit("README.md", content=readme, message="initial commit")
        return repo
    return _make
