"""
Pristine manager for repoman.

A pristine is a bare mirror of a vault entry's default remote, kept at
``<pristines_dir>/<name>``. Clones borrow its object store through git
alternates, so a pristine is never checked out or edited directly.
"""

import re
import shutil
from pathlib import Path
from typing import List, Optional
import logging

from ..config import Settings
from ..domain.metadata import RepoMetadata, SyncKind
from ..domain.tag import latest_tag
from ..domain.vault import utcnow
from ..errors import AlreadyExists, FilesystemFailure, RepositoryNotFound
from ..infra.git_client import GitClient
from ..infra.locks import pristine_lock
from ..infra.metadata_store import MetadataStore
from .credentials import CredentialProvider

logger = logging.getLogger(__name__)

FETCH_REFSPECS = ["+refs/heads/*:refs/heads/*", "+refs/tags/*:refs/tags/*"]
_README = re.compile(r'^readme(\.(md|markdown|rst|txt|org|adoc))?$', re.IGNORECASE)


class PristineService:
    """
    Creates, refreshes and destroys pristine mirrors.

    Example:
        service = PristineService(settings, store, git, credentials)
        service.init("ripgrep")
        service.sync("ripgrep")
    """

    def __init__(
        self,
        settings: Settings,
        store: MetadataStore,
        git: Optional[GitClient] = None,
        credentials: Optional[CredentialProvider] = None,
    ):
        self.settings = settings
        self.store = store
        self.git = git or GitClient(timeout=settings.git_timeout)
        self.credentials = credentials or CredentialProvider(settings.max_auth_attempts)

    def path(self, name: str) -> Path:
        return self.settings.pristine_path(name)

    def exists(self, name: str) -> bool:
        return self.path(name).is_dir()

    def _lock(self, name: str):
        return pristine_lock(self.settings.pristines_dir, name, self.settings.lock_timeout)

    def _metadata(self, name: str) -> RepoMetadata:
        """Metadata for ``name``, recreated from the vault entry if missing."""
        if not self.store.metadata_exists(name):
            entry = self.store.get_entry(name)
            logger.warning(f"Metadata for '{name}' missing; recreating from vault entry")
            self.store.write_metadata(
                name, RepoMetadata.new(entry.urls, self.settings.default_sync_interval)
            )
        return self.store.read_metadata(name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self, name: str) -> Path:
        """
        Create the pristine for a vault entry with a bare clone.

        Raises:
            RepositoryNotFound: ``name`` is not in the vault
            AlreadyExists: the pristine directory is already present
            AuthenticationFailed / NetworkFailure: the clone failed
        """
        name = self.store.resolve(name)
        entry = self.store.get_entry(name)
        metadata = self._metadata(name)
        path = self.path(name)

        with self._lock(name):
            if path.exists():
                raise AlreadyExists(f"Pristine '{name}'", str(path))

            self.settings.pristines_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Creating pristine '{name}' from {entry.default_url}")
            try:
                self.git.run_network(
                    ["clone", "--bare", entry.default_url, str(path)],
                    url=entry.default_url,
                    credentials=self.credentials,
                    auth=metadata.auth_config,
                )
                self.git.run(["config", "remote.origin.fetch", FETCH_REFSPECS[0]], cwd=path, check=True)
                default_branch = self.git.current_branch(path)
                head = self.git.rev_parse(path, "HEAD")
                branches = self.git.branches(path)
                tag = latest_tag(self.git.tags(path))
                readme = self._readme_excerpt(path)
            except BaseException:
                _remove_partial(path)
                raise

        def _record(md: RepoMetadata) -> None:
            md.default_branch = default_branch
            md.current_branch_hash = head
            md.tracked_branches = branches
            md.latest_tag = tag
            md.pristine_created = utcnow()
            md.set_readme(readme)
            md.touch()

        self.store.update_metadata(name, _record)
        logger.info(f"Pristine '{name}' created at {path}")
        return path

    def sync(self, name: str, kind: SyncKind = SyncKind.MANUAL) -> Optional[str]:
        """
        Fetch every branch and tag from the default remote.

        The pristine's default branch follows the remote's HEAD. Running sync
        twice with no upstream change leaves the pristine unchanged.

        Returns:
            The new HEAD commit hash
        """
        name = self.store.resolve(name)
        path = self.path(name)
        if not path.is_dir():
            raise RepositoryNotFound(name, kind='pristine')

        metadata = self._metadata(name)
        url = metadata.git_urls[0] if metadata.git_urls else self.store.get_entry(name).default_url

        with self._lock(name):
            logger.info(f"Syncing pristine '{name}' from {url}")
            self.git.run_network(
                ["fetch", "--prune", "--force", url, *FETCH_REFSPECS],
                url=url,
                credentials=self.credentials,
                auth=metadata.auth_config,
                cwd=path,
            )
            remote_default = self.remote_default_branch(name, url=url, auth=metadata.auth_config)
            if remote_default and self.git.ref_exists(path, f"refs/heads/{remote_default}"):
                if remote_default != self.git.current_branch(path):
                    self.git.run(["symbolic-ref", "HEAD", f"refs/heads/{remote_default}"],
                                 cwd=path, check=True)
                    logger.info(f"Default branch of '{name}' is now {remote_default}")

            default_branch = self.git.current_branch(path)
            head = self.git.rev_parse(path, "HEAD")
            branches = self.git.branches(path)
            tag = latest_tag(self.git.tags(path))

        def _record(md: RepoMetadata) -> None:
            md.default_branch = default_branch
            md.tracked_branches = branches
            if tag:
                md.latest_tag = tag
            md.record_sync(kind, head)

        self.store.update_metadata(name, _record)
        logger.info(f"Pristine '{name}' synced ({kind.value}) at {head[:12] if head else 'empty'}")
        return head

    def destroy(self, name: str) -> Path:
        """Delete the pristine directory. Clones relying on it become unhealthy."""
        name = self.store.resolve(name)
        path = self.path(name)
        if not path.is_dir():
            raise RepositoryNotFound(name, kind='pristine')

        with self._lock(name):
            try:
                shutil.rmtree(path)
            except OSError as e:
                raise FilesystemFailure(f"Cannot remove pristine {path}: {e}") from e

        def _clear(md: RepoMetadata) -> None:
            md.pristine_created = None
            md.touch()

        try:
            self.store.update_metadata(name, _clear)
        except RepositoryNotFound:
            logger.warning(f"Pristine '{name}' removed but it has no metadata to update")
        logger.info(f"Destroyed pristine '{name}'")
        return path

    def destroy_all(self) -> List[str]:
        destroyed = []
        for name in self.store.names():
            if self.exists(name):
                self.destroy(name)
                destroyed.append(name)
        return destroyed

    def gc(self, name: str) -> bool:
        """Run ``git gc --auto`` on one pristine."""
        path = self.path(name)
        with self._lock(name):
            result = self.git.run(["gc", "--auto", "--quiet"], cwd=path)
        if not result.ok:
            logger.warning(f"git gc failed for pristine '{name}': {result.stderr.strip()}")
        return result.ok

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def initialized(self) -> List[str]:
        return [name for name in self.store.names() if self.exists(name)]

    def uninitialized(self) -> List[str]:
        return [name for name in self.store.names() if not self.exists(name)]

    def branches(self, name: str) -> List[str]:
        return self.git.branches(self.path(self.store.resolve(name)))

    def tags(self, name: str) -> List[str]:
        return self.git.tags(self.path(self.store.resolve(name)))

    def head_commit(self, name: str) -> Optional[str]:
        return self.git.rev_parse(self.path(self.store.resolve(name)), "HEAD")

    def remote_default_branch(self, name: str, url: Optional[str] = None, auth=None) -> Optional[str]:
        """Branch the remote's HEAD points at, from ``git ls-remote --symref``."""
        if url is None:
            metadata = self._metadata(name)
            url, auth = metadata.git_urls[0], metadata.auth_config
        result = self.git.run_network(
            ["ls-remote", "--symref", url, "HEAD"],
            url=url,
            credentials=self.credentials,
            auth=auth,
            cwd=self.path(name),
        )
        for line in result.lines():
            if line.startswith("ref:"):
                ref = line.split()[1]
                return ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref
        return None

    def remote_tags(self, name: str) -> List[str]:
        """Tag names currently published by the default remote."""
        name = self.store.resolve(name)
        metadata = self._metadata(name)
        url = metadata.git_urls[0]
        result = self.git.run_network(
            ["ls-remote", "--tags", "--refs", url],
            url=url,
            credentials=self.credentials,
            auth=metadata.auth_config,
        )
        tags = []
        for line in result.lines():
            parts = line.split()
            if len(parts) == 2 and parts[1].startswith("refs/tags/"):
                tags.append(parts[1][len("refs/tags/"):])
        return tags

    def check_for_new_tag(self, name: str) -> Optional[str]:
        """
        Return the remote's highest tag if it differs from the recorded one.
        """
        name = self.store.resolve(name)
        newest = latest_tag(self.remote_tags(name))
        if newest is None:
            return None
        if newest != self.store.read_metadata(name).latest_tag:
            return newest
        return None

    def record_latest_tag(self, name: str, tag: str) -> None:
        def _set(md: RepoMetadata) -> None:
            md.latest_tag = tag
            md.touch()
        self.store.update_metadata(self.store.resolve(name), _set)

    def _readme_excerpt(self, path: Path) -> Optional[str]:
        for filename in self.git.tree_files(path, "HEAD"):
            if _README.match(filename):
                return self.git.show_file(path, "HEAD", filename)
        return None


def _remove_partial(path: Path) -> None:
    if path.exists():
        logger.debug(f"Removing partially created {path}")
        shutil.rmtree(path, ignore_errors=True)
