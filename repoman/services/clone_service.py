"""
Clone manager for repoman.

Clones are disposable working copies created from a pristine with
``git clone --shared``: their ``.git/objects/info/alternates`` points at
the pristine's object store, so only new objects take space. The clone's
``origin`` is the pristine; ``upstream`` is the repository's real remote.
"""

import random
import re
import shutil
import string
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Tuple
import logging

from ..config import Settings
from ..domain.metadata import CloneRecord, RepoMetadata
from ..domain.operation import CloneUpdate
from ..domain.status import OrphanReport, StaleClone
from ..errors import (
    AlreadyExists,
    FilesystemFailure,
    NamingConflict,
    RepomanError,
    RepositoryNotFound,
)
from ..infra.git_client import GitClient
from ..infra.metadata_store import MetadataStore
from .pristine_service import PristineService

logger = logging.getLogger(__name__)

SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
SUFFIX_LENGTH = 6
_VALID_CLONE_NAME = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]*$')


def generate_clone_suffix(length: int = SUFFIX_LENGTH) -> str:
    return ''.join(random.choices(SUFFIX_ALPHABET, k=length))


class CloneService:
    """
    Creates and destroys working copies backed by a pristine.

    Example:
        service = CloneService(settings, store, git, pristines)
        record = service.clone("ripgrep", branch="master")
        print(record.path)
    """

    def __init__(
        self,
        settings: Settings,
        store: MetadataStore,
        git: Optional[GitClient] = None,
        pristines: Optional[PristineService] = None,
    ):
        self.settings = settings
        self.store = store
        self.git = git or GitClient(timeout=settings.git_timeout)
        self.pristines = pristines or PristineService(settings, store, self.git)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def clone(self, pristine: str, clone_name: Optional[str] = None,
              branch: Optional[str] = None) -> CloneRecord:
        """
        Create a clone of ``pristine``.

        Args:
            pristine: Vault name or alias with an initialized pristine
            clone_name: Clone name; a random 6-character suffix when omitted
            branch: Branch to check out; the pristine's default branch when omitted

        Raises:
            RepositoryNotFound: no such pristine, or ``branch`` is not in it
            AlreadyExists: the clone name or directory is taken
            NamingConflict: ``clone_name`` is not a valid directory name
        """
        name = self.store.resolve(pristine)
        pristine_path = self.settings.pristine_path(name)
        if not pristine_path.is_dir():
            raise RepositoryNotFound(name, kind='pristine')

        if clone_name is None:
            clone_name = generate_clone_suffix()
        elif not _VALID_CLONE_NAME.match(clone_name):
            raise NamingConflict(f"Invalid clone name '{clone_name}'")

        metadata = self.store.read_metadata(name)
        clone_path = self.settings.clone_path(name, clone_name)
        if clone_path.exists():
            raise AlreadyExists(f"Clone '{clone_path.name}'", str(clone_path))
        if metadata.find_clone(clone_name) is not None:
            raise AlreadyExists(f"Clone '{clone_name}' of '{name}'")

        if branch is not None:
            if not self.git.ref_exists(pristine_path, f"refs/heads/{branch}"):
                raise RepositoryNotFound(branch, kind='branch', detail=f"in pristine '{name}'")
        else:
            branch = self.git.current_branch(pristine_path) or metadata.default_branch

        self.settings.clones_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Creating clone {clone_path.name} from pristine '{name}'")
        record = CloneRecord(name=clone_name, path=str(clone_path), branch=branch)
        try:
            args = ["clone", "--shared", "--quiet"]
            if branch and self.git.ref_exists(pristine_path, f"refs/heads/{branch}"):
                args += ["--branch", branch]
            self.git.run([*args, str(pristine_path.resolve()), str(clone_path)], check=True)
            if metadata.git_urls:
                self.git.run(["remote", "add", "upstream", metadata.git_urls[0]], cwd=clone_path, check=True)
            if not self.alternates_file(clone_path).exists():
                raise FilesystemFailure(f"Clone {clone_path} has no alternates file")
            record.branch = self.git.current_branch(clone_path) or branch
            self.store.update_metadata(name, lambda md: md.add_clone(record))
        except BaseException:
            if clone_path.exists():
                logger.debug(f"Removing partially created clone {clone_path}")
                shutil.rmtree(clone_path, ignore_errors=True)
            raise

        logger.info(f"Clone created: {clone_path}")
        return record

    @staticmethod
    def alternates_file(clone_path: Path) -> Path:
        return Path(clone_path) / ".git" / "objects" / "info" / "alternates"

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def records(self) -> List[Tuple[str, CloneRecord]]:
        """Every recorded clone as ``(repo, record)``."""
        result = []
        for repo, metadata in self.store.all_metadata().items():
            for record in metadata.clones:
                result.append((repo, record))
        return result

    def find(self, target: str) -> Optional[Tuple[str, CloneRecord]]:
        """
        Find a clone by recorded name or by directory name.

        Raises:
            NamingConflict: ``target`` matches clones of several repositories
        """
        records = self.records()
        by_name = [(r, c) for r, c in records if c.name == target]
        if len(by_name) == 1:
            return by_name[0]
        if len(by_name) > 1:
            repos = ', '.join(sorted(r for r, _ in by_name))
            raise NamingConflict(
                f"Clone name '{target}' is ambiguous (repositories: {repos}); "
                f"use the full directory name"
            )
        by_dir = [(r, c) for r, c in records if Path(c.path).name == target]
        return by_dir[0] if by_dir else None

    def find_path(self, target: str) -> Path:
        """Path of a pristine or clone, for ``repoman open``."""
        try:
            name = self.store.resolve(target)
            if self.settings.pristine_path(name).is_dir():
                return self.settings.pristine_path(name)
        except RepositoryNotFound:
            pass
        found = self.find(target)
        if found is not None:
            return Path(found[1].path)
        candidate = self.settings.clones_dir / target
        if candidate.is_dir():
            return candidate
        raise RepositoryNotFound(target, kind='clone')

    # ------------------------------------------------------------------
    # Destruction
    # ------------------------------------------------------------------

    def destroy(self, target: str) -> Tuple[str, str]:
        """
        Destroy a clone, or a pristine if no clone matches.

        Clone names take precedence over pristine names.

        Returns:
            ``("clone", path)`` or ``("pristine", path)``
        """
        found = self.find(target)
        if found is not None:
            repo, record = found
            self.destroy_clone(repo, record)
            return "clone", record.path

        try:
            name = self.store.resolve(target)
        except RepositoryNotFound:
            raise RepositoryNotFound(target, kind='clone') from None
        if not self.settings.pristine_path(name).is_dir():
            raise RepositoryNotFound(target, kind='clone')
        path = self.pristines.destroy(name)
        return "pristine", str(path)

    def destroy_clone(self, repo: str, record: CloneRecord) -> None:
        path = Path(record.path)
        if path.exists():
            try:
                shutil.rmtree(path)
            except OSError as e:
                raise FilesystemFailure(f"Cannot remove clone {path}: {e}") from e
        else:
            logger.warning(f"Clone directory {path} was already gone")

        try:
            self.store.update_metadata(repo, lambda md: md.remove_clone(record.name))
        except (RepomanError, OSError) as e:
            logger.warning(f"Clone {path} removed but metadata for '{repo}' was not updated: {e}")
        logger.info(f"Destroyed clone {path.name}")

    def destroy_all_clones(self, pristine: str) -> List[str]:
        name = self.store.resolve(pristine)
        metadata = self.store.read_metadata(name)
        destroyed = []
        for record in list(metadata.clones):
            self.destroy_clone(name, record)
            destroyed.append(record.path)
        return destroyed

    # ------------------------------------------------------------------
    # Staleness and orphans
    # ------------------------------------------------------------------

    def find_stale(self, days: int, now: Optional[datetime] = None) -> List[StaleClone]:
        """
        Clones whose checked-out HEAD commit is older than ``days`` days.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(days=days)
        stale = []
        for repo, record in self.records():
            path = Path(record.path)
            if not path.is_dir():
                continue
            committed = self.git.last_commit_time(path, "HEAD")
            if committed is None:
                logger.debug(f"Cannot read HEAD commit time of {path}; skipping")
                continue
            if committed < cutoff:
                age = (now - committed).total_seconds() / 86400
                stale.append(StaleClone(repo, record.name, record.path, committed, age))
        return stale

    def destroy_stale(self, days: int) -> List[StaleClone]:
        stale = self.find_stale(days)
        for item in stale:
            self.destroy_clone(item.repo, CloneRecord(name=item.clone, path=item.path))
        return stale

    def detect_orphaned(self) -> OrphanReport:
        """Clone directories no metadata refers to, and records whose directory vanished."""
        report = OrphanReport()
        referenced = set()
        for repo, record in self.records():
            path = Path(record.path)
            referenced.add(path.resolve())
            if not path.exists():
                report.dangling_records.append({'repo': repo, 'clone': record.name, 'path': record.path})

        clones_dir = self.settings.clones_dir
        if clones_dir.is_dir():
            for child in sorted(clones_dir.iterdir()):
                if child.is_dir() and not child.name.startswith('.') and child.resolve() not in referenced:
                    report.orphaned_dirs.append(str(child))
        return report

    def cleanup_orphaned(self) -> OrphanReport:
        report = self.detect_orphaned()
        for directory in report.orphaned_dirs:
            logger.info(f"Removing orphaned clone directory {directory}")
            try:
                shutil.rmtree(directory)
            except OSError as e:
                raise FilesystemFailure(f"Cannot remove {directory}: {e}") from e
        for record in report.dangling_records:
            self.store.update_metadata(record['repo'], lambda md, n=record['clone']: md.remove_clone(n))
            logger.info(f"Pruned record of missing clone {record['path']}")
        report.cleaned = True
        return report

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def fast_forward(self, repo: str, record: CloneRecord) -> CloneUpdate:
        """
        Fetch the clone from its pristine and fast-forward its current branch.
        Local work is never discarded: a diverged branch is only reported.
        """
        path = Path(record.path)
        update = CloneUpdate(clone=record.name, path=record.path, outcome="skipped")
        if not path.is_dir():
            update.message = "clone directory missing"
            return update

        fetch = self.git.run(["fetch", "--quiet", "origin"], cwd=path)
        if not fetch.ok:
            update.outcome = "failed"
            update.message = fetch.stderr.strip() or "fetch from pristine failed"
            return update

        branch = self.git.current_branch(path)
        update.branch = branch
        if branch is None:
            update.message = "detached HEAD"
            return update
        upstream = f"refs/remotes/origin/{branch}"
        if not self.git.ref_exists(path, upstream):
            update.message = f"no origin/{branch} in pristine"
            return update

        counts = self.git.ahead_behind(path, upstream)
        if counts is None:
            update.outcome = "failed"
            update.message = "cannot compare with pristine"
            return update
        ahead, behind = counts
        if behind == 0:
            update.outcome = "up_to_date"
            if ahead:
                update.message = f"{ahead} local commit(s) not in pristine"
            return update
        if ahead > 0:
            update.outcome = "diverged"
            update.message = f"{ahead} ahead, {behind} behind"
            return update

        merge = self.git.run(["merge", "--ff-only", "--quiet", upstream], cwd=path)
        if merge.ok:
            update.outcome = "fast_forwarded"
            update.message = f"{behind} new commit(s)"
        else:
            update.outcome = "failed"
            update.message = merge.stderr.strip() or "fast-forward failed"
        return update

    def update_clones(self, repo: str) -> List[CloneUpdate]:
        name = self.store.resolve(repo)
        metadata: RepoMetadata = self.store.read_metadata(name)
        return [self.fast_forward(name, record) for record in metadata.clones]
