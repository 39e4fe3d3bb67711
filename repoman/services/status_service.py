"""
Status and garbage-collection engine for repoman.

Reports per-clone divergence, dirty state and alternates health, and
removes stale clones / compacts pristines.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from ..config import Settings
from ..domain.metadata import CloneRecord
from ..domain.status import AlternatesHealth, CloneStatus, GcReport, RepoStatus
from ..errors import RepomanError
from ..infra.git_client import GitClient
from ..infra.metadata_store import MetadataStore
from .clone_service import CloneService
from .pristine_service import PristineService

logger = logging.getLogger(__name__)


def check_alternates(clone_path: Path, pristine_path: Optional[Path] = None) -> AlternatesHealth:
    """
    Inspect ``.git/objects/info/alternates`` of a clone.

    Relative entries are resolved against the clone's objects directory,
    the way git resolves them.
    """
    health = AlternatesHealth()
    objects_dir = Path(clone_path) / ".git" / "objects"
    pointer = objects_dir / "info" / "alternates"
    if not pointer.is_file():
        return health

    try:
        lines = [line.strip() for line in pointer.read_text().splitlines()]
    except OSError as e:
        logger.debug(f"Cannot read {pointer}: {e}")
        return health
    entries = [line for line in lines if line and not line.startswith('#')]
    if not entries:
        return health

    health.pointer_present = True
    target = Path(entries[0])
    if not target.is_absolute():
        target = objects_dir / target
    health.target = str(target)
    health.target_present = target.is_dir()
    health.objects_readable = health.target_present and os.access(target, os.R_OK | os.X_OK)
    if pristine_path is not None:
        expected = (Path(pristine_path) / "objects").resolve()
        health.points_to_pristine = any(
            (Path(e) if Path(e).is_absolute() else objects_dir / e).resolve() == expected
            for e in entries
        )
    else:
        health.points_to_pristine = health.target_present
    return health


class StatusService:
    """
    Read-only status reporting plus gc.

    Example:
        service = StatusService(settings, store, git, pristines, clones)
        report = service.status("ripgrep")
        for clone in report.clones:
            print(clone.name, clone.alternates.healthy)
    """

    def __init__(
        self,
        settings: Settings,
        store: MetadataStore,
        git: Optional[GitClient] = None,
        pristines: Optional[PristineService] = None,
        clones: Optional[CloneService] = None,
    ):
        self.settings = settings
        self.store = store
        self.git = git or GitClient(timeout=settings.git_timeout)
        self.pristines = pristines or PristineService(settings, store, self.git)
        self.clones = clones or CloneService(settings, store, self.git, self.pristines)

    def status(self, name: str) -> RepoStatus:
        name = self.store.resolve(name)
        entry = self.store.get_entry(name)
        metadata = self.store.read_metadata(name)
        pristine_path = self.settings.pristine_path(name)
        pristine_exists = pristine_path.is_dir()

        report = RepoStatus(
            name=name,
            urls=entry.urls,
            pristine_exists=pristine_exists,
            pristine_path=str(pristine_path),
            default_branch=metadata.default_branch,
            branches=self.git.branches(pristine_path) if pristine_exists else [],
            latest_tag=metadata.latest_tag,
            last_sync=metadata.last_sync.timestamp if metadata.last_sync else None,
            last_sync_kind=metadata.last_sync.kind.value if metadata.last_sync else None,
            sync_interval=metadata.sync_interval,
        )

        for record in metadata.clones:
            path = Path(record.path)
            if not path.is_dir():
                report.clones.append(CloneStatus(name=record.name, path=record.path,
                                                 exists=False, branch=record.branch))
                continue
            git_status = self.git.status(path)
            report.clones.append(CloneStatus(
                name=record.name,
                path=record.path,
                branch=git_status.branch,
                dirty=not git_status.clean,
                changed_files=git_status.changed_files,
                ahead=git_status.ahead,
                behind=git_status.behind,
                has_upstream=git_status.has_upstream,
                alternates=check_alternates(path, pristine_path),
            ))
        return report

    def list_all(self) -> List[Dict[str, Any]]:
        """One summary row per vault entry."""
        aliases = self.store.aliases()
        rows = []
        for entry in self.store.entries():
            row: Dict[str, Any] = {
                'name': entry.name,
                'url': entry.default_url,
                'urls': entry.urls,
                'added_on': entry.added_on.isoformat(),
                'aliases': sorted(a for a, t in aliases.items() if t == entry.name),
                'pristine': self.settings.pristine_path(entry.name).is_dir(),
                'clones': [],
                'latest_tag': None,
                'last_sync': None,
            }
            try:
                metadata = self.store.read_metadata(entry.name)
            except RepomanError as e:
                row['error'] = str(e)
                rows.append(row)
                continue
            row['clones'] = [c.name for c in metadata.clones]
            row['latest_tag'] = metadata.latest_tag
            row['default_branch'] = metadata.default_branch
            row['last_sync'] = metadata.last_sync.timestamp.isoformat() if metadata.last_sync else None
            rows.append(row)
        return rows

    def gc(self, days: int = 30, dry_run: bool = False) -> GcReport:
        """
        Remove clones whose HEAD commit is older than ``days`` and run
        ``git gc --auto`` on every pristine. With ``dry_run`` nothing changes.
        """
        report = GcReport(days=days, dry_run=dry_run)
        report.stale_clones = self.clones.find_stale(days)

        for stale in report.stale_clones:
            if dry_run:
                logger.info(f"Would remove stale clone {stale.path} ({stale.age_days:.0f} days)")
                continue
            try:
                self.clones.destroy_clone(stale.repo, CloneRecord(name=stale.clone, path=stale.path))
                report.removed_clones.append(stale.path)
            except RepomanError as e:
                report.errors.append(f"{stale.path}: {e}")

        for name in self.pristines.initialized():
            if dry_run:
                report.pristines_collected.append(name)
                continue
            try:
                if self.pristines.gc(name):
                    report.pristines_collected.append(name)
                else:
                    report.errors.append(f"{name}: git gc failed")
            except RepomanError as e:
                report.errors.append(f"{name}: {e}")
        return report
