"""
Status and garbage-collection result objects.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .vault import format_timestamp


@dataclass
class AlternatesHealth:
    """Whether a clone can still reach its pristine's object store."""
    pointer_present: bool = False
    target: Optional[str] = None
    target_present: bool = False
    objects_readable: bool = False
    points_to_pristine: bool = False

    @property
    def healthy(self) -> bool:
        return (self.pointer_present and self.target_present
                and self.objects_readable and self.points_to_pristine)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'healthy': self.healthy,
            'pointer_present': self.pointer_present,
            'target': self.target,
            'target_present': self.target_present,
            'objects_readable': self.objects_readable,
            'points_to_pristine': self.points_to_pristine,
        }


@dataclass
class CloneStatus:
    name: str
    path: str
    exists: bool = True
    branch: Optional[str] = None
    dirty: bool = False
    changed_files: int = 0
    ahead: int = 0
    behind: int = 0
    has_upstream: bool = False
    alternates: AlternatesHealth = field(default_factory=AlternatesHealth)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'path': self.path,
            'exists': self.exists,
            'branch': self.branch,
            'dirty': self.dirty,
            'changed_files': self.changed_files,
            'ahead': self.ahead,
            'behind': self.behind,
            'has_upstream': self.has_upstream,
            'alternates': self.alternates.to_dict(),
        }


@dataclass
class RepoStatus:
    """Status of one vault entry, its pristine and its clones."""
    name: str
    urls: List[str]
    pristine_exists: bool
    pristine_path: str
    default_branch: Optional[str] = None
    branches: List[str] = field(default_factory=list)
    latest_tag: Optional[str] = None
    last_sync: Optional[datetime] = None
    last_sync_kind: Optional[str] = None
    sync_interval: Optional[int] = None
    clones: List[CloneStatus] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'urls': self.urls,
            'pristine': {
                'exists': self.pristine_exists,
                'path': self.pristine_path,
                'default_branch': self.default_branch,
                'branches': self.branches,
                'latest_tag': self.latest_tag,
            },
            'last_sync': format_timestamp(self.last_sync) if self.last_sync else None,
            'last_sync_kind': self.last_sync_kind,
            'sync_interval': self.sync_interval,
            'clones': [c.to_dict() for c in self.clones],
        }


@dataclass
class StaleClone:
    repo: str
    clone: str
    path: str
    last_commit: datetime
    age_days: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'repo': self.repo,
            'clone': self.clone,
            'path': self.path,
            'last_commit': format_timestamp(self.last_commit),
            'age_days': round(self.age_days, 1),
        }


@dataclass
class OrphanReport:
    """Clone directories without metadata, and metadata without directories."""
    orphaned_dirs: List[str] = field(default_factory=list)
    dangling_records: List[Dict[str, str]] = field(default_factory=list)
    cleaned: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'orphaned_dirs': self.orphaned_dirs,
            'dangling_records': self.dangling_records,
            'cleaned': self.cleaned,
        }


@dataclass
class GcReport:
    days: int
    dry_run: bool
    stale_clones: List[StaleClone] = field(default_factory=list)
    removed_clones: List[str] = field(default_factory=list)
    pristines_collected: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'gc',
            'days': self.days,
            'dry_run': self.dry_run,
            'stale_clones': [s.to_dict() for s in self.stale_clones],
            'removed_clones': self.removed_clones,
            'pristines_collected': self.pristines_collected,
            'errors': self.errors,
        }
