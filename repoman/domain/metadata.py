"""
Per-repository metadata domain objects.

One RepoMetadata document exists for every vault entry, stored at
``<vault_dir>/<name>/metadata.json``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .vault import utcnow, format_timestamp, parse_timestamp

README_EXCERPT_LENGTH = 500
DEFAULT_SYNC_INTERVAL = 3600


class SyncKind(Enum):
    """Who triggered a sync."""
    MANUAL = "manual"
    AUTO = "auto"


@dataclass
class SyncRecord:
    timestamp: datetime
    kind: SyncKind = SyncKind.MANUAL

    def to_dict(self) -> Dict[str, Any]:
        return {'timestamp': format_timestamp(self.timestamp), 'sync_type': self.kind.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SyncRecord':
        return cls(
            timestamp=parse_timestamp(data['timestamp']),
            kind=SyncKind(data.get('sync_type', 'manual')),
        )


@dataclass
class CloneRecord:
    """A working copy recorded against its repository."""
    name: str
    path: str
    created: datetime = field(default_factory=utcnow)
    branch: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'name': self.name,
            'path': self.path,
            'created': format_timestamp(self.created),
        }
        if self.branch:
            result['branch'] = self.branch
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CloneRecord':
        return cls(
            name=data['name'],
            path=data['path'],
            created=parse_timestamp(data['created']) if data.get('created') else utcnow(),
            branch=data.get('branch'),
        )


@dataclass
class AuthConfig:
    """Per-repository credential hints."""
    ssh_key_path: Optional[str] = None
    token_env_var: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in (('ssh_key_path', self.ssh_key_path),
                                  ('token_env_var', self.token_env_var)) if v}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AuthConfig':
        data = data or {}
        return cls(ssh_key_path=data.get('ssh_key_path'), token_env_var=data.get('token_env_var'))


@dataclass
class RepoMetadata:
    """
    Everything repoman knows about one repository.

    ``git_urls[0]`` mirrors the vault entry's default remote. ``clones`` is the
    authoritative list of working copies; directories under the clones dir that
    are not listed here are orphans.
    """
    git_urls: List[str]
    created_on: datetime = field(default_factory=utcnow)
    last_updated: datetime = field(default_factory=utcnow)
    default_branch: Optional[str] = None
    current_branch_hash: Optional[str] = None
    tracked_branches: List[str] = field(default_factory=list)
    clones: List[CloneRecord] = field(default_factory=list)
    readme: Optional[str] = None
    sync_interval: Optional[int] = DEFAULT_SYNC_INTERVAL
    auto_sync: bool = True
    last_sync: Optional[SyncRecord] = None
    latest_tag: Optional[str] = None
    pristine_created: Optional[datetime] = None
    build_config: Dict[str, Any] = field(default_factory=dict)
    hook_config: Dict[str, Any] = field(default_factory=dict)
    auth_config: AuthConfig = field(default_factory=AuthConfig)

    @classmethod
    def new(cls, urls: List[str], sync_interval: int = DEFAULT_SYNC_INTERVAL) -> 'RepoMetadata':
        return cls(git_urls=list(urls), sync_interval=sync_interval)

    def touch(self) -> None:
        self.last_updated = utcnow()

    def set_readme(self, text: Optional[str]) -> None:
        self.readme = text[:README_EXCERPT_LENGTH] if text else None

    def find_clone(self, name: str) -> Optional[CloneRecord]:
        for clone in self.clones:
            if clone.name == name:
                return clone
        return None

    def add_clone(self, record: CloneRecord) -> None:
        self.clones.append(record)
        self.touch()

    def remove_clone(self, name: str) -> bool:
        before = len(self.clones)
        self.clones = [c for c in self.clones if c.name != name]
        if len(self.clones) != before:
            self.touch()
            return True
        return False

    def record_sync(self, kind: SyncKind, head: Optional[str] = None) -> None:
        self.last_sync = SyncRecord(timestamp=utcnow(), kind=kind)
        if head:
            self.current_branch_hash = head
        self.touch()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'git_urls': list(self.git_urls),
            'created_on': format_timestamp(self.created_on),
            'last_updated': format_timestamp(self.last_updated),
            'default_branch': self.default_branch,
            'current_branch_hash': self.current_branch_hash,
            'tracked_branches': list(self.tracked_branches),
            'clones': [c.to_dict() for c in self.clones],
            'readme': self.readme,
            'sync_interval': self.sync_interval,
            'auto_sync': self.auto_sync,
            'last_sync': self.last_sync.to_dict() if self.last_sync else None,
            'latest_tag': self.latest_tag,
            'pristine_created': format_timestamp(self.pristine_created) if self.pristine_created else None,
            'build_config': self.build_config,
            'hook_config': self.hook_config,
            'auth_config': self.auth_config.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RepoMetadata':
        """
        Build from a parsed metadata.json document.

        Raises:
            KeyError, TypeError, ValueError: when the document is malformed
        """
        if not isinstance(data, dict):
            raise TypeError("metadata must be a JSON object")
        now = utcnow()
        return cls(
            git_urls=list(data['git_urls']),
            created_on=parse_timestamp(data['created_on']) if data.get('created_on') else now,
            last_updated=parse_timestamp(data['last_updated']) if data.get('last_updated') else now,
            default_branch=data.get('default_branch'),
            current_branch_hash=data.get('current_branch_hash'),
            tracked_branches=list(data.get('tracked_branches') or []),
            clones=[CloneRecord.from_dict(c) for c in data.get('clones') or []],
            readme=data.get('readme'),
            sync_interval=data.get('sync_interval'),
            auto_sync=bool(data.get('auto_sync', True)),
            last_sync=SyncRecord.from_dict(data['last_sync']) if data.get('last_sync') else None,
            latest_tag=data.get('latest_tag'),
            pristine_created=(parse_timestamp(data['pristine_created'])
                              if data.get('pristine_created') else None),
            build_config=dict(data.get('build_config') or {}),
            hook_config=dict(data.get('hook_config') or {}),
            auth_config=AuthConfig.from_dict(data.get('auth_config')),
        )
