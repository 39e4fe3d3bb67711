"""
Vault domain objects: the registry of tracked repositories.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

_SCP_LIKE = re.compile(r'^(?:[\w.-]+@)?[\w.-]+:(?!//)(?P<path>.+)$')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def extract_repo_name(url: str) -> str:
    """
    Derive a repository name from a URL or local path.

    Handles https://, ssh://, git@host:owner/repo.git and plain paths.

    Raises:
        ValueError: if no name can be derived
    """
    cleaned = url.strip().rstrip('/')
    if cleaned.endswith('.git'):
        cleaned = cleaned[:-4].rstrip('/')

    match = _SCP_LIKE.match(cleaned)
    if match and '/' not in cleaned.split(':', 1)[0]:
        cleaned = match.group('path')

    name = re.split(r'[/\\]', cleaned)[-1] if cleaned else ''
    if not name or name in ('.', '..') or name.endswith(':'):
        raise ValueError(f"Cannot extract repository name from '{url}'")
    return name


@dataclass
class VaultEntry:
    """One tracked repository. ``urls[0]`` is the default remote."""
    name: str
    urls: List[str]
    added_on: datetime = field(default_factory=utcnow)

    @property
    def default_url(self) -> str:
        return self.urls[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'urls': list(self.urls),
            'added_on': format_timestamp(self.added_on),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VaultEntry':
        urls = data.get('urls')
        if urls is None and data.get('url'):
            urls = [data['url']]
        if not data.get('name') or not urls:
            raise ValueError(f"vault entry needs a name and at least one url: {data!r}")
        added = data.get('added_on')
        return cls(
            name=data['name'],
            urls=list(urls),
            added_on=parse_timestamp(added) if added else utcnow(),
        )
