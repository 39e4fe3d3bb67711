"""
Infrastructure layer for repoman.

Contains abstractions for external systems:
- GitClient: Git command execution
- JsonDocument / FileStore: atomic JSON file persistence
- MetadataStore: vault index, aliases and per-repository metadata
- pristine_lock: advisory per-pristine file lock

These provide clean interfaces that can be mocked for testing.
"""

from .git_client import GitClient, GitResult, GitStatus
from .file_store import JsonDocument, FileStore
from .metadata_store import MetadataStore
from .locks import pristine_lock

__all__ = [
    'GitClient',
    'GitResult',
    'GitStatus',
    'JsonDocument',
    'FileStore',
    'MetadataStore',
    'pristine_lock',
]
