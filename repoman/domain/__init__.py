"""
Domain objects for repoman.

Plain dataclasses describing the vault, per-repository metadata,
operation results and status reports. No I/O happens here.
"""

from .vault import VaultEntry, extract_repo_name
from .metadata import RepoMetadata, CloneRecord, SyncRecord, SyncKind, AuthConfig
from .operation import OperationStatus, OperationDetail, OperationSummary, CloneUpdate
from .status import (
    AlternatesHealth,
    CloneStatus,
    RepoStatus,
    StaleClone,
    OrphanReport,
    GcReport,
)
from .tag import latest_tag

__all__ = [
    'VaultEntry',
    'extract_repo_name',
    'RepoMetadata',
    'CloneRecord',
    'SyncRecord',
    'SyncKind',
    'AuthConfig',
    'OperationStatus',
    'OperationDetail',
    'OperationSummary',
    'CloneUpdate',
    'AlternatesHealth',
    'CloneStatus',
    'RepoStatus',
    'StaleClone',
    'OrphanReport',
    'GcReport',
    'latest_tag',
]
