"""
repoman - A space-efficient local cache of git repositories.

Three tiers:
    vault     - registry of tracked repository URLs and aliases
    pristine  - one bare mirror per vault entry
    clone     - disposable working copies sharing a pristine's objects
                through git alternates

Quick Start:
    import repoman

    rm = repoman.Repoman()
    rm.add("https://github.com/BurntSushi/ripgrep.git")
    rm.init("ripgrep")
    clone = rm.clone("ripgrep")

    # Bulk operations never stop at the first failure
    summary = rm.sync_all()
    for detail in summary.details:
        print(detail.repo_name, detail.status.value)

Services (for advanced use):
    VaultService, PristineService, CloneService, StatusService, BulkExecutor
"""

__version__ = "0.3.0"

from .api import Repoman, create

from .domain import (
    VaultEntry,
    RepoMetadata,
    CloneRecord,
    SyncKind,
    OperationStatus,
    OperationSummary,
    latest_tag,
)

from .services import (
    VaultService,
    PristineService,
    CloneService,
    StatusService,
    BulkExecutor,
    CredentialProvider,
)

from .config import Settings, load_config

__all__ = [
    "__version__",
    "Repoman",
    "create",
    "VaultEntry",
    "RepoMetadata",
    "CloneRecord",
    "SyncKind",
    "OperationStatus",
    "OperationSummary",
    "latest_tag",
    "VaultService",
    "PristineService",
    "CloneService",
    "StatusService",
    "BulkExecutor",
    "CredentialProvider",
    "Settings",
    "load_config",
]
