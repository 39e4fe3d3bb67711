"""
High-level Python API for repoman.

Wires every service from one Settings bundle and exposes the repository
lifecycle: vault → pristine → clone → sync/update → destroy/gc → remove.

Example:
    import repoman

    rm = repoman.Repoman()                       # ~/.repoman, config file, env
    name = rm.add("https://github.com/BurntSushi/ripgrep.git").name
    rm.init(name)
    clone = rm.clone(name, branch="master")
    print(clone.path)

    # Refresh every pristine and fast-forward every clone
    summary = rm.update_all()
    print(f"{summary.successful}/{summary.total} updated")

    # Low-level access to services
    rm.vault
    rm.pristines
    rm.clones
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import logging

from .config import Settings, load_config
from .domain.metadata import CloneRecord, SyncKind
from .domain.operation import OperationSummary
from .domain.status import GcReport, OrphanReport, RepoStatus, StaleClone
from .errors import UpdateFailed
from .infra.git_client import GitClient
from .infra.metadata_store import MetadataStore
from .services.bulk_service import BulkExecutor, ProgressCallback
from .services.clone_service import CloneService
from .services.credentials import CredentialProvider
from .services.pristine_service import PristineService
from .services.status_service import StatusService
from .services.vault_service import AddResult, RemoveResult, VaultService

logger = logging.getLogger(__name__)


class Repoman:
    """
    High-level API for repoman.

    Every name argument accepts a canonical vault name or an alias.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        config_path: Optional[str] = None,
        git_client: Optional[GitClient] = None,
        credentials: Optional[CredentialProvider] = None,
        bulk: Optional[BulkExecutor] = None,
    ):
        """
        Initialize Repoman.

        Args:
            settings: Resolved settings (loaded from config when None)
            config_path: Config file to load when ``settings`` is None
            git_client: GitClient to share across services
            credentials: CredentialProvider for network git operations
            bulk: BulkExecutor for ``*_all`` operations
        """
        self.settings = settings or Settings.from_config(load_config(config_path))
        self.settings.ensure_dirs()

        self.git = git_client or GitClient(timeout=self.settings.git_timeout)
        self.credentials = credentials or CredentialProvider(self.settings.max_auth_attempts)
        self.store = MetadataStore(self.settings)
        self.bulk = bulk or BulkExecutor()

        self.vault = VaultService(self.settings, self.store, self.git)
        self.pristines = PristineService(self.settings, self.store, self.git, self.credentials)
        self.clones = CloneService(self.settings, self.store, self.git, self.pristines)
        self.status_service = StatusService(
            self.settings, self.store, self.git, self.pristines, self.clones
        )

    # ------------------------------------------------------------------
    # Vault
    # ------------------------------------------------------------------

    def add(self, url: Optional[str] = None, cwd: Optional[Path] = None) -> AddResult:
        """Add a URL, or the repository in ``cwd`` when no URL is given."""
        if url:
            return self.vault.add(url)
        return self.vault.add_from_working_directory(cwd)

    def alias(self, name: str, alias: str) -> str:
        return self.vault.alias(name, alias)

    def remove_alias(self, alias: str) -> str:
        return self.vault.remove_alias(alias)

    def aliases(self) -> Dict[str, str]:
        return self.vault.list_aliases()

    def remove(self, name: str) -> RemoveResult:
        return self.vault.remove(name)

    def resolve(self, name: str) -> str:
        return self.vault.resolve(name)

    def names(self) -> List[str]:
        return self.vault.names()

    # ------------------------------------------------------------------
    # Pristines
    # ------------------------------------------------------------------

    def init(self, name: str) -> Path:
        return self.pristines.init(name)

    def init_all(self, on_result: Optional[ProgressCallback] = None) -> OperationSummary:
        """Create a pristine for every vault entry that has none."""
        return self.bulk.run(
            "init",
            self.pristines.uninitialized(),
            lambda name: {'path': str(self.pristines.init(name))},
            action="initialized",
            on_result=on_result,
        )

    def sync(self, name: str, kind: SyncKind = SyncKind.MANUAL) -> Optional[str]:
        return self.pristines.sync(name, kind)

    def sync_all(self, on_result: Optional[ProgressCallback] = None) -> OperationSummary:
        return self.bulk.run(
            "sync",
            self.pristines.initialized(),
            lambda name: {'head': self.pristines.sync(name)},
            action="synced",
            on_result=on_result,
        )

    def update(self, name: str) -> Dict[str, Any]:
        """Sync the pristine, then fast-forward each of its clones.

        Raises UpdateFailed when any clone could not be fetched or compared;
        diverged and skipped clones are not failures.
        """
        name = self.resolve(name)
        head = self.pristines.sync(name)
        updates = self.clones.update_clones(name)
        if any(u.outcome == "failed" for u in updates):
            raise UpdateFailed(name, head, updates)
        return {'head': head, 'clones': [u.to_dict() for u in updates]}

    def update_all(self, on_result: Optional[ProgressCallback] = None) -> OperationSummary:
        return self.bulk.run(
            "update",
            self.pristines.initialized(),
            self.update,
            action="updated",
            on_result=on_result,
        )

    # ------------------------------------------------------------------
    # Clones
    # ------------------------------------------------------------------

    def clone(self, pristine: str, clone_name: Optional[str] = None,
              branch: Optional[str] = None) -> CloneRecord:
        return self.clones.clone(pristine, clone_name, branch)

    def destroy(self, target: str) -> Tuple[str, str]:
        return self.clones.destroy(target)

    def destroy_all_clones(self, pristine: str) -> List[str]:
        return self.clones.destroy_all_clones(pristine)

    def destroy_all_pristines(self) -> List[str]:
        return self.pristines.destroy_all()

    def destroy_stale(self, days: int) -> List[StaleClone]:
        return self.clones.destroy_stale(days)

    def orphans(self, cleanup: bool = False) -> OrphanReport:
        if cleanup:
            return self.clones.cleanup_orphaned()
        return self.clones.detect_orphaned()

    def find_path(self, target: str) -> Path:
        return self.clones.find_path(target)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def status(self, name: str) -> RepoStatus:
        return self.status_service.status(name)

    def list_repos(self) -> List[Dict[str, Any]]:
        return self.status_service.list_all()

    def gc(self, days: int = 30, dry_run: bool = False) -> GcReport:
        return self.status_service.gc(days, dry_run)


def create(**kwargs) -> Repoman:
    """Create a Repoman instance. Shortcut for ``Repoman(**kwargs)``."""
    return Repoman(**kwargs)
