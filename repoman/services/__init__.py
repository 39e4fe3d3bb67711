"""
Service layer for repoman.

Services contain the lifecycle logic and orchestrate the infrastructure:
- VaultService: add/remove/alias over the vault
- PristineService: bare mirrors (init, sync, destroy)
- CloneService: working copies wired to a pristine via alternates
- BulkExecutor: concurrent per-repository fan-out
- StatusService: status reporting and gc
- CredentialProvider: attempt-bounded credentials for network git
"""

from .credentials import AttemptCounter, Credential, CredentialKind, CredentialProvider, is_auth_error
from .vault_service import VaultService, AddResult, RemoveResult
from .pristine_service import PristineService
from .clone_service import CloneService
from .bulk_service import BulkExecutor
from .status_service import StatusService, check_alternates

__all__ = [
    'AttemptCounter',
    'Credential',
    'CredentialKind',
    'CredentialProvider',
    'is_auth_error',
    'VaultService',
    'AddResult',
    'RemoveResult',
    'PristineService',
    'CloneService',
    'BulkExecutor',
    'StatusService',
    'check_alternates',
]
