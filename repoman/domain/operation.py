"""
Operation result domain objects for repoman.

Provides standardized result types for bulk operations (init, sync,
update) that fan out across vault entries.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class OperationStatus(Enum):
    """Status of an individual operation."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class OperationDetail:
    """
    Details of a single operation on one repository.

    Used to track what happened to each repo during bulk operations.
    """
    repo_name: str
    status: OperationStatus
    action: str  # e.g., "initialized", "synced", "updated", "init_failed"
    message: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'name': self.repo_name,
            'status': self.status.value,
            'action': self.action,
        }
        if self.message:
            result['message'] = self.message
        if self.error:
            result['error'] = self.error
            result['error_type'] = self.error_type
        if self.metadata:
            result.update(self.metadata)
        return result


@dataclass
class CloneUpdate:
    """Outcome of fast-forwarding one clone from its pristine."""
    clone: str
    path: str
    outcome: str  # up_to_date, fast_forwarded, diverged, skipped, failed
    branch: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'clone': self.clone, 'path': self.path, 'outcome': self.outcome}
        if self.branch:
            result['branch'] = self.branch
        if self.message:
            result['message'] = self.message
        return result


@dataclass
class OperationSummary:
    """
    Summary of a bulk operation across multiple repositories.

    Every repository in the batch contributes exactly one detail, whether it
    succeeded or failed.
    """
    operation: str  # e.g., "init", "sync", "update"
    total: int = 0
    successful: int = 0
    failed: int = 0
    details: List[OperationDetail] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no failures occurred."""
        return self.failed == 0

    def add_detail(self, detail: OperationDetail) -> None:
        """Add an operation detail and update counts."""
        self.details.append(detail)
        self.total += 1

        if detail.status == OperationStatus.SUCCESS:
            self.successful += 1
        elif detail.status == OperationStatus.FAILED:
            self.failed += 1
            if detail.error:
                self.errors.append(f"{detail.repo_name}: {detail.error}")

    def detail_for(self, name: str) -> Optional[OperationDetail]:
        for detail in self.details:
            if detail.repo_name == name:
                return detail
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': 'summary',
            'operation': self.operation,
            'total': self.total,
            'successful': self.successful,
            'failed': self.failed,
            'errors': self.errors,
        }
