"""
Bulk executor for repoman.

Runs one per-repository operation across many vault entries at once. Each
repository gets its own worker; a failure is recorded against that
repository and never stops the others.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Iterable, Optional

from ..domain.operation import OperationDetail, OperationStatus, OperationSummary
from ..errors import RepomanError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[OperationDetail], None]


class BulkExecutor:
    """
    Fan-out over repositories with per-repository failure isolation.

    Example:
        executor = BulkExecutor()
        summary = executor.run("sync", names, pristines.sync, action="synced")
        for detail in summary.details:
            print(detail.repo_name, detail.status.value)
    """

    def __init__(self, max_workers: Optional[int] = None):
        """
        Args:
            max_workers: Worker cap; one worker per repository when None
        """
        self.max_workers = max_workers

    def run(
        self,
        operation: str,
        names: Iterable[str],
        func: Callable[[str], Any],
        action: Optional[str] = None,
        on_result: Optional[ProgressCallback] = None,
    ) -> OperationSummary:
        """
        Apply ``func`` to every name concurrently and wait for all of them.

        ``func`` may return a dict, which is attached to the detail as
        metadata, or anything else, which becomes the detail message.

        Returns:
            OperationSummary with exactly one detail per name
        """
        names = list(dict.fromkeys(names))
        summary = OperationSummary(operation=operation)
        action = action or operation
        if not names:
            return summary

        def run_one(name: str) -> OperationDetail:
            try:
                value = func(name)
            except RepomanError as e:
                logger.error(f"{operation} failed for '{name}': {e}")
                return OperationDetail(
                    repo_name=name,
                    status=OperationStatus.FAILED,
                    action=f"{operation}_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
            except Exception as e:
                logger.exception(f"Unexpected error during {operation} of '{name}'")
                return OperationDetail(
                    repo_name=name,
                    status=OperationStatus.FAILED,
                    action=f"{operation}_failed",
                    error=str(e) or type(e).__name__,
                    error_type=type(e).__name__,
                )
            if isinstance(value, OperationDetail):
                return value
            detail = OperationDetail(repo_name=name, status=OperationStatus.SUCCESS, action=action)
            if isinstance(value, dict):
                detail.metadata = value
            elif value is not None:
                detail.message = str(value)
            return detail

        workers = self.max_workers or len(names)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"repoman-{operation}") as executor:
            futures = {executor.submit(run_one, name): name for name in names}

            for future in as_completed(futures):
                detail = future.result()
                summary.add_detail(detail)
                if on_result is not None:
                    on_result(detail)

        summary.details.sort(key=lambda d: names.index(d.repo_name))
        return summary
