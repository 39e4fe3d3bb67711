"""
Advisory file locks.

A pristine is mutated by the CLI and by the agent, possibly at the same
time. Every mutation of a pristine holds ``<pristines_dir>/.<name>.lock``;
every read-modify-write of a metadata document holds a lock file next to
the document.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
import logging

from filelock import FileLock, Timeout

from ..errors import LockTimeout

logger = logging.getLogger(__name__)


def pristine_lock_path(pristines_dir: Path, name: str) -> Path:
    return Path(pristines_dir) / f".{name}.lock"


@contextmanager
def pristine_lock(pristines_dir: Path, name: str, timeout: float = 600) -> Iterator[None]:
    """
    Hold the advisory lock for one pristine.

    Raises:
        LockTimeout: if the lock is not acquired within ``timeout`` seconds
    """
    path = pristine_lock_path(pristines_dir, name)
    path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(path))
    try:
        lock.acquire(timeout=timeout)
    except Timeout as e:
        raise LockTimeout(name, timeout) from e
    logger.debug(f"Acquired pristine lock {path}")
    try:
        yield
    finally:
        lock.release()
        logger.debug(f"Released pristine lock {path}")


@contextmanager
def document_lock(document: Path, timeout: float = 60) -> Iterator[None]:
    """Serialize read-modify-write of one JSON document across processes."""
    path = Path(document)
    path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(path.parent / f".{path.name}.lock"))
    try:
        lock.acquire(timeout=timeout)
    except Timeout as e:
        raise LockTimeout(path.name, timeout) from e
    try:
        yield
    finally:
        lock.release()
