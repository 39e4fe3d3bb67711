"""
File store infrastructure for repoman.

Provides JSON file persistence with:
- Atomic writes (write to temp, then rename)
- Pretty formatting for human readability
- Thread-safe read-modify-write
- Automatic parent directory creation

Documents are re-read from disk on every access; other processes (the
agent, a second CLI invocation) may have written them since.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional
import logging

from ..errors import CorruptMetadata, FilesystemFailure

logger = logging.getLogger(__name__)


class JsonDocument:
    """
    One JSON document on disk.

    Example:
        doc = JsonDocument(Path("~/.repoman/vault/vault.json"), default=list)
        doc.update(lambda entries: entries.append({...}))
    """

    def __init__(self, path: Path, default: Callable[[], Any] = dict, expected_type: Optional[type] = None):
        """
        Initialize JsonDocument.

        Args:
            path: Path to JSON file
            default: Factory for the value of a missing document
            expected_type: Top-level type the document must have (defaults to
                the type produced by ``default``)
        """
        self.path = Path(path).expanduser()
        self._default = default
        self._expected_type = expected_type or type(default())
        self._lock = threading.RLock()

    def exists(self) -> bool:
        return self.path.exists()

    def _write_atomic(self, data: Any) -> None:
        """Write data atomically using temp file and rename."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp"
            )
        except OSError as e:
            raise FilesystemFailure(f"Cannot write {self.path}: {e}") from e

        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write('\n')

            os.replace(temp_path, self.path)

        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def read(self) -> Any:
        """
        Read the document.

        Returns:
            Parsed JSON, or a fresh default when the file does not exist

        Raises:
            CorruptMetadata: if the file is not valid JSON of the expected type
        """
        with self._lock:
            if not self.path.exists():
                return self._default()
            try:
                with open(self.path, 'r') as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise CorruptMetadata(str(self.path), str(e)) from e
            except OSError as e:
                raise FilesystemFailure(f"Cannot read {self.path}: {e}") from e

            if not isinstance(data, self._expected_type):
                raise CorruptMetadata(
                    str(self.path),
                    f"expected a JSON {self._expected_type.__name__}, got {type(data).__name__}",
                )
            return data

    def write(self, data: Any) -> None:
        with self._lock:
            self._write_atomic(data)

    def update(self, mutate: Callable[[Any], Any]) -> Any:
        """
        Read, mutate in place, write back. Returns whatever ``mutate`` returns.
        """
        with self._lock:
            data = self.read()
            result = mutate(data)
            self._write_atomic(data)
            return result

    def remove(self) -> bool:
        with self._lock:
            try:
                self.path.unlink()
                return True
            except FileNotFoundError:
                return False


class FileStore(JsonDocument):
    """
    JSON object persistence with a mapping interface.

    Example:
        store = FileStore(Path("~/.repoman/vault/aliases.json"))
        store.set("rg", "ripgrep")
        store.get("rg")
    """

    def __init__(self, path: Path):
        super().__init__(path, default=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        def _set(data: Dict[str, Any]) -> None:
            data[key] = value
        self.update(_set)

    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if key was deleted, False if not found
        """
        with self._lock:
            data = self.read()
            if key not in data:
                return False
            del data[key]
            self._write_atomic(data)
            return True

    def has(self, key: str) -> bool:
        return key in self.read()

    def keys(self) -> list:
        return list(self.read().keys())

    def items(self):
        return self.read().items()

    def __len__(self) -> int:
        return len(self.read())

    def __contains__(self, key: str) -> bool:
        return self.has(key)
