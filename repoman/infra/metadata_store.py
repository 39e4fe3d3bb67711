"""
Metadata store: the vault index, the alias table and per-repository
metadata documents, all kept as JSON under the vault directory.

Data access plus the uniqueness check on new vault entries. Alias rules
and cascades live in the vault service.
"""

import shutil
from typing import Callable, Dict, List, Optional, TypeVar
import logging

from ..config import Settings
from ..domain.metadata import RepoMetadata
from ..domain.vault import VaultEntry
from ..errors import CorruptMetadata, DuplicateRepository, FilesystemFailure, RepositoryNotFound
from .file_store import FileStore, JsonDocument
from .locks import document_lock

logger = logging.getLogger(__name__)

T = TypeVar('T')


class MetadataStore:
    """
    Filesystem-backed storage for vault entries, aliases and metadata.

    Example:
        store = MetadataStore(settings)
        for entry in store.entries():
            md = store.read_metadata(entry.name)
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._vault = JsonDocument(settings.vault_file, default=list)
        self._aliases = FileStore(settings.aliases_file)

    # ------------------------------------------------------------------
    # Vault index
    # ------------------------------------------------------------------

    def entries(self) -> List[VaultEntry]:
        raw = self._vault.read()
        try:
            return [VaultEntry.from_dict(item) for item in raw]
        except (TypeError, ValueError, AttributeError) as e:
            raise CorruptMetadata(str(self.settings.vault_file), str(e)) from e

    def names(self) -> List[str]:
        return [entry.name for entry in self.entries()]

    def contains(self, name: str) -> bool:
        return name in self.names()

    def get_entry(self, name: str) -> VaultEntry:
        """Look up a canonical name. Use ``resolve`` first for aliases."""
        for entry in self.entries():
            if entry.name == name:
                return entry
        raise RepositoryNotFound(name, kind='vault')

    def add_entry(self, entry: VaultEntry) -> None:
        """
        Append an entry, checking under the vault lock that its name is
        neither a vault entry nor an alias.

        Raises:
            DuplicateRepository: the name is taken
        """
        def _append(items: list) -> None:
            if any(item.get('name') == entry.name for item in items):
                raise DuplicateRepository(entry.name)
            if self.alias_target(entry.name) is not None:
                raise DuplicateRepository(entry.name)
            items.append(entry.to_dict())

        with document_lock(self.settings.vault_file):
            self._vault.update(_append)

    def remove_entry(self, name: str) -> bool:
        def _remove(items: list) -> bool:
            before = len(items)
            items[:] = [item for item in items if item.get('name') != name]
            return len(items) != before

        with document_lock(self.settings.vault_file):
            return self._vault.update(_remove)

    # ------------------------------------------------------------------
    # Aliases
    # ------------------------------------------------------------------

    def aliases(self) -> Dict[str, str]:
        return dict(self._aliases.items())

    def alias_target(self, alias: str) -> Optional[str]:
        return self._aliases.get(alias)

    def set_alias(self, alias: str, canonical: str) -> None:
        with document_lock(self.settings.aliases_file):
            self._aliases.set(alias, canonical)

    def delete_alias(self, alias: str) -> bool:
        with document_lock(self.settings.aliases_file):
            return self._aliases.delete(alias)

    def delete_aliases_for(self, canonical: str) -> List[str]:
        def _drop(data: dict) -> List[str]:
            doomed = [alias for alias, target in data.items() if target == canonical]
            for alias in doomed:
                del data[alias]
            return doomed

        with document_lock(self.settings.aliases_file):
            return self._aliases.update(_drop)

    def resolve(self, name: str) -> str:
        """
        Map a canonical name or alias to the canonical name.

        Raises:
            RepositoryNotFound: if ``name`` is neither
        """
        if self.contains(name):
            return name
        target = self.alias_target(name)
        if target is not None:
            return target
        raise RepositoryNotFound(name, kind='vault')

    # ------------------------------------------------------------------
    # Per-repository metadata
    # ------------------------------------------------------------------

    def _metadata_doc(self, name: str) -> JsonDocument:
        return JsonDocument(self.settings.metadata_file(name), default=dict)

    def metadata_exists(self, name: str) -> bool:
        return self.settings.metadata_file(name).exists()

    def read_metadata(self, name: str) -> RepoMetadata:
        doc = self._metadata_doc(name)
        if not doc.exists():
            raise RepositoryNotFound(name, kind='vault', detail="(metadata missing)")
        data = doc.read()
        try:
            return RepoMetadata.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptMetadata(str(doc.path), f"{type(e).__name__}: {e}") from e

    def write_metadata(self, name: str, metadata: RepoMetadata) -> None:
        path = self.settings.metadata_file(name)
        with document_lock(path):
            self._metadata_doc(name).write(metadata.to_dict())

    def update_metadata(self, name: str, mutate: Callable[[RepoMetadata], T]) -> T:
        """
        Read-modify-write one metadata document under its lock.

        Returns whatever ``mutate`` returns.
        """
        path = self.settings.metadata_file(name)
        with document_lock(path):
            metadata = self.read_metadata(name)
            result = mutate(metadata)
            self._metadata_doc(name).write(metadata.to_dict())
            return result

    def delete_metadata(self, name: str) -> None:
        directory = self.settings.metadata_file(name).parent
        if not directory.exists():
            return
        try:
            shutil.rmtree(directory)
        except OSError as e:
            raise FilesystemFailure(f"Cannot remove metadata directory {directory}: {e}") from e

    def all_metadata(self) -> Dict[str, RepoMetadata]:
        """Metadata for every vault entry that has a readable document."""
        result = {}
        for name in self.names():
            try:
                result[name] = self.read_metadata(name)
            except RepositoryNotFound:
                logger.warning(f"Vault entry '{name}' has no metadata document")
        return result
