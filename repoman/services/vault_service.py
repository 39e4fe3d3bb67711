"""
Vault registry service for repoman.

Adds and removes vault entries, manages aliases, and resolves names.
Used by the `repoman add`, `repoman alias` and `repoman remove` commands.
"""

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
import logging

from ..config import Settings
from ..domain.metadata import RepoMetadata
from ..domain.vault import VaultEntry, extract_repo_name
from ..errors import (
    FilesystemFailure,
    NamingConflict,
    RepositoryNotFound,
)
from ..infra.git_client import GitClient
from ..infra.locks import pristine_lock, pristine_lock_path
from ..infra.metadata_store import MetadataStore
from .credentials import Transport, transport_for

logger = logging.getLogger(__name__)


def absolute_local_url(url: str, base: os.PathLike) -> str:
    """
    Anchor a relative local path at ``base`` so it stays valid from any
    working directory. Remote URLs are returned unchanged.
    """
    if "://" in url or transport_for(url) is not Transport.LOCAL:
        return url
    path = Path(url).expanduser()
    if path.is_absolute():
        return str(path)
    return os.path.normpath(Path(base).resolve() / path)


@dataclass
class AddResult:
    name: str
    urls: List[str]
    warnings: List[str] = field(default_factory=list)

    def to_dict(self):
        return {'name': self.name, 'urls': self.urls, 'warnings': self.warnings}


@dataclass
class RemoveResult:
    name: str
    clones_removed: List[str] = field(default_factory=list)
    pristine_removed: bool = False
    aliases_removed: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            'name': self.name,
            'clones_removed': self.clones_removed,
            'pristine_removed': self.pristine_removed,
            'aliases_removed': self.aliases_removed,
        }


class VaultService:
    """
    Registry of tracked repositories and their aliases.

    Example:
        service = VaultService(settings, store, git)
        name = service.add("https://github.com/BurntSushi/ripgrep.git").name
        service.alias(name, "rg")
    """

    def __init__(self, settings: Settings, store: MetadataStore, git: Optional[GitClient] = None):
        self.settings = settings
        self.store = store
        self.git = git or GitClient(timeout=settings.git_timeout)

    def resolve(self, name: str) -> str:
        return self.store.resolve(name)

    def get(self, name: str) -> VaultEntry:
        return self.store.get_entry(self.store.resolve(name))

    def names(self) -> List[str]:
        return self.store.names()

    def add(self, url: str) -> AddResult:
        """
        Add a repository URL (or local path) to the vault.

        Raises:
            ValueError: no name can be derived from the URL
            DuplicateRepository: the name is already a vault entry or alias
        """
        url = absolute_local_url(url.strip(), os.getcwd())
        return self._add([url], warnings=[])

    def add_from_working_directory(self, cwd: Optional[os.PathLike] = None) -> AddResult:
        """
        Add the repository checked out in ``cwd`` using all of its remotes.

        The default remote is chosen from, in order: the current branch's
        tracked remote, ``remote.pushDefault``, ``origin``, and the remote
        that sorts first.
        """
        cwd = Path(cwd or os.getcwd())
        if not self.git.is_git_repo(cwd):
            raise RepositoryNotFound(str(cwd), kind='vault', detail="(not a git repository)")

        remotes = self.git.remotes(cwd)
        if not remotes:
            raise RepositoryNotFound(str(cwd), kind='vault', detail="(no remotes configured)")

        default = None
        branch = self.git.current_branch(cwd)
        if branch:
            default = self.git.config_get(cwd, f"branch.{branch}.remote")
        if default not in remotes:
            default = self.git.config_get(cwd, "remote.pushDefault")
        if default not in remotes:
            default = "origin" if "origin" in remotes else sorted(remotes)[0]

        urls = [remotes[default]] + [remotes[r] for r in sorted(remotes) if r != default]
        urls = [absolute_local_url(u, cwd) for u in urls]
        warnings = []
        if len(urls) > 1:
            warnings.append(
                f"Multiple remotes detected. Adding all remotes with '{urls[0]}' as default."
            )
        return self._add(urls, warnings)

    def _add(self, urls: List[str], warnings: List[str]) -> AddResult:
        name = extract_repo_name(urls[0])
        entry = VaultEntry(name=name, urls=urls)
        self.store.add_entry(entry)
        try:
            self.store.write_metadata(name, RepoMetadata.new(urls, self.settings.default_sync_interval))
        except Exception:
            self.store.remove_entry(name)
            raise
        logger.info(f"Added '{name}' to vault ({urls[0]})")
        for warning in warnings:
            logger.warning(warning)
        return AddResult(name=name, urls=urls, warnings=warnings)

    # ------------------------------------------------------------------
    # Aliases
    # ------------------------------------------------------------------

    def alias(self, name: str, alias: str) -> str:
        """
        Point ``alias`` at the canonical repository ``name`` refers to.

        Raises:
            NamingConflict: ``alias`` is a canonical name or existing alias
            RepositoryNotFound: ``name`` does not resolve
        """
        alias = alias.strip()
        if not alias or '/' in alias or alias in ('.', '..'):
            raise NamingConflict(f"Invalid alias name '{alias}'")
        if self.store.contains(alias):
            raise NamingConflict(f"'{alias}' is already a repository name")
        existing = self.store.alias_target(alias)
        if existing is not None:
            raise NamingConflict(f"Alias '{alias}' already points to '{existing}'")

        canonical = self.store.resolve(name)
        self.store.set_alias(alias, canonical)
        logger.info(f"Alias '{alias}' -> '{canonical}'")
        return canonical

    def remove_alias(self, alias: str) -> str:
        target = self.store.alias_target(alias)
        if target is None:
            raise RepositoryNotFound(alias, kind='alias')
        self.store.delete_alias(alias)
        logger.info(f"Removed alias '{alias}'")
        return target

    def list_aliases(self) -> Dict[str, str]:
        return self.store.aliases()

    def aliases_for(self, canonical: str) -> List[str]:
        return sorted(a for a, target in self.store.aliases().items() if target == canonical)

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove(self, name: str) -> RemoveResult:
        """
        Remove a repository and everything derived from it.

        Clones, the pristine, the metadata directory, aliases and finally
        the vault entry are deleted in that order.
        """
        canonical = self.store.resolve(name)
        result = RemoveResult(name=canonical)

        if self.store.metadata_exists(canonical):
            metadata = self.store.read_metadata(canonical)
            for clone in metadata.clones:
                path = Path(clone.path)
                if path.exists():
                    _rmtree(path)
                result.clones_removed.append(clone.name)

        pristine = self.settings.pristine_path(canonical)
        if pristine.exists():
            with pristine_lock(self.settings.pristines_dir, canonical, self.settings.lock_timeout):
                _rmtree(pristine)
            result.pristine_removed = True
        pristine_lock_path(self.settings.pristines_dir, canonical).unlink(missing_ok=True)

        self.store.delete_metadata(canonical)
        result.aliases_removed = self.store.delete_aliases_for(canonical)
        self.store.remove_entry(canonical)
        logger.info(
            f"Removed '{canonical}' ({len(result.clones_removed)} clones, "
            f"pristine={'yes' if result.pristine_removed else 'no'})"
        )
        return result


def _rmtree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except OSError as e:
        raise FilesystemFailure(f"Cannot remove {path}: {e}") from e
