"""
Tests for the vault: name extraction, entries, aliases and removal.
"""

import json
from unittest.mock import MagicMock

import pytest

from repoman.domain.vault import VaultEntry, extract_repo_name
from repoman.errors import (
    DuplicateRepository,
    NamingConflict,
    RepositoryNotFound,
)
from repoman.infra.metadata_store import MetadataStore
from repoman.services.vault_service import VaultService, absolute_local_url


class TestExtractRepoName:
    """Tests for extract_repo_name."""

    @pytest.mark.parametrize("url,expected", [
        ("https://github.com/BurntSushi/ripgrep.git", "ripgrep"),
        ("https://github.com/BurntSushi/ripgrep", "ripgrep"),
        ("https://github.com/BurntSushi/ripgrep/", "ripgrep"),
        ("git@github.com:sharkdp/fd.git", "fd"),
        ("git@github.com:fd.git", "fd"),
        ("ssh://git@example.com:2222/team/tool.git", "tool"),
        ("  /srv/git/project.git/  ", "project"),
    ])
    def test_supported_forms(self, url, expected):
        assert extract_repo_name(url) == expected

    @pytest.mark.parametrize("url", ["", "   ", ".git", "/"])
    def test_rejects_urls_without_name(self, url):
        with pytest.raises(ValueError):
            extract_repo_name(url)


class TestVaultEntry:

    def test_default_url_is_first(self):
        entry = VaultEntry(name="tool", urls=["git@a:tool.git", "https://b/tool"])
        assert entry.default_url == "git@a:tool.git"

    def test_accepts_legacy_single_url(self):
        entry = VaultEntry.from_dict({"name": "tool", "url": "https://x/tool.git"})
        assert entry.urls == ["https://x/tool.git"]

    def test_requires_urls(self):
        with pytest.raises(ValueError):
            VaultEntry.from_dict({"name": "tool", "urls": []})


@pytest.fixture
def store(settings):
    return MetadataStore(settings)


@pytest.fixture
def vault(settings, store):
    return VaultService(settings, store, git=MagicMock())


class TestVaultService:
    """Tests for VaultService add/alias/remove."""

    def test_add_writes_vault_and_metadata(self, vault, store, settings):
        result = vault.add("https://github.com/BurntSushi/ripgrep.git")

        assert result.name == "ripgrep"
        on_disk = json.loads(settings.vault_file.read_text())
        assert on_disk[0]["name"] == "ripgrep"
        assert on_disk[0]["urls"] == ["https://github.com/BurntSushi/ripgrep.git"]
        metadata = store.read_metadata("ripgrep")
        assert metadata.git_urls == ["https://github.com/BurntSushi/ripgrep.git"]
        assert metadata.sync_interval == 3600
        assert metadata.clones == []

    def test_vault_entry_survives_reload(self, vault, settings):
        vault.add("https://example.com/a.git")
        vault.add("https://example.com/b.git")

        reloaded = MetadataStore(settings).entries()
        assert [e.name for e in reloaded] == ["a", "b"]
        assert reloaded[1].urls == ["https://example.com/b.git"]

    def test_add_duplicate_fails(self, vault):
        vault.add("https://example.com/tool.git")
        with pytest.raises(DuplicateRepository):
            vault.add("git@other.host:someone/tool.git")

    def test_add_name_taken_by_alias_fails(self, vault):
        vault.add("https://example.com/ripgrep.git")
        vault.alias("ripgrep", "rg")
        with pytest.raises(DuplicateRepository):
            vault.add("https://example.com/rg.git")

    def test_alias_resolves(self, vault):
        vault.add("https://example.com/ripgrep.git")
        assert vault.alias("ripgrep", "rg") == "ripgrep"
        assert vault.resolve("rg") == "ripgrep"
        assert vault.get("rg").name == "ripgrep"

    def test_alias_of_alias_points_at_canonical(self, vault):
        vault.add("https://example.com/ripgrep.git")
        vault.alias("ripgrep", "rg")
        vault.alias("rg", "grep2")
        assert vault.list_aliases()["grep2"] == "ripgrep"
        assert vault.aliases_for("ripgrep") == ["grep2", "rg"]

    def test_alias_equal_to_canonical_name_fails(self, vault, store):
        vault.add("https://example.com/ripgrep.git")
        vault.add("https://example.com/fd.git")

        with pytest.raises(NamingConflict):
            vault.alias("ripgrep", "fd")
        assert store.aliases() == {}

    def test_duplicate_alias_fails(self, vault):
        vault.add("https://example.com/ripgrep.git")
        vault.add("https://example.com/fd.git")
        vault.alias("ripgrep", "x")
        with pytest.raises(NamingConflict):
            vault.alias("fd", "x")

    def test_alias_to_unknown_repo_fails(self, vault):
        with pytest.raises(RepositoryNotFound):
            vault.alias("missing", "m")

    def test_remove_alias(self, vault):
        vault.add("https://example.com/ripgrep.git")
        vault.alias("ripgrep", "rg")
        assert vault.remove_alias("rg") == "ripgrep"
        with pytest.raises(RepositoryNotFound):
            vault.resolve("rg")
        with pytest.raises(RepositoryNotFound):
            vault.remove_alias("rg")

    def test_remove_cascades(self, vault, store, settings):
        vault.add("https://example.com/tool.git")
        vault.add("https://example.com/other.git")
        vault.alias("tool", "t")
        vault.alias("other", "o")

        clone_dir = settings.clone_path("tool", "abc123")
        clone_dir.mkdir(parents=True)
        (clone_dir / "file").write_text("x")
        from repoman.domain.metadata import CloneRecord
        store.update_metadata("tool", lambda md: md.add_clone(CloneRecord(name="abc123", path=str(clone_dir))))
        settings.pristine_path("tool").mkdir(parents=True)

        result = vault.remove("t")

        assert result.name == "tool"
        assert result.clones_removed == ["abc123"]
        assert result.pristine_removed
        assert result.aliases_removed == ["t"]
        assert not clone_dir.exists()
        assert not settings.pristine_path("tool").exists()
        assert not settings.metadata_file("tool").parent.exists()
        assert store.names() == ["other"]
        assert store.aliases() == {"o": "other"}

    def test_remove_unknown_fails(self, vault):
        with pytest.raises(RepositoryNotFound):
            vault.remove("nope")


class TestAddFromWorkingDirectory:
    """Default remote selection when adding the current repository."""

    def _git(self, remotes, branch="main", config=None):
        git = MagicMock()
        git.is_git_repo.return_value = True
        git.remotes.return_value = remotes
        git.current_branch.return_value = branch
        config = config or {}
        git.config_get.side_effect = lambda path, key: config.get(key)
        return git

    def test_branch_remote_wins(self, settings, store, tmp_path):
        git = self._git(
            {"origin": "https://a/tool.git", "fork": "https://b/tool.git"},
            config={"branch.main.remote": "fork", "remote.pushDefault": "origin"},
        )
        result = VaultService(settings, store, git).add_from_working_directory(tmp_path)

        assert result.urls == ["https://b/tool.git", "https://a/tool.git"]
        assert len(result.warnings) == 1

    def test_push_default_before_origin(self, settings, store, tmp_path):
        git = self._git(
            {"origin": "https://a/tool.git", "mine": "https://c/tool.git"},
            config={"remote.pushDefault": "mine"},
        )
        result = VaultService(settings, store, git).add_from_working_directory(tmp_path)
        assert result.urls[0] == "https://c/tool.git"

    def test_origin_before_alphabetical(self, settings, store, tmp_path):
        git = self._git({"alpha": "https://a/tool.git", "origin": "https://o/tool.git"})
        result = VaultService(settings, store, git).add_from_working_directory(tmp_path)
        assert result.urls == ["https://o/tool.git", "https://a/tool.git"]

    def test_first_alphabetical_otherwise(self, settings, store, tmp_path):
        git = self._git({"zeta": "https://z/tool.git", "beta": "https://b/tool.git"}, branch=None)
        result = VaultService(settings, store, git).add_from_working_directory(tmp_path)
        assert result.urls[0] == "https://b/tool.git"

    def test_single_remote_has_no_warning(self, settings, store, tmp_path):
        git = self._git({"origin": "https://o/tool.git"})
        result = VaultService(settings, store, git).add_from_working_directory(tmp_path)
        assert result.warnings == []
        assert store.get_entry("tool").urls == ["https://o/tool.git"]

    def test_no_remotes_fails(self, settings, store, tmp_path):
        git = self._git({})
        with pytest.raises(RepositoryNotFound):
            VaultService(settings, store, git).add_from_working_directory(tmp_path)

    def test_relative_remote_is_anchored_at_repository(self, settings, store, tmp_path):
        repo = tmp_path / "work" / "tool"
        git = self._git({"origin": "../upstream/tool.git"})

        result = VaultService(settings, store, git).add_from_working_directory(repo)

        expected = str(tmp_path.resolve() / "work" / "upstream" / "tool.git")
        assert result.urls == [expected]


class TestAbsoluteLocalUrl:

    @pytest.mark.parametrize("url", [
        "https://github.com/BurntSushi/ripgrep.git",
        "git@github.com:sharkdp/fd.git",
        "ssh://git@example.com/team/tool.git",
        "file:///srv/git/tool.git",
        "/srv/git/tool.git",
    ])
    def test_unchanged(self, url, tmp_path):
        assert absolute_local_url(url, tmp_path) == url

    def test_relative_path(self, tmp_path):
        assert absolute_local_url("./repos/../tool", tmp_path) == str(tmp_path.resolve() / "tool")

    def test_add_stores_absolute_path(self, vault, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        result = vault.add("./tool")
        assert result.name == "tool"
        assert vault.get("tool").urls == [str(tmp_path.resolve() / "tool")]


class TestConcurrentAdd:

    def test_entry_added_by_another_process_is_rejected(self, settings, store):
        VaultService(settings, MetadataStore(settings)).add("https://example.com/tool.git")

        with pytest.raises(DuplicateRepository):
            store.add_entry(VaultEntry(name="tool", urls=["https://other.example/tool.git"]))
        assert store.names() == ["tool"]

    def test_alias_name_rejected_under_lock(self, vault, store):
        vault.add("https://example.com/ripgrep.git")
        vault.alias("ripgrep", "rg")
        with pytest.raises(DuplicateRepository):
            store.add_entry(VaultEntry(name="rg", urls=["https://example.com/rg.git"]))
