"""
End-to-end lifecycle tests against real git repositories on local paths.
"""

import shutil
from pathlib import Path

import pytest
from click.testing import CliRunner

from repoman.domain.metadata import SyncKind
from repoman.cli import cli
from repoman.cli_utils import CliContext
from repoman.errors import (
    AlreadyExists,
    NamingConflict,
    NetworkFailure,
    RepositoryNotFound,
    UpdateFailed,
)
from repoman.exit_codes import GENERAL_ERROR, PARTIAL_SUCCESS
from repoman.services.status_service import check_alternates

from conftest import git, requires_git

pytestmark = requires_git


@pytest.fixture
def project(rm, upstream):
    """An upstream with a tag, added to the vault and initialized."""
    repo = upstream("project")
    repo.tag("v1.2.0")
    repo.commit("src.py")
    repo.tag("v1.10.0")
    name = rm.add(repo.url).name
    rm.init(name)
    return repo


class TestPristine:

    def test_init_creates_bare_mirror(self, rm, project, settings):
        path = settings.pristine_path("project")
        assert (path / "HEAD").is_file()
        assert git("rev-parse", "--is-bare-repository", cwd=path) == "true"
        assert git("config", "--get", "remote.origin.fetch", cwd=path) == "+refs/heads/*:refs/heads/*"

        md = rm.store.read_metadata("project")
        assert md.default_branch == "main"
        assert md.current_branch_hash == project.head()
        assert md.latest_tag == "v1.10.0"
        assert md.readme.startswith("# Project")
        assert md.pristine_created is not None

    def test_init_twice_fails(self, rm, project):
        with pytest.raises(AlreadyExists):
            rm.init("project")

    def test_init_unknown_repository(self, rm):
        with pytest.raises(RepositoryNotFound):
            rm.init("nothing")

    def test_failed_init_leaves_nothing(self, rm, tmp_path, settings):
        rm.add(str(tmp_path / "does-not-exist" / "ghost.git"))
        with pytest.raises(NetworkFailure):
            rm.init("ghost")
        assert not settings.pristine_path("ghost").exists()

    def test_sync_fetches_new_commits_and_tags(self, rm, project, settings):
        new_head = project.commit("more.txt")
        project.tag("v2.0.0")

        head = rm.sync("project")

        assert head == new_head
        md = rm.store.read_metadata("project")
        assert md.latest_tag == "v2.0.0"
        assert md.last_sync.kind is SyncKind.MANUAL
        assert "v2.0.0" in rm.pristines.tags("project")
        assert rm.pristines.head_commit("project") == new_head

    def test_sync_is_idempotent(self, rm, project, settings):
        first = rm.sync("project")
        refs_before = git("for-each-ref", cwd=settings.pristine_path("project"))
        second = rm.sync("project")
        refs_after = git("for-each-ref", cwd=settings.pristine_path("project"))

        assert first == second
        assert refs_before == refs_after

    def test_sync_follows_remote_default_branch(self, rm, project):
        project.branch("trunk")
        git("symbolic-ref", "HEAD", "refs/heads/trunk", cwd=project.path)

        rm.sync("project")

        assert rm.store.read_metadata("project").default_branch == "trunk"

    def test_sync_prunes_deleted_branches(self, rm, project):
        project.branch("feature")
        rm.sync("project")
        assert "feature" in rm.pristines.branches("project")

        git("branch", "-D", "feature", cwd=project.path)
        rm.sync("project")
        assert "feature" not in rm.pristines.branches("project")

    def test_relative_local_path_keeps_syncing(self, rm, upstream, monkeypatch):
        repo = upstream("rel")
        monkeypatch.chdir(repo.path.parent)
        rm.add("./rel")
        rm.init("rel")
        new_head = repo.commit("later.txt")

        assert rm.sync("rel") == new_head

    def test_sync_without_pristine(self, rm, upstream):
        rm.add(upstream("lonely").url)
        with pytest.raises(RepositoryNotFound) as exc:
            rm.sync("lonely")
        assert exc.value.kind == "pristine"

    def test_check_for_new_tag(self, rm, project):
        assert rm.pristines.check_for_new_tag("project") is None
        project.tag("v3.0.0")
        assert rm.pristines.check_for_new_tag("project") == "v3.0.0"


class TestClone:

    def test_clone_uses_alternates(self, rm, project, settings):
        record = rm.clone("project", "work")

        path = Path(record.path)
        assert path == settings.clone_path("project", "work")
        assert (path / "README.md").is_file()
        alternates = (path / ".git" / "objects" / "info" / "alternates").read_text().strip()
        assert Path(alternates).resolve() == (settings.pristine_path("project") / "objects").resolve()
        assert check_alternates(path, settings.pristine_path("project")).healthy

        assert git("remote", "get-url", "upstream", cwd=path) == project.url
        assert rm.store.read_metadata("project").find_clone("work").branch == "main"

    def test_generated_name(self, rm, project):
        record = rm.clone("project")
        assert len(record.name) == 6
        assert Path(record.path).name == f"project-{record.name}"

    def test_clone_via_alias(self, rm, project):
        rm.alias("project", "proj")
        record = rm.clone("proj", "a1")
        assert Path(record.path).name == "project-a1"

    def test_clone_branch(self, rm, project):
        project.branch("dev")
        rm.sync("project")
        record = rm.clone("project", "d", branch="dev")
        assert git("rev-parse", "--abbrev-ref", "HEAD", cwd=record.path) == "dev"

    def test_unknown_branch(self, rm, project, settings):
        with pytest.raises(RepositoryNotFound) as exc:
            rm.clone("project", "x", branch="nope")
        assert exc.value.kind == "branch"
        assert not settings.clone_path("project", "x").exists()

    def test_duplicate_clone_name(self, rm, project):
        rm.clone("project", "same")
        with pytest.raises(AlreadyExists):
            rm.clone("project", "same")

    def test_invalid_clone_name(self, rm, project):
        with pytest.raises(NamingConflict):
            rm.clone("project", "../escape")

    def test_clone_without_pristine(self, rm, upstream):
        rm.add(upstream("bare-only").url)
        with pytest.raises(RepositoryNotFound):
            rm.clone("bare-only")


class TestUpdate:

    def test_fast_forwards_clean_clone(self, rm, project):
        record = rm.clone("project", "ff")
        new_head = project.commit("next.txt")

        result = rm.update("project")

        assert result['head'] == new_head
        assert result['clones'][0]['outcome'] == "fast_forwarded"
        assert git("rev-parse", "HEAD", cwd=record.path) == new_head

    def test_up_to_date(self, rm, project):
        rm.clone("project", "same")
        result = rm.update("project")
        assert result['clones'][0]['outcome'] == "up_to_date"

    def test_diverged_clone_is_left_alone(self, rm, project):
        record = rm.clone("project", "mine")
        git("config", "commit.gpgsign", "false", cwd=record.path)
        Path(record.path, "local.txt").write_text("local\n")
        git("add", "local.txt", cwd=record.path)
        git("commit", "--quiet", "-m", "local work", cwd=record.path)
        local_head = git("rev-parse", "HEAD", cwd=record.path)
        project.commit("upstream.txt")

        result = rm.update("project")

        assert result['clones'][0]['outcome'] == "diverged"
        assert git("rev-parse", "HEAD", cwd=record.path) == local_head

    def test_update_all(self, rm, project, upstream):
        other = upstream("other")
        rm.add(other.url)
        rm.init("other")
        rm.clone("other", "o1")

        summary = rm.update_all()

        assert summary.total == 2
        assert summary.success

    def _break_origin(self, record):
        git("remote", "set-url", "origin", "/nonexistent/pristine", cwd=record.path)

    def test_clone_fetch_failure_raises(self, rm, project):
        self._break_origin(rm.clone("project", "broken"))
        rm.clone("project", "fine")
        new_head = project.commit("next.txt")

        with pytest.raises(UpdateFailed) as exc_info:
            rm.update("project")

        outcomes = {u.clone: u.outcome for u in exc_info.value.updates}
        assert outcomes == {"broken": "failed", "fine": "fast_forwarded"}
        assert exc_info.value.head == new_head
        assert exc_info.value.exit_code == GENERAL_ERROR

    def test_update_all_counts_clone_failure(self, rm, project):
        self._break_origin(rm.clone("project", "broken"))
        project.commit("next.txt")

        summary = rm.update_all()

        assert summary.failed == 1
        assert summary.details[0].error_type == "UpdateFailed"

    def test_update_cli_exits_non_zero(self, rm, project):
        self._break_origin(rm.clone("project", "broken"))
        project.commit("next.txt")
        runner = CliRunner()

        single = runner.invoke(cli, ["update", "project"], obj=CliContext(_repoman=rm))
        bulk = runner.invoke(cli, ["update", "--all"], obj=CliContext(_repoman=rm))

        assert single.exit_code == GENERAL_ERROR
        assert "broken" in single.output
        assert bulk.exit_code == PARTIAL_SUCCESS


class TestDestroy:

    def test_destroy_clone(self, rm, project, settings):
        record = rm.clone("project", "gone")
        kind, path = rm.destroy("gone")

        assert kind == "clone"
        assert not Path(path).exists()
        assert rm.store.read_metadata("project").clones == []

    def test_destroy_clone_by_directory_name(self, rm, project):
        record = rm.clone("project", "dir")
        kind, _ = rm.destroy(Path(record.path).name)
        assert kind == "clone"

    def test_destroy_pristine_leaves_clone_unhealthy(self, rm, project, settings):
        record = rm.clone("project", "survivor")

        kind, _ = rm.destroy("project")

        assert kind == "pristine"
        assert not settings.pristine_path("project").exists()
        assert Path(record.path).is_dir()
        health = check_alternates(Path(record.path), settings.pristine_path("project"))
        assert health.pointer_present
        assert not health.target_present
        assert not health.healthy

        status = rm.status("project")
        assert not status.pristine_exists
        assert not status.clones[0].alternates.healthy

    def test_destroy_unknown(self, rm):
        with pytest.raises(RepositoryNotFound):
            rm.destroy("missing")

    def test_destroy_all_clones(self, rm, project):
        rm.clone("project", "a")
        rm.clone("project", "b")
        destroyed = rm.destroy_all_clones("project")
        assert len(destroyed) == 2
        assert rm.store.read_metadata("project").clones == []

    def test_destroy_all_pristines(self, rm, project, settings):
        assert rm.destroy_all_pristines() == ["project"]
        assert not settings.pristine_path("project").exists()
        assert rm.store.read_metadata("project").pristine_created is None


class TestRemove:

    def test_remove_leaves_no_trace(self, rm, project, settings):
        rm.alias("project", "p")
        rm.clone("project", "c1")
        rm.clone("project", "c2")

        result = rm.remove("p")

        assert result.clones_removed == ["c1", "c2"]
        assert rm.names() == []
        assert rm.aliases() == {}
        assert list(settings.clones_dir.iterdir()) == []
        assert list(settings.pristines_dir.iterdir()) == []
        assert not (settings.vault_dir / "project").exists()


class TestOrphans:

    def test_detect_and_cleanup(self, rm, project, settings):
        kept = rm.clone("project", "kept")
        vanished = rm.clone("project", "vanished")
        stray = settings.clones_dir / "stray-dir"
        stray.mkdir()
        shutil.rmtree(vanished.path)

        report = rm.orphans()
        assert report.orphaned_dirs == [str(stray)]
        assert [r['clone'] for r in report.dangling_records] == ["vanished"]
        assert stray.exists()

        cleaned = rm.orphans(cleanup=True)
        assert cleaned.cleaned
        assert not stray.exists()
        assert Path(kept.path).exists()
        assert [c.name for c in rm.store.read_metadata("project").clones] == ["kept"]
        assert rm.orphans().orphaned_dirs == []


class TestStatus:

    def test_dirty_and_ahead(self, rm, project):
        record = rm.clone("project", "s")
        Path(record.path, "README.md").write_text("changed\n")

        status = rm.status("project")

        clone = status.clones[0]
        assert clone.dirty
        assert clone.changed_files == 1
        assert clone.has_upstream
        assert clone.ahead == 0
        assert clone.alternates.healthy
        assert status.default_branch == "main"

    def test_list_repos(self, rm, project, upstream):
        rm.add(upstream("second").url)
        rm.alias("project", "p")
        rm.clone("project", "c")

        rows = {row['name']: row for row in rm.list_repos()}

        assert rows['project']['pristine'] is True
        assert rows['project']['clones'] == ["c"]
        assert rows['project']['aliases'] == ["p"]
        assert rows['project']['latest_tag'] == "v1.10.0"
        assert rows['second']['pristine'] is False

    def test_find_path(self, rm, project, settings):
        record = rm.clone("project", "here")
        assert rm.find_path("project") == settings.pristine_path("project")
        assert rm.find_path("here") == Path(record.path)
        with pytest.raises(RepositoryNotFound):
            rm.find_path("nowhere")


class TestGc:

    def test_dry_run_changes_nothing(self, rm, upstream, settings):
        old = upstream("old")
        old.commit("x.txt", date="2001-01-01T00:00:00+00:00")
        rm.add(old.url)
        rm.init("old")
        record = rm.clone("old", "ancient")

        report = rm.gc(days=30, dry_run=True)

        assert [s.clone for s in report.stale_clones] == ["ancient"]
        assert report.removed_clones == []
        assert Path(record.path).exists()

        report = rm.gc(days=30)
        assert report.removed_clones == [record.path]
        assert not Path(record.path).exists()
        assert report.pristines_collected == ["old"]
