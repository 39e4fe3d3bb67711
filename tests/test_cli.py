"""
CLI tests using click's CliRunner against a temporary repoman home.
"""

import json
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from repoman import __version__
from repoman.api import Repoman
from repoman.cli import cli
from repoman.cli_utils import CliContext
from repoman.errors import NetworkFailure
from repoman.exit_codes import (
    CONFLICT,
    NOT_FOUND,
    PARTIAL_SUCCESS,
    USAGE_ERROR,
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, settings):
    repoman = Repoman(settings)

    def _invoke(*args, input=None):
        return runner.invoke(cli, list(args), obj=CliContext(_repoman=repoman), input=input)
    _invoke.repoman = repoman
    return _invoke


def _json_lines(output):
    return [json.loads(line) for line in output.splitlines() if line.startswith('{')]


class TestBasics:

    def test_version(self, runner):
        result = runner.invoke(cli, ['--version'])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ['--help'])
        assert result.exit_code == 0
        for command in ('add', 'init', 'clone', 'sync', 'update', 'destroy', 'gc', 'agent'):
            assert command in result.output


class TestVaultCommands:

    def test_add_json(self, invoke):
        result = invoke('add', 'https://github.com/BurntSushi/ripgrep.git', '--json')
        assert result.exit_code == 0
        assert _json_lines(result.output)[0]['name'] == 'ripgrep'

    def test_add_duplicate_exit_code(self, invoke):
        invoke('add', 'https://example.com/tool.git')
        result = invoke('add', 'https://example.com/tool.git')
        assert result.exit_code == CONFLICT

    def test_alias_and_list(self, invoke):
        invoke('add', 'https://example.com/ripgrep.git')
        assert invoke('alias', 'ripgrep', 'rg').exit_code == 0

        listed = _json_lines(invoke('alias', '--json').output)
        assert listed == [{'alias': 'rg', 'name': 'ripgrep'}]

        rows = _json_lines(invoke('list', '--json').output)
        assert rows[0]['name'] == 'ripgrep'
        assert rows[0]['aliases'] == ['rg']

    def test_alias_conflict(self, invoke):
        invoke('add', 'https://example.com/a.git')
        invoke('add', 'https://example.com/b.git')
        result = invoke('alias', 'a', 'b')
        assert result.exit_code == CONFLICT

    def test_alias_requires_both_arguments(self, invoke):
        assert invoke('alias', 'a').exit_code == USAGE_ERROR

    def test_remove_requires_confirmation(self, invoke):
        invoke('add', 'https://example.com/tool.git')
        result = invoke('remove', 'tool', input='n\n')
        assert result.exit_code != 0
        assert invoke.repoman.names() == ['tool']

        result = invoke('remove', 'tool', '-y')
        assert result.exit_code == 0
        assert invoke.repoman.names() == []

    def test_list_empty(self, invoke):
        result = invoke('list')
        assert result.exit_code == 0
        assert "empty" in result.output


class TestErrors:

    def test_status_unknown(self, invoke):
        assert invoke('status', 'nothing').exit_code == NOT_FOUND

    def test_json_error_reports_type(self, invoke):
        result = invoke('init', 'nothing', '--json')
        assert result.exit_code == NOT_FOUND
        assert _json_lines(result.output)[-1]['type'] == 'RepositoryNotFound'

    def test_init_needs_name_or_all(self, invoke):
        assert invoke('init').exit_code == USAGE_ERROR
        assert invoke('init', 'x', '--all').exit_code == USAGE_ERROR

    def test_destroy_needs_exactly_one_mode(self, invoke):
        assert invoke('destroy').exit_code == USAGE_ERROR
        assert invoke('destroy', 'x', '--all-pristines').exit_code == USAGE_ERROR

    def test_gc_rejects_negative_days(self, invoke):
        assert invoke('gc', '--days=-1').exit_code == USAGE_ERROR

    def test_open_unknown(self, invoke):
        assert invoke('open', 'nowhere').exit_code == NOT_FOUND


class TestBulkCommands:

    def test_partial_failure_exit_code(self, invoke, settings):
        rm = invoke.repoman
        for name in ('one', 'two', 'three'):
            rm.add(f"https://example.com/{name}.git")
            settings.pristine_path(name).mkdir()

        def fake_sync(name, kind=None):
            if name == 'two':
                raise NetworkFailure('https://example.com/two.git', 'unreachable')
            return 'abc123'

        rm.pristines.sync = MagicMock(side_effect=fake_sync)
        result = invoke('sync', '--all', '--json')

        assert result.exit_code == PARTIAL_SUCCESS
        lines = _json_lines(result.output)
        statuses = {line['name']: line['status'] for line in lines if 'name' in line}
        assert statuses == {'one': 'success', 'two': 'failed', 'three': 'success'}
        summary = [line for line in lines if line.get('type') == 'summary'][0]
        assert summary['successful'] == 2
        assert summary['failed'] == 1

    def test_sync_all_success(self, invoke, settings):
        rm = invoke.repoman
        rm.add("https://example.com/one.git")
        settings.pristine_path('one').mkdir()
        rm.pristines.sync = MagicMock(return_value='abc123')

        result = invoke('sync', '--all')
        assert result.exit_code == 0


class TestOpenAndOrphans:

    def test_open_prints_pristine_path(self, invoke, settings):
        invoke.repoman.add("https://example.com/tool.git")
        settings.pristine_path('tool').mkdir()

        result = invoke('open', 'tool')

        assert result.exit_code == 0
        assert result.output.strip() == str(settings.pristine_path('tool'))

    def test_orphans_json(self, invoke, settings):
        (settings.clones_dir / 'stray').mkdir()
        report = _json_lines(invoke('orphans', '--json').output)[0]
        assert report['orphaned_dirs'] == [str(settings.clones_dir / 'stray')]
        assert report['cleaned'] is False


class TestAgentCommands:

    def test_status_not_running(self, invoke):
        result = invoke('agent', 'status', '--json')
        assert result.exit_code == 0
        assert _json_lines(result.output)[0]['running'] is False

    def test_stop_when_not_running(self, invoke):
        result = invoke('agent', 'stop')
        assert result.exit_code != 0
