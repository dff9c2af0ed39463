"""
Tests for the click command-line interface.
"""

import logging

import click
import pytest
from click.testing import CliRunner
from unittest.mock import MagicMock, patch

from harvester.cli.main import cli
from harvester.cli.utils import parse_letters
from harvester.directory import DirectoryEntry, FullProfile
from harvester.exceptions import ProtocolShapeError, VendorRejectedError
from harvester.pipeline import PipelineStats
from harvester.unsubscribe import ConfirmationResponse, UnsubscribeResult


@pytest.fixture
def runner():
    """Create Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logging.getLogger("harvester").handlers.clear()


def patch_context(module):
    """Patch a command module's session manager and return (patcher, context)."""
    patcher = patch(f'harvester.cli.commands.{module}.get_cli_session_manager')
    mock_manager = patcher.start()
    context = MagicMock()
    mock_manager.return_value.open_context.return_value.__enter__.return_value = context
    return patcher, mock_manager, context


class TestInitCommand:
    """Test 'init' command - initialize database."""

    def test_init_creates_database(self, runner):
        with patch('harvester.cli.commands.admin.init_database') as mock_init:
            mock_init.return_value = 'sqlite:///data/harvester.db'

            result = runner.invoke(cli, ['init'])

            assert result.exit_code == 0
            mock_init.assert_called_once()
            assert 'Database initialized successfully' in result.output
            assert 'sqlite:///data/harvester.db' in result.output

    def test_init_handles_errors(self, runner):
        with patch('harvester.cli.commands.admin.init_database') as mock_init:
            mock_init.side_effect = Exception("Permission denied")

            result = runner.invoke(cli, ['init'])

            assert result.exit_code != 0
            assert 'Error initializing database' in result.output


class TestSessionCommands:

    def test_login_skips_when_session_valid(self, runner, monkeypatch):
        monkeypatch.setenv('DIRECTORY_USERNAME', 'abc123')
        monkeypatch.setenv('DIRECTORY_PASSWORD', 'hunter2')
        patcher, _, context = patch_context('session')
        try:
            context.login.check_logged_in.return_value = True

            result = runner.invoke(cli, ['session', 'login'])
        finally:
            patcher.stop()

        assert result.exit_code == 0
        assert 'still valid' in result.output
        context.login.login.assert_not_called()

    def test_login_prompts_for_missing_credentials(self, runner, monkeypatch):
        monkeypatch.delenv('DIRECTORY_USERNAME', raising=False)
        monkeypatch.delenv('DIRECTORY_PASSWORD', raising=False)
        patcher, mock_manager, context = patch_context('session')
        try:
            result = runner.invoke(cli, ['session', 'login', '--force'], input='abc123\nhunter2\n')
        finally:
            patcher.stop()

        assert result.exit_code == 0
        assert 'Logged in as abc123' in result.output
        credentials = mock_manager.return_value.open_context.call_args.kwargs['credentials']
        assert credentials.password == 'hunter2'
        context.login.login.assert_called_once()

    def test_login_failure_aborts(self, runner, monkeypatch):
        monkeypatch.setenv('DIRECTORY_USERNAME', 'abc123')
        monkeypatch.setenv('DIRECTORY_PASSWORD', 'hunter2')
        patcher, _, context = patch_context('session')
        try:
            context.login.login.side_effect = ProtocolShapeError("Login rejected: auth cookie not set")

            result = runner.invoke(cli, ['session', 'login', '--force'])
        finally:
            patcher.stop()

        assert result.exit_code != 0
        assert 'Login failed' in result.output

    def test_status_without_session(self, runner):
        patcher, _, context = patch_context('session')
        try:
            context.session_store.has_auth_cookie.return_value = False

            result = runner.invoke(cli, ['session', 'status'])
        finally:
            patcher.stop()

        assert result.exit_code == 0
        assert 'No saved session' in result.output
        context.login.check_logged_in.assert_not_called()

    def test_clear(self, runner):
        patcher, mock_manager, context = patch_context('session')
        try:
            result = runner.invoke(cli, ['session', 'clear'])
        finally:
            patcher.stop()

        assert result.exit_code == 0
        context.session_store.clear.assert_called_once()
        assert mock_manager.return_value.open_context.call_args.kwargs['save_session'] is False


class TestDirectoryCommands:

    def test_directory_lists_cached_entries(self, runner):
        patcher, _, context = patch_context('directory')
        try:
            context.directory_fetcher.is_cached.return_value = True
            context.directory_fetcher.get.return_value = [
                DirectoryEntry(id='z1', name='Zamora, Ana', job_title='Professor', department='Physics')
            ]

            result = runner.invoke(cli, ['directory', 'z'])
        finally:
            patcher.stop()

        assert result.exit_code == 0
        assert 'Zamora, Ana' in result.output
        assert 'Total: 1 entries' in result.output
        context.directory_fetcher.get.assert_called_once_with('Z')
        context.login.ensure_logged_in.assert_not_called()

    def test_directory_rejects_bad_letter(self, runner):
        result = runner.invoke(cli, ['directory', '7'])

        assert result.exit_code == 2

    def test_profile_as_json(self, runner):
        patcher, _, context = patch_context('directory')
        try:
            context.detail_fetcher.is_cached.return_value = True
            context.detail_fetcher.get.return_value = FullProfile(name='Ana Zamora', email='ana@utsa.edu')

            result = runner.invoke(cli, ['profile', 'z1', '--json'])
        finally:
            patcher.stop()

        assert result.exit_code == 0
        assert '"email": "ana@utsa.edu"' in result.output


class TestUnsubscribeCommands:

    def test_unsubscribe_success(self, runner):
        patcher, _, context = patch_context('unsubscribe')
        try:
            context.dispatcher.try_unsubscribe.return_value = UnsubscribeResult(
                email='ana@utsa.edu', submitted=True,
                confirmation=ConfirmationResponse(follow_up_url='http://www2.thescla.org/done.html')
            )

            result = runner.invoke(cli, ['unsubscribe', 'ana@utsa.edu'])
        finally:
            patcher.stop()

        assert result.exit_code == 0
        assert 'ana@utsa.edu: unsubscribed' in result.output
        assert 'done.html' in result.output

    def test_unsubscribe_vendor_error_aborts(self, runner):
        patcher, _, context = patch_context('unsubscribe')
        try:
            context.dispatcher.try_unsubscribe.side_effect = VendorRejectedError('Rejected', 602)

            result = runner.invoke(cli, ['unsubscribe', 'ana@utsa.edu'])
        finally:
            patcher.stop()

        assert result.exit_code != 0
        assert 'Unsubscribe failed' in result.output

    def test_run_reports_stats(self, runner):
        patcher, mock_manager, context = patch_context('unsubscribe')
        try:
            context.login.ensure_logged_in.return_value = False
            context.coordinator.return_value.run.return_value = PipelineStats(
                letters=2, entries=5, profiles=5, dropped=1, submitted=4
            )

            result = runner.invoke(cli, ['run', '--letters', 'A-B', '--workers', '2', '--no-cover'])
        finally:
            patcher.stop()

        assert result.exit_code == 0
        assert 'Run complete' in result.output
        assert 'Unsubscribed: 4' in result.output
        assert context.coordinator.call_args.kwargs['letters'] == ['A', 'B']
        assert context.coordinator.call_args.kwargs['scrape_workers'] == 2
        assert mock_manager.return_value.open_context.call_args.kwargs['cover_traffic'] is False
        assert 'Logged in' not in result.output

    def test_run_dry_run_reports_unsent(self, runner):
        patcher, mock_manager, context = patch_context('unsubscribe')
        try:
            context.login.ensure_logged_in.return_value = False
            context.coordinator.return_value.run.return_value = PipelineStats(
                letters=1, entries=3, profiles=3, dry_run=3
            )

            result = runner.invoke(cli, ['run', '--letters', 'Z', '--dry-run'])
        finally:
            patcher.stop()

        assert result.exit_code == 0
        assert 'Dry run (not sent): 3' in result.output
        assert 'Already processed: 0' in result.output
        assert mock_manager.return_value.open_context.call_args.kwargs['dry_run'] is True

    def test_run_logs_in_with_prompted_credentials(self, runner, monkeypatch):
        monkeypatch.delenv('DIRECTORY_USERNAME', raising=False)
        monkeypatch.delenv('DIRECTORY_PASSWORD', raising=False)
        patcher, _, context = patch_context('unsubscribe')
        try:
            context.login.ensure_logged_in.side_effect = lambda credentials_provider: credentials_provider() is not None
            context.coordinator.return_value.run.return_value = PipelineStats()

            result = runner.invoke(cli, ['run', '--letters', 'Z'], input='abc123\nhunter2\n')
        finally:
            patcher.stop()

        assert result.exit_code == 0
        assert 'Logged in' in result.output
        context.login.login.assert_not_called()

    def test_run_fatal_error_aborts(self, runner):
        patcher, _, context = patch_context('unsubscribe')
        try:
            context.login.ensure_logged_in.return_value = False
            context.coordinator.return_value.run.side_effect = ProtocolShapeError("No directory rows found")

            result = runner.invoke(cli, ['run', '--letters', 'Q'])
        finally:
            patcher.stop()

        assert result.exit_code != 0
        assert 'Run failed' in result.output


class TestCacheCommands:

    def test_clear_requires_confirmation(self, runner):
        patcher, _, context = patch_context('cache')
        try:
            result = runner.invoke(cli, ['cache', 'clear'], input='n\n')
        finally:
            patcher.stop()

        assert result.exit_code != 0
        context.kv_store.clear.assert_not_called()

    def test_clear_only_namespace(self, runner):
        patcher, _, context = patch_context('cache')
        try:
            context.kv_store.clear.return_value = 3

            result = runner.invoke(cli, ['cache', 'clear', '--only', 'unsubscribed', '--yes'])
        finally:
            patcher.stop()

        assert result.exit_code == 0
        context.kv_store.clear.assert_called_once_with('unsubscribed:')
        assert 'Cleared 3 entries' in result.output


class TestParseLetters:

    @pytest.mark.parametrize("value,expected", [
        ("z", ["Z"]),
        ("A,B,C", ["A", "B", "C"]),
        ("A-D", ["A", "B", "C", "D"]),
        ("A,C-E,Z", ["A", "C", "D", "E", "Z"]),
        ("B,a-c", ["B", "A", "C"]),
    ])
    def test_parse(self, value, expected):
        assert parse_letters(value) == expected

    @pytest.mark.parametrize("value", ["", "1", "D-A", "AB"])
    def test_invalid(self, value):
        with pytest.raises(click.BadParameter):
            parse_letters(value)
