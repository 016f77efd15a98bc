"""
Unit tests for the command line interface (stagebackup/cli.py).
"""

from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from stagebackup.cli import main


@pytest.fixture
def cli():
    return CliRunner()


@pytest.fixture
def mock_create_manager():
    """Patch create_manager so no job is really run."""
    with patch('stagebackup.cli.create_manager') as mock_factory:
        manager = MagicMock()
        manager.run.return_value = {'errors': []}
        mock_factory.return_value = manager
        yield mock_factory


class TestRunCommand:
    """Test the run command."""

    def test_run_requires_job_files(self, cli):
        """Test running with no job file is a usage error."""
        result = cli.invoke(main, ['run'])

        assert result.exit_code == 2
        assert 'at least one --properties' in result.output

    def test_run_collects_job_paths(self, cli, tmp_path, mock_create_manager):
        """Test --properties come first, then the backup list entries."""
        backup_list = tmp_path / 'backups.list'
        backup_list.write_text('/etc/b.properties\n/etc/c.properties\n')

        result = cli.invoke(main, [
            'run',
            '--properties', '/etc/a.properties',
            '--backup-list', str(backup_list),
            '--log-file', str(tmp_path / 'backup.log'),
        ])

        assert result.exit_code == 0
        args, kwargs = mock_create_manager.call_args
        assert args[0] == ['/etc/a.properties', '/etc/b.properties', '/etc/c.properties']
        assert kwargs['log_file'] == str(tmp_path / 'backup.log')
        mock_create_manager.return_value.run.assert_called_once()

    def test_undecodable_backup_list(self, cli, tmp_path, mock_create_manager):
        """Test a backup list that is not valid text is a usage error."""
        backup_list = tmp_path / 'backups.list'
        backup_list.write_bytes(b'/etc/\xff.properties\n')

        result = cli.invoke(main, ['run', '--backup-list', str(backup_list)])

        assert result.exit_code == 2
        assert 'Could not read backup list' in result.output
        mock_create_manager.assert_not_called()

    def test_run_exit_status_on_errors(self, cli, mock_create_manager):
        """Test any backup error gives exit status 1."""
        mock_create_manager.return_value.run.return_value = {'errors': ['Backup failed for a.tgz']}

        result = cli.invoke(main, ['run', '--properties', '/etc/a.properties'])

        assert result.exit_code == 1
        assert 'Backup failed for a.tgz' in result.output

    def test_run_with_real_manager(self, cli, write_job, job_text, copying_runner, tmp_path):
        """Test a full run through the CLI with a mock command runner."""
        path = write_job('site.properties', job_text)
        log_file = tmp_path / 'logs' / 'backup.log'

        with patch('stagebackup.backup.executor.CommandRunner', return_value=copying_runner):
            result = cli.invoke(main, ['run', '--properties', path, '--log-file', str(log_file)])

        assert result.exit_code == 0
        assert 'Finished BackupManager' in log_file.read_text()


class TestScheduleCommand:
    """Test the schedule command."""

    def test_schedule_requires_cron(self, cli, mock_create_manager, monkeypatch):
        """Test a cron expression must be given."""
        monkeypatch.setattr('stagebackup.config.Config.SCHEDULE_CRON', None)

        result = cli.invoke(main, ['schedule', '--properties', '/etc/a.properties'])

        assert result.exit_code == 2
        assert '--cron' in result.output

    @patch('stagebackup.scheduler.stop_scheduler')
    @patch('stagebackup.scheduler.start_scheduler')
    @patch('stagebackup.scheduler.init_scheduler')
    def test_schedule_starts_scheduler(self, mock_init, mock_start, mock_stop, cli, mock_create_manager):
        """Test the scheduler is initialized, started and finally stopped."""
        result = cli.invoke(main, [
            'schedule', '--properties', '/etc/a.properties', '--cron', '0 2 * * *'
        ])

        assert result.exit_code == 0
        mock_init.assert_called_once_with(mock_create_manager.return_value, '0 2 * * *', timezone='UTC')
        mock_start.assert_called_once()
        mock_stop.assert_called_once()

    @patch('stagebackup.scheduler.init_scheduler', side_effect=ValueError('Wrong number of fields'))
    def test_schedule_invalid_cron(self, mock_init, cli, mock_create_manager):
        """Test an invalid cron expression is a usage error."""
        result = cli.invoke(main, [
            'schedule', '--properties', '/etc/a.properties', '--cron', 'nightly'
        ])

        assert result.exit_code == 2
        assert 'Invalid cron expression' in result.output


class TestValidateCommand:
    """Test the validate command."""

    def test_validate_ok(self, cli, write_job, job_text):
        """Test a valid job file is reported."""
        path = write_job('site.properties', job_text)

        result = cli.invoke(main, ['validate', '--properties', path])

        assert result.exit_code == 0
        assert '2 instruction(s), days_till_purge=5' in result.output

    def test_validate_reports_errors(self, cli, write_job, job_text):
        """Test invalid job files are reported and fail the command."""
        good = write_job('site.properties', job_text)
        bad = write_job('bad.properties', "file_retriever=type=ssh,remote_server=example.com\n")

        result = cli.invoke(main, ['validate', '--properties', good, '--properties', bad])

        assert result.exit_code == 1
        assert f'OK {good}' in result.output
        assert 'local_backup_dir' in result.output
