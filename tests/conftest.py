"""
Shared pytest fixtures for stagebackup tests.

This module provides fixtures for:
- Temporary backup directories and job files
- Mock command runners (no ssh/scp is ever run)
- Logger capture
"""

import logging
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from stagebackup.backup.runner import CommandRunner, ExecutionResult


@pytest.fixture
def backup_dir(tmp_path):
    """Local backup directory (not created)."""
    return tmp_path / 'backups'


@pytest.fixture
def retriever_props(backup_dir):
    """
    file_retriever property string for an SSH retriever.
    """
    return (
        'type=ssh,ssh_cmd=/usr/bin/ssh,scp_cmd=/usr/bin/scp,'
        'user=backup,remote_server=example.com,'
        'clean_script=/opt/bin/clean_backup_files.sh,'
        'remote_staging_dir=/srv/bak_staging,'
        f'local_backup_dir={backup_dir}'
    )


@pytest.fixture
def write_job(tmp_path):
    """
    Factory writing a job file and returning its path.

    Usage:
        path = write_job('site.properties', 'instruction_0=...')
    """
    def _write(name, text):
        path = tmp_path / name
        path.write_text(text)
        return str(path)

    return _write


@pytest.fixture
def job_text(retriever_props):
    """Job file with two instructions and a 5 day retention window."""
    return (
        "# nightly site backup\n"
        "instruction_0=remote_staged_file=photos.tgz,\\\n"
        "    prep_script=/opt/bin/prep_backup_files.sh,\\\n"
        "    arg=/var/www/images/photos,\\\n"
        "    arg=photos.tgz\n"
        "instruction_1=remote_staged_file=db.sql.gz,\\\n"
        "    prep_script=/opt/bin/db_backup.sh\n"
        f"file_retriever={retriever_props}\n"
        "archive_schedule=days_till_purge=5\n"
    )


@pytest.fixture
def mock_runner():
    """
    MagicMock standing in for CommandRunner.

    Every run() succeeds with an empty result unless a side_effect is set.
    """
    runner = MagicMock(spec=CommandRunner)
    runner.timeout = None
    runner.run.return_value = ExecutionResult(returncode=0)
    return runner


@pytest.fixture
def copying_runner(mock_runner):
    """
    Mock runner that creates the destination file for scp commands.

    Recorded commands are available as ``mock_runner.run.call_args_list``.
    """
    def _run(command):
        if Path(command[0]).name == 'scp':
            Path(command[2]).write_text('backup data')
        return ExecutionResult(returncode=0)

    mock_runner.run.side_effect = _run
    return mock_runner


@pytest.fixture
def run_logger():
    """Logger for tests, propagating so caplog sees records."""
    logger = logging.getLogger('stagebackup_tests')
    logger.setLevel(logging.DEBUG)
    logger.propagate = True
    return logger
