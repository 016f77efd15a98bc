"""
Retrievers copy staged files from a remote host into the local backup
directory.

Supports:
- SSHFileRetriever: runs prep and clean scripts over ssh, copies with scp

Each fetch runs in three steps: prep (optional), copy, clean (optional).
The clean script runs on every exit path once the local directory is ready.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional

from stagebackup.models import BackupInstruction, ConfigurationError, SSHRetrieverConfig
from .runner import CommandRunner, ExecutionError


DATE_FORMAT = '%m%d%Y'


class RetrievalError(Exception):
    """Raised when a file cannot be retrieved."""

    def __init__(self, message: str, instruction: Optional[BackupInstruction] = None):
        super().__init__(message)
        self.instruction = instruction


def dated_filename(filename: str, today: Optional[datetime] = None) -> str:
    """
    Insert the date before the extension of a staged file name.

    ``photos.tgz`` becomes ``photos_03152024.tgz``; the extension starts at
    the first dot so ``db.sql.gz`` becomes ``db_03152024.sql.gz``. A name
    without a dot gets the date appended. Only the base name is used, so
    ``dumps/db.sql.gz`` lands directly in the backup directory. A name
    ending in ``*`` has no single destination and yields an empty string.

    Args:
        filename: Staged file name
        today: Date to use, defaults to now

    Returns:
        Dated file name, or '' for wildcard names
    """
    if filename.endswith('*'):
        return ''

    stamp = (today or datetime.now()).strftime(DATE_FORMAT)
    name, dot, ext = Path(filename).name.partition('.')
    return f"{name}_{stamp}{dot}{ext}"


class FileRetriever(ABC):
    """
    Base class for retrieving staged files from a remote server.

    Subclasses build their settings from the job's ``file_retriever``
    property string and implement fetch().
    """

    def __init__(self, runner: Optional[CommandRunner] = None, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.runner = runner or CommandRunner(self.logger)

    @abstractmethod
    def configure(self, props: str):
        """Apply settings from a comma-delimited property string."""

    @abstractmethod
    def fetch(self, instruction: BackupInstruction):
        """
        Retrieve the file described by an instruction.

        Raises:
            RetrievalError: If any step fails
        """

    @property
    @abstractmethod
    def local_backup_dir(self) -> str:
        """Local directory that receives retrieved files."""

    def execute(self, command, instruction: BackupInstruction):
        """Run a command, wrapping failures as RetrievalError."""
        try:
            return self.runner.run(command)
        except ExecutionError as e:
            raise RetrievalError(
                f"Could not retrieve remote file {instruction.remote_staged_file}: {e}",
                instruction
            ) from e

    def prepare_local_dir(self, instruction: BackupInstruction) -> Path:
        """
        Make sure the local backup directory exists.

        Raises:
            RetrievalError: If the directory cannot be created
        """
        local_dir = Path(self.local_backup_dir)
        try:
            local_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RetrievalError(f"could not prepare local directory {local_dir}: {e}", instruction) from e
        if not local_dir.is_dir():
            raise RetrievalError(f"could not prepare local directory {local_dir}", instruction)
        return local_dir


class SSHFileRetriever(FileRetriever):
    """
    Retrieves files with scp after running an optional prep script over ssh.

    Properties:
        ssh_cmd: ssh command path (default: ssh)
        scp_cmd: scp command path (default: scp)
        user: User to connect as (optional)
        remote_server: Host to connect to
        clean_script: Remote script that clears the staging directory (optional)
        remote_staging_dir: Remote directory holding staged files (optional)
        local_backup_dir: Local directory to copy into
        command_timeout: Seconds to wait for each command (optional)

    Remote scripts should echo the EOF marker line when done.
    """

    def __init__(self, runner: Optional[CommandRunner] = None, logger: Optional[logging.Logger] = None):
        super().__init__(runner, logger)
        self.config = None

    def configure(self, props: str):
        self.config = SSHRetrieverConfig.from_properties(props)
        if self.config.command_timeout is not None:
            self.runner.timeout = self.config.command_timeout
        self._log_settings()

    def _log_settings(self):
        self.logger.info(f"ssh_cmd={self.config.ssh_cmd}")
        self.logger.info(f"scp_cmd={self.config.scp_cmd}")
        self.logger.info(f"clean_script={self.config.clean_script}")
        self.logger.info(f"user={self.config.user}")
        self.logger.info(f"remote_server={self.config.remote_server}")
        self.logger.info(f"remote_staging_dir={self.config.remote_staging_dir}")
        self.logger.info(f"local_backup_dir={self.config.local_backup_dir}")

    def _require_config(self) -> SSHRetrieverConfig:
        if self.config is None:
            raise RuntimeError("Retriever not configured. Call configure() first.")
        return self.config

    @property
    def local_backup_dir(self) -> str:
        return self._require_config().local_backup_dir

    @property
    def remote_staging_dir(self) -> Optional[str]:
        return self._require_config().remote_staging_dir

    def remote_path(self, instruction: BackupInstruction) -> str:
        """``user@host:staging_dir/file``; the directory part only when configured."""
        config = self._require_config()
        staging = f"{config.remote_staging_dir}/" if config.remote_staging_dir else ''
        return f"{config.connect_string}:{staging}{instruction.remote_staged_file}"

    def prep_command(self, instruction: BackupInstruction):
        config = self._require_config()
        return [config.ssh_cmd, config.connect_string, instruction.prep_script, *instruction.args]

    def copy_command(self, instruction: BackupInstruction, destination: str):
        return [self._require_config().scp_cmd, self.remote_path(instruction), destination]

    def clean_command(self, instruction: BackupInstruction):
        config = self._require_config()
        return [config.ssh_cmd, config.connect_string, config.clean_script, instruction.remote_staged_file]

    def fetch(self, instruction: BackupInstruction):
        """
        Run prep, copy and clean for one instruction.

        A prep failure skips the copy. The clean script still runs after a
        prep or copy failure; its own failure is then logged and the earlier
        error is raised.

        Raises:
            ConfigurationError: If the staged file name has no dated form
            RetrievalError: If any step fails
        """
        config = self._require_config()
        self.logger.info(instruction.remote_staged_file)

        local_name = dated_filename(instruction.remote_staged_file)
        if not local_name:
            raise ConfigurationError(
                f"No destination name for wildcard file: {instruction.remote_staged_file}"
            )

        local_dir = self.prepare_local_dir(instruction)
        destination = str(local_dir / local_name)

        with self._remote_cleanup(instruction, config):
            if instruction.prep_script:
                self.execute(self.prep_command(instruction), instruction)

            self.execute(self.copy_command(instruction, destination), instruction)

    @contextmanager
    def _remote_cleanup(self, instruction: BackupInstruction, config: SSHRetrieverConfig):
        """Run the clean script when the block exits, however it exits."""
        try:
            yield
        except Exception:
            if config.clean_script:
                try:
                    self.execute(self.clean_command(instruction), instruction)
                except RetrievalError as clean_error:
                    self.logger.warning(f"Clean script also failed: {clean_error}")
            raise
        else:
            if config.clean_script:
                self.execute(self.clean_command(instruction), instruction)


# Transport name -> retriever class
RETRIEVERS: Dict[str, Callable[..., FileRetriever]] = {
    'ssh': SSHFileRetriever,
    'scp': SSHFileRetriever,
}


def create_retriever(retriever_type: str, props: str,
                     runner: Optional[CommandRunner] = None,
                     logger: Optional[logging.Logger] = None) -> FileRetriever:
    """
    Factory function to create and configure a retriever.

    Args:
        retriever_type: Registered transport name ('ssh' or 'scp')
        props: The job's file_retriever property string
        runner: Command runner to use (default: a new CommandRunner)
        logger: Logger for the retriever and its runner

    Returns:
        Configured FileRetriever

    Raises:
        ConfigurationError: If the type is unknown or properties are invalid
    """
    try:
        retriever_class = RETRIEVERS[retriever_type]
    except KeyError:
        raise ConfigurationError(
            f"Invalid retriever type: {retriever_type}. "
            f"Valid options: {sorted(RETRIEVERS)}"
        )

    retriever = retriever_class(runner=runner, logger=logger)
    retriever.configure(props)
    return retriever
