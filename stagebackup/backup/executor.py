"""
Backup manager - runs every configured backup job.

Workflow for each job file:
1. Load instructions, retriever settings and retention policy
2. Create the configured retriever
3. Retrieve each instruction's file, in order
4. Purge local copies older than the retention window

Jobs are independent: a failed job, whatever the error, is logged and the
next one still runs.
Within a job the first failed retrieval stops the remaining retrievals, but
the purge still runs over whatever is on disk.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from stagebackup.models import (
    BackupInstruction,
    BackupJob,
    ConfigurationError,
    RetentionPolicy,
)
from stagebackup.properties import load_properties, split_property_string
from .retention import ArchivePurger
from .retrievers import RetrievalError, create_retriever
from .runner import CommandRunner


def load_job(path: str) -> BackupJob:
    """
    Load a backup job from a job file.

    Reads ``instruction_0``, ``instruction_1``, ... until the first missing
    index, then ``file_retriever`` and ``archive_schedule``.

    Args:
        path: Path of the job file

    Returns:
        BackupJob

    Raises:
        ConfigurationError: If the file cannot be read or a property is invalid
    """
    try:
        props = load_properties(path)
    except OSError as e:
        raise ConfigurationError(f"Could not read job file {path}: {e}")

    instructions = []
    index = 0
    while f"instruction_{index}" in props:
        key = f"instruction_{index}"
        try:
            instructions.append(BackupInstruction.from_properties(props[key]))
        except ConfigurationError as e:
            raise ConfigurationError(f"{path}: {key}: {e}")
        index += 1

    retriever_props = props.get('file_retriever')
    if not retriever_props:
        raise ConfigurationError(f"{path}: file_retriever is required")

    retriever_type = dict(split_property_string(retriever_props)).get('type')
    if not retriever_type:
        raise ConfigurationError(f"{path}: file_retriever is missing type")

    try:
        retention = RetentionPolicy.from_properties(props.get('archive_schedule'))
    except ConfigurationError as e:
        raise ConfigurationError(f"{path}: archive_schedule: {e}")

    return BackupJob(
        source=str(path),
        instructions=tuple(instructions),
        retriever_type=retriever_type,
        retriever_props=retriever_props,
        retention=retention
    )


class BackupManager:
    """
    Runs backup jobs one after another.
    """

    def __init__(self, job_paths: Sequence[str], logger: Optional[logging.Logger] = None,
                 command_timeout: Optional[float] = None):
        """
        Args:
            job_paths: Job files to process, in order
            logger: Logger shared by every component for this run
            command_timeout: Default seconds to wait for each remote command
        """
        self.job_paths = list(job_paths)
        self.logger = logger or logging.getLogger(__name__)
        self.command_timeout = command_timeout

    def run(self) -> Dict[str, Any]:
        """
        Run every job.

        Returns:
            Dict with summary of the run:
            {
                'jobs_processed': int,
                'jobs_failed': int,
                'files_retrieved': int,
                'files_purged': int,
                'errors': List[str]
            }
        """
        self.logger.info('-' * 80)
        self.logger.info("Starting BackupManager")

        summary = {
            'jobs_processed': 0,
            'jobs_failed': 0,
            'files_retrieved': 0,
            'files_purged': 0,
            'errors': []
        }

        for path in self.job_paths:
            try:
                result = self.run_job(path)
            except Exception as e:
                message = f"Backup job {path} failed unexpectedly: {e}"
                self.logger.exception(message)
                result = {'retrieved': 0, 'purged': [], 'errors': [message]}

            summary['jobs_processed'] += 1
            summary['files_retrieved'] += result['retrieved']
            summary['files_purged'] += len(result['purged'])
            if result['errors']:
                summary['jobs_failed'] += 1
                summary['errors'].extend(result['errors'])

        self.logger.info(
            f"Run complete. "
            f"Jobs: {summary['jobs_processed']}, "
            f"Failed: {summary['jobs_failed']}, "
            f"Retrieved: {summary['files_retrieved']}, "
            f"Purged: {summary['files_purged']}"
        )
        self.logger.info("Finished BackupManager")
        return summary

    def run_job(self, path: str) -> Dict[str, Any]:
        """
        Retrieve and archive the files of one job file.

        Returns:
            Dict with 'retrieved' (int), 'purged' (list of paths) and
            'errors' (list of messages)
        """
        result = {'retrieved': 0, 'purged': [], 'errors': []}

        self.logger.info("")
        self.logger.info(f"Loading backup instructions for {path}")

        try:
            job = load_job(path)
            for instruction in job.instructions:
                self.logger.info(str(instruction))

            self.logger.info("Creating FileRetriever")
            runner = CommandRunner(self.logger, timeout=self.command_timeout)
            retriever = create_retriever(job.retriever_type, job.retriever_props, runner, self.logger)

            self.logger.info("Creating Archive Schedule")
            self.logger.info(f"days_till_purge={job.retention.days_till_purge}")
        except ConfigurationError as e:
            message = f"Invalid backup job {path}: {e}"
            self.logger.error(message)
            result['errors'].append(message)
            return result

        if not job.instructions:
            self.logger.warning(f"No instructions found in {path}")

        self.logger.info("Retrieving files")
        result['retrieved'] = self._retrieve_all(job, retriever, result['errors'])

        self.logger.info("Archiving")
        purger = ArchivePurger(self.logger)
        result['purged'] = purger.purge(retriever.local_backup_dir, job.instructions, job.retention)

        return result

    def _retrieve_all(self, job: BackupJob, retriever, errors: List[str]) -> int:
        """Fetch instructions in order, stopping at the first failure."""
        retrieved = 0
        for position, instruction in enumerate(job.instructions):
            try:
                retriever.fetch(instruction)
                retrieved += 1
            except (RetrievalError, ConfigurationError) as e:
                message = f"Backup failed for {instruction.remote_staged_file} in {job.source}: {e}"
                self.logger.error(message)
                errors.append(message)

                skipped = len(job.instructions) - position - 1
                if skipped:
                    self.logger.warning(f"Skipping {skipped} remaining instruction(s) in {job.source}")
                break
        return retrieved
