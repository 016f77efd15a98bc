"""
Retention policy enforcement for retrieved backups.

Removes dated local copies that have aged past the job's days_till_purge.
Each instruction's staged file name gives a glob pattern (``photos.tgz``
becomes ``photos*``) and every matching file in the local backup directory
is checked.
"""

import logging
import time
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from stagebackup.models import BackupInstruction, RetentionPolicy


MS_PER_DAY = 24 * 60 * 60 * 1000


class PurgeWarning(Exception):
    """Raised when a single file cannot be deleted. Never leaves the purger."""
    pass


def purge_pattern(remote_staged_file: str) -> str:
    """
    Glob pattern for local copies of a staged file.

    The base name up to its first dot, followed by ``*``. Note that
    ``photos*`` also matches unrelated names such as ``photographs.tgz``.
    """
    name = Path(remote_staged_file).name
    return name.partition('.')[0] + '*'


def file_age_days(modified_ms: int, now_ms: int) -> int:
    """Whole days between two millisecond timestamps, floored."""
    return (now_ms - modified_ms) // MS_PER_DAY


class ArchivePurger:
    """
    Deletes local backups older than the retention window.

    A file is purged when its age in whole days is strictly greater than
    days_till_purge. Entries that cannot be aged or deleted are logged and
    skipped.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, clock: Optional[Callable[[], float]] = None):
        """
        Args:
            logger: Where deletions are logged
            clock: Returns the current time in seconds since the epoch (default: time.time)
        """
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock

    def purge(self, local_backup_dir: str, instructions: Sequence[BackupInstruction],
              retention: RetentionPolicy) -> List[str]:
        """
        Purge expired copies for every instruction.

        Args:
            local_backup_dir: Directory holding the dated copies
            instructions: The job's instructions
            retention: The job's retention policy

        Returns:
            Paths that were deleted
        """
        backup_dir = Path(local_backup_dir)
        deleted = []

        if not backup_dir.is_dir():
            self.logger.warning(f"Local backup directory does not exist: {backup_dir}")
            return deleted

        for instruction in instructions:
            pattern = purge_pattern(instruction.remote_staged_file)
            now_ms = int((self.clock or time.time)() * 1000)

            try:
                candidates = self._matching_files(backup_dir, pattern)
            except OSError as e:
                self.logger.warning(f"Could not list {backup_dir}: {e}")
                return deleted

            for path in candidates:
                try:
                    modified_ms = path.stat().st_mtime_ns // 1_000_000
                except FileNotFoundError:
                    # Already removed by an overlapping pattern
                    continue
                except OSError as e:
                    self.logger.warning(f"Could not check age of {path}: {e}")
                    continue

                if file_age_days(modified_ms, now_ms) > retention.days_till_purge:
                    try:
                        if self._delete(path):
                            deleted.append(str(path))
                            self.logger.info(f"Purging {path}")
                    except PurgeWarning as e:
                        self.logger.warning(str(e))

        return deleted

    @staticmethod
    def _matching_files(backup_dir: Path, pattern: str) -> List[Path]:
        return sorted(
            entry for entry in backup_dir.iterdir()
            if fnmatchcase(entry.name, pattern)
        )

    @staticmethod
    def _delete(path: Path) -> bool:
        """
        Delete one entry.

        Returns:
            True if the entry was deleted, False if it was already gone

        Raises:
            PurgeWarning: If deletion fails
        """
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PurgeWarning(f"Failed to purge {path}: {e}")
