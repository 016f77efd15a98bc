"""
Data model for backup jobs.

A job file yields one BackupJob: an ordered tuple of BackupInstructions,
the property string that configures the retriever, and a RetentionPolicy.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from .properties import split_property_string


class ConfigurationError(ValueError):
    """Raised when a job property is missing or malformed."""
    pass


def _parse_non_negative_int(name: str, value: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if number < 0:
        raise ConfigurationError(f"{name} must not be negative, got {number}")
    return number


@dataclass(frozen=True)
class BackupInstruction:
    """One remote file to retrieve, with an optional prep script."""

    remote_staged_file: str
    prep_script: Optional[str] = None
    args: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.remote_staged_file:
            raise ConfigurationError("remote_staged_file is required")
        if self.remote_staged_file.endswith('*'):
            raise ConfigurationError(
                f"remote_staged_file cannot end with a wildcard: {self.remote_staged_file}"
            )
        # Accept any sequence but store an immutable one
        object.__setattr__(self, 'args', tuple(self.args))

    @classmethod
    def from_properties(cls, props: str) -> 'BackupInstruction':
        """
        Build an instruction from a property string.

        Example:
            remote_staged_file=photos.tgz,prep_script=/usr/local/bin/prep.sh,
            arg=/var/www/photos,arg=photos.tgz

        Raises:
            ConfigurationError: If remote_staged_file is missing or invalid
        """
        remote_staged_file = None
        prep_script = None
        args = []

        for name, value in split_property_string(props):
            if name == 'remote_staged_file':
                remote_staged_file = value
            elif name == 'prep_script':
                prep_script = value or None
            elif name == 'arg':
                args.append(value)

        return cls(remote_staged_file, prep_script, tuple(args))

    def __str__(self):
        return (
            f"[BackupInstruction: remoteStagedFile={self.remote_staged_file} "
            f"prepScript={self.prep_script} args: {' '.join(self.args)}]"
        )


@dataclass(frozen=True)
class RetentionPolicy:
    """How many days a local copy may age before it is purged."""

    days_till_purge: int = 0

    def __post_init__(self):
        if self.days_till_purge < 0:
            raise ConfigurationError(
                f"days_till_purge must not be negative, got {self.days_till_purge}"
            )

    @classmethod
    def from_properties(cls, props: Optional[str]) -> 'RetentionPolicy':
        days = 0
        for name, value in split_property_string(props or ''):
            if name == 'days_till_purge':
                days = _parse_non_negative_int('days_till_purge', value)
        return cls(days)


@dataclass(frozen=True)
class SSHRetrieverConfig:
    """Settings for retrieving files with ssh and scp."""

    remote_server: str
    local_backup_dir: str
    ssh_cmd: str = 'ssh'
    scp_cmd: str = 'scp'
    user: Optional[str] = None
    clean_script: Optional[str] = None
    remote_staging_dir: Optional[str] = None
    command_timeout: Optional[int] = None

    @property
    def connect_string(self) -> str:
        """The ``user@host`` target, or just the host when no user is set."""
        if self.user:
            return f"{self.user}@{self.remote_server}"
        return self.remote_server

    @classmethod
    def from_properties(cls, props: str) -> 'SSHRetrieverConfig':
        """
        Build retriever settings from a property string.

        Raises:
            ConfigurationError: If remote_server or local_backup_dir is missing
        """
        keys = {
            'ssh_cmd', 'scp_cmd', 'user', 'remote_server', 'clean_script',
            'remote_staging_dir', 'local_backup_dir',
        }
        values = {}
        timeout = None

        for name, value in split_property_string(props):
            if name in keys and value:
                values[name] = value
            elif name == 'command_timeout' and value:
                timeout = _parse_non_negative_int('command_timeout', value)

        for required in ('remote_server', 'local_backup_dir'):
            if required not in values:
                raise ConfigurationError(f"file_retriever is missing {required}")

        return cls(command_timeout=timeout, **values)


@dataclass(frozen=True)
class BackupJob:
    """A configuration unit: instructions, retriever settings and retention."""

    source: str
    instructions: Tuple[BackupInstruction, ...]
    retriever_type: str
    retriever_props: str
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)
