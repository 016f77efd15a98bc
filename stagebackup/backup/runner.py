"""
External command execution for backup operations.

Every command is logged before it runs. Anything written to standard error
counts as a failure, whatever the exit status: the remote prep and clean
scripts are expected to be silent on success.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional, Sequence


# Remote scripts echo this line when they have finished writing output
EOF_MARKER = '----- EOF -----'


class ExecutionError(Exception):
    """Raised when a command cannot be run or writes to standard error."""

    def __init__(self, message: str, command: Sequence[str] = (), stderr: str = '',
                 returncode: Optional[int] = None):
        super().__init__(message)
        self.command = list(command)
        self.stderr = stderr
        self.returncode = returncode


@dataclass
class ExecutionResult:
    """Captured output of a finished command."""
    returncode: int
    stdout: List[str] = field(default_factory=list)
    stderr: List[str] = field(default_factory=list)
    eof_seen: bool = False

    @property
    def failed(self) -> bool:
        return bool(self.stderr)


class CommandRunner:
    """
    Runs a command with arguments and blocks until it exits.

    Both output streams are drained fully. Standard output is read up to the
    EOF marker line; anything after it is discarded.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, timeout: Optional[float] = None):
        """
        Args:
            logger: Where command lines and errors are logged
            timeout: Seconds to wait for a command, or None to wait forever
        """
        self.logger = logger or logging.getLogger(__name__)
        self.timeout = timeout

    def run(self, command: Sequence[str]) -> ExecutionResult:
        """
        Execute a command.

        Args:
            command: Command path followed by its arguments

        Returns:
            ExecutionResult for a command that wrote nothing to stderr

        Raises:
            ExecutionError: If the command could not be started, timed out,
                or wrote to standard error
        """
        command = [str(part) for part in command]
        command_line = ' '.join(command)
        self.logger.info(command_line)

        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors='replace'
            )
        except OSError as e:
            self.logger.error(f"*** ERROR *** {e}")
            raise ExecutionError(f"Could not run {command_line}: {e}", command) from e

        try:
            out, err = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.communicate()
            self.logger.error(f"*** ERROR *** timed out after {self.timeout}s: {command_line}")
            raise ExecutionError(
                f"Timed out after {self.timeout}s: {command_line}", command
            ) from e

        result = self._build_result(process.returncode, out, err)

        if result.failed:
            message = ' '.join(result.stderr)
            self.logger.error(f"*** ERROR *** {message}")
            raise ExecutionError(message, command, stderr=message, returncode=result.returncode)

        if result.returncode != 0:
            self.logger.warning(f"{command[0]} exited with status {result.returncode}")

        return result

    @staticmethod
    def _build_result(returncode: int, out: str, err: str) -> ExecutionResult:
        stdout = []
        eof_seen = False
        for line in (out or '').splitlines():
            if line.strip() == EOF_MARKER:
                eof_seen = True
                break
            stdout.append(line)

        stderr = [line for line in (err or '').splitlines() if line.strip()]

        return ExecutionResult(
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
            eof_seen=eof_seen
        )
