"""
Supervised shell process runner.

Spawns one shell command in a project directory, polls it until it
finishes, and kills it if it runs past its timeout. Output is not
captured; the child writes straight to the parent's stdout/stderr.
"""

import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from .errors import ShellCommandError, ShellCommandExitError, ShellCommandTimeoutError

logger = logging.getLogger(__name__)

# Seconds between completion checks
POLL_INTERVAL = 0.05


class ProcessOutcome(StrEnum):
    """How a shell command ended."""

    SUCCESS = "success"
    EXIT_FAILURE = "exit-failure"
    TIMED_OUT = "timed-out"
    SPAWN_FAILURE = "spawn-failure"


@dataclass
class ProcessResult:
    """Result of running a shell command."""

    project: str
    command: str
    outcome: ProcessOutcome
    timeout: float
    returncode: int | None = None
    error: OSError | None = None

    @property
    def success(self) -> bool:
        return self.outcome is ProcessOutcome.SUCCESS

    def check(self) -> "ProcessResult":
        """Raise the matching error unless the command succeeded."""
        if self.outcome is ProcessOutcome.EXIT_FAILURE:
            raise ShellCommandExitError(self.project, self.command, self.returncode)
        if self.outcome is ProcessOutcome.TIMED_OUT:
            raise ShellCommandTimeoutError(self.project, self.command, self.timeout)
        if self.outcome is ProcessOutcome.SPAWN_FAILURE:
            raise ShellCommandError(self.project, self.command, self.error)
        return self


def _kill(proc: subprocess.Popen) -> None:
    """Kill the shell and everything it started."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except OSError:
        proc.kill()
    proc.wait()


def run_shell(
    project_name: str,
    working_directory: Path,
    command_line: str,
    timeout: float,
) -> ProcessResult:
    """
    Run a command line through the shell and wait for it.

    Args:
        project_name: Used in log and error messages
        working_directory: Directory the shell starts in
        command_line: Passed to the shell as a single invocation
        timeout: Seconds before the command is killed

    Returns:
        ProcessResult describing how the command ended
    """
    start = time.monotonic()
    try:
        proc = subprocess.Popen(
            command_line,
            shell=True,
            cwd=working_directory,
            stdin=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        logger.debug("Project: '%s' could not spawn shell: %s", project_name, e)
        return ProcessResult(
            project_name, command_line, ProcessOutcome.SPAWN_FAILURE, timeout, error=e
        )

    while True:
        returncode = proc.poll()
        if returncode is not None:
            break
        if time.monotonic() - start >= timeout:
            _kill(proc)
            logger.debug(
                "Project: '%s' Command: '%s' killed after %.2fs",
                project_name,
                command_line,
                time.monotonic() - start,
            )
            return ProcessResult(
                project_name,
                command_line,
                ProcessOutcome.TIMED_OUT,
                timeout,
                returncode=proc.returncode,
            )
        time.sleep(POLL_INTERVAL)

    if returncode == 0:
        logger.info("Project: '%s' Command: '%s' Exit success.", project_name, command_line)
        return ProcessResult(
            project_name, command_line, ProcessOutcome.SUCCESS, timeout, returncode=0
        )
    return ProcessResult(
        project_name,
        command_line,
        ProcessOutcome.EXIT_FAILURE,
        timeout,
        returncode=returncode,
    )
