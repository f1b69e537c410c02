"""Subprocess helpers for talking to package managers.

Listing and query commands run captured, in the C locale and with no
terminal attached. Self-update runs pip attached to the user's terminal.
"""

import os
import shutil
import subprocess
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Captured output of a finished package manager command.

    Attributes:
        stdout: Decoded standard output.
        stderr: Decoded standard error.
        returncode: Process exit status.
    """

    stdout: str
    stderr: str
    returncode: int

    @property
    def success(self) -> bool:
        """Whether the command exited with status 0."""
        return self.returncode == 0

    @property
    def error_text(self) -> str:
        """Best available error message (stderr, then stdout)."""
        return self.stderr.strip() or self.stdout.strip()


def run_command(args: list[str], *, timeout: float | None = 60.0) -> CommandResult:
    """Run a package manager command and capture its output.

    Output is decoded as UTF-8 with undecodable bytes replaced, so one
    badly encoded record cannot spoil a whole listing.

    Args:
        args: Executable and arguments.
        timeout: Seconds to wait before giving up.

    Returns:
        CommandResult with stdout, stderr and returncode.

    Raises:
        subprocess.TimeoutExpired: If the command exceeds timeout.
        FileNotFoundError: If the executable is not installed.
    """
    result = subprocess.run(
        args,
        capture_output=True,
        encoding="utf-8",
        errors="replace",
        check=False,
        timeout=timeout,
        # Keep tool output parseable regardless of the user's locale
        env={**os.environ, "LC_ALL": "C.UTF-8"},
        stdin=subprocess.DEVNULL,
    )
    return CommandResult(
        stdout=result.stdout,
        stderr=result.stderr,
        returncode=result.returncode,
    )


def command_exists(name: str) -> bool:
    """Whether an executable named ``name`` is on PATH."""
    return shutil.which(name) is not None


def run_interactive(args: list[str]) -> int:
    """Run a command attached to the user's terminal.

    Used for pip during self-update so its progress output and any
    prompts reach the user unchanged.

    Returns:
        Exit status of the command.

    Raises:
        OSError: If the command cannot be started.
    """
    return subprocess.run(args, check=False).returncode
