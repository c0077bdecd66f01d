"""
Shell utilities for safe subprocess execution.

External renderers (latex, dvisvgm, rsvg-convert) are always run from an
argv list, never through a shell, with a timeout and captured output.
"""

import subprocess
from pathlib import Path
from typing import NamedTuple

from loguru import logger

from mathrender.exceptions import ServiceTimeoutError

# Characters that only make sense to a shell
_SHELL_METACHARACTERS = (";", "&", "|", "`", "$(", "${", "\n", "\r", "\x00")


class CommandResult(NamedTuple):
    """Result of a command execution."""
    returncode: int
    stdout: str
    stderr: str


def run_command_safely(
    cmd: list[str],
    cwd: Path | None = None,
    timeout: int = 30,
    env: dict[str, str] | None = None
) -> CommandResult:
    """
    Run a command safely with proper error handling.

    Args:
        cmd: Command to run as list of strings
        cwd: Working directory for the command
        timeout: Timeout in seconds
        env: Extra environment variables

    Returns:
        CommandResult with return code and output

    Raises:
        ServiceTimeoutError: If command times out
        ValueError: If command contains unsafe arguments
        FileNotFoundError: If the executable does not exist
    """
    _validate_command_safety(cmd)

    logger.debug(f"Running command: {' '.join(cmd)}")
    if cwd:
        logger.debug(f"Working directory: {cwd}")

    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
            check=False  # Don't raise exception on non-zero return code
        )
    except subprocess.TimeoutExpired as exc:
        logger.error(f"Command timed out after {timeout}s: {' '.join(cmd)}")
        raise ServiceTimeoutError(timeout) from exc

    logger.debug(f"Command completed with return code: {result.returncode}")
    if result.stdout:
        logger.debug(f"STDOUT: {result.stdout[:200]}...")
    if result.stderr:
        logger.debug(f"STDERR: {result.stderr[:200]}...")

    return CommandResult(
        returncode=result.returncode,
        stdout=result.stdout,
        stderr=result.stderr
    )


def _validate_command_safety(cmd: list[str]) -> None:
    """
    Validate command for security issues.

    Args:
        cmd: Command to validate

    Raises:
        ValueError: If the command is empty or an argument carries shell syntax
    """
    if not cmd:
        raise ValueError("Empty command")

    for part in cmd:
        for pattern in _SHELL_METACHARACTERS:
            if pattern in part:
                raise ValueError(f"Unsafe command pattern detected: {pattern!r} in {part!r}")


def check_command_available(cmd: str) -> bool:
    """
    Check if a command is available in the system.

    Args:
        cmd: Command name or absolute path

    Returns:
        True if command is available, False otherwise
    """
    if Path(cmd).is_absolute():
        return Path(cmd).exists()
    try:
        result = subprocess.run(
            ["which", cmd],
            capture_output=True,
            text=True,
            timeout=10, check=False
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, FileNotFoundError):
        return False
