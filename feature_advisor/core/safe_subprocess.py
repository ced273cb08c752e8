"""
Bounded Subprocess Execution
============================

The advisor shells out to three kinds of tools: ``git log`` for history,
the linter and the TypeScript compiler. All of them go through ``safe_run``,
which refuses anything that could modify the analysed project or the machine
and always applies a timeout.

Usage:
    from feature_advisor.core.safe_subprocess import safe_run, safe_run_capture

    result = safe_run(["git", "log", "-n", "20"], cwd=root, timeout=15)
    stdout, stderr, returncode = safe_run_capture(["npx", "tsc", "--noEmit"])
"""

from __future__ import annotations

import os
import shlex
import subprocess
from pathlib import Path
from typing import Sequence

from .exceptions import CommandBlockedError, CommandTimeoutError
from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 60

# Captured stream size kept by safe_run_capture (characters)
MAX_OUTPUT_SIZE = 1024 * 1024

# Substrings (lower-cased) that make a command unrunnable. Analysis is
# read-only, so anything that writes to the repo, a registry or the disk is out.
BLOCKED_PATTERNS: tuple[str, ...] = (
    "rm -rf /",
    "mkfs",
    "dd if=",
    ":(){",
    "chmod -r 777",
    "git push",
    "git reset --hard",
    "git clean -f",
    "git checkout --",
    "npm publish",
)

PRIVILEGE_WRAPPERS = frozenset({"sudo", "su", "doas", "pkexec"})


def _command_text(command: str | Sequence[str]) -> str:
    if isinstance(command, str):
        return command
    return " ".join(str(part) for part in command)


def _executable(command: str | Sequence[str]) -> str:
    if isinstance(command, str):
        try:
            parts = shlex.split(command)
        except ValueError:
            parts = command.split()
    else:
        parts = [str(part) for part in command]
    return os.path.basename(parts[0]) if parts else ""


def is_command_safe(command: str | Sequence[str]) -> tuple[bool, str]:
    """
    Check a command against the read-only policy.

    Returns:
        (is_safe, reason); reason is empty when the command is allowed
    """
    text = " ".join(_command_text(command).lower().split())

    executable = _executable(command)
    if executable in PRIVILEGE_WRAPPERS:
        return False, f"Privilege escalation via {executable} is not allowed"

    for pattern in BLOCKED_PATTERNS:
        if pattern in text:
            return False, f"Matches blocked pattern: {pattern}"

    return True, ""


def safe_run(
    command: Sequence[str],
    cwd: Path | str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    check: bool = False,
    env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess:
    """
    Run ``command`` with captured text output and a hard timeout.

    Args:
        command: Executable and arguments
        cwd: Working directory
        timeout: Seconds before the process is killed
        check: Raise CalledProcessError on a non-zero exit
        env: Replacement environment (None inherits)

    Returns:
        The CompletedProcess

    Raises:
        CommandBlockedError: The command fails the policy and was not started
        CommandTimeoutError: The command ran past ``timeout``
        subprocess.CalledProcessError: ``check`` is set and the exit code is non-zero
        OSError: The executable could not be started
    """
    text = _command_text(command)
    allowed, reason = is_command_safe(command)
    if not allowed:
        logger.warning(f"Refusing to run '{text}': {reason}")
        raise CommandBlockedError(text, reason)

    logger.debug(f"$ {text}" + (f" (cwd={cwd})" if cwd else ""))
    try:
        completed = subprocess.run(
            [str(part) for part in command],
            cwd=cwd,
            env=env,
            timeout=timeout,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except subprocess.TimeoutExpired as e:
        logger.warning(f"Timed out after {timeout}s: {text}")
        raise CommandTimeoutError(f"Command timed out after {timeout}s", cause=e) from e

    if check:
        completed.check_returncode()
    return completed


def _truncate(output: str | None, limit: int) -> str:
    if not output:
        return ""
    if len(output) <= limit:
        return output
    return f"{output[:limit]}\n... (truncated, {len(output) - limit} characters omitted)"


def safe_run_capture(
    command: Sequence[str],
    cwd: Path | str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    max_output: int = MAX_OUTPUT_SIZE,
    env: dict[str, str] | None = None,
) -> tuple[str, str, int]:
    """Like safe_run, but returns ``(stdout, stderr, returncode)`` capped at ``max_output``."""
    completed = safe_run(command, cwd=cwd, timeout=timeout, env=env)
    return (
        _truncate(completed.stdout, max_output),
        _truncate(completed.stderr, max_output),
        completed.returncode,
    )
