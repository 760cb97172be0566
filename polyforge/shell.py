"""Shell and git utilities.

Provides simple wrappers around subprocess calls for running external
commands (docker, git) plus output formatting helpers.
"""

from __future__ import annotations

import os
import signal
import subprocess
from pathlib import Path


def git(*args: str, cwd: Path | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "add", "Cargo.toml").
        cwd: Repository directory; defaults to the current directory.
        check: If True (default), raise on non-zero exit.

    Returns:
        Stripped stdout from the git command.
    """
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=check
    )
    return result.stdout.strip()


def run_captured(
    args: list[str], timeout: float | None = None
) -> subprocess.CompletedProcess[str]:
    """Run a command to completion, capturing stdout and stderr.

    The command runs in its own session so that on timeout the whole
    process group (e.g. ``docker run`` and anything it spawned) is killed,
    not just the direct child. Output is decoded as UTF-8; undecodable
    bytes become U+FFFD rather than failing the step.

    Args:
        args: Command and arguments (e.g., "docker", "run", ...).
        timeout: Seconds to wait before killing the process group.

    Returns:
        CompletedProcess with returncode, stdout and stderr.

    Raises:
        OSError: If the command cannot be spawned (e.g. binary not found).
        subprocess.TimeoutExpired: If the deadline passed. Output produced
            before the kill is attached to the exception.
    """
    proc = subprocess.Popen(
        args,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        start_new_session=True,
    )
    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        _kill_group(proc)
        stdout, stderr = proc.communicate()
        raise subprocess.TimeoutExpired(
            args, exc.timeout, output=stdout, stderr=stderr
        ) from exc
    return subprocess.CompletedProcess(args, proc.returncode, stdout, stderr)


def _kill_group(proc: subprocess.Popen[str]) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases (planning, publishing, validating) in
    terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")
