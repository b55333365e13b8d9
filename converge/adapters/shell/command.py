"""
Command runner — the single place units and adapters run subprocesses.

There is no default timeout: some commands (package
installs, run-once scripts) wait on the user at the terminal.
"""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a finished command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandError(Exception):
    """Raised when a command cannot be started or exits non-zero."""

    def __init__(self, args: Sequence[str], message: str, result: CommandResult | None = None):
        super().__init__(f"{' '.join(args)}: {message}")
        self.command = list(args)
        self.result = result


def run_command(
    args: Sequence[str | Path],
    *,
    cwd: Path | str | None = None,
    capture: bool = True,
    check: bool = True,
    timeout: float | None = None,
) -> CommandResult:
    """Run a command and return its result.

    Args:
        args: Program and arguments.
        cwd: Working directory.
        capture: Capture stdout/stderr. Interactive commands pass False
            so they keep the terminal.
        check: Raise CommandError on a non-zero exit.
        timeout: Optional timeout in seconds (None = wait forever).

    Returns:
        CommandResult with output (empty when not captured).

    Raises:
        CommandError: If the program is missing, times out, or exits
            non-zero with ``check`` set.
    """
    argv = [str(a) for a in args]
    logger.debug("Executing: %s (cwd=%s)", " ".join(argv), cwd)
    start = time.monotonic()

    try:
        proc = subprocess.run(
            argv,
            cwd=str(cwd) if cwd is not None else None,
            capture_output=capture,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise CommandError(argv, f"command not found ({e.filename or argv[0]})") from e
    except subprocess.TimeoutExpired as e:
        raise CommandError(argv, f"timed out after {timeout}s") from e

    result = CommandResult(
        args=argv,
        returncode=proc.returncode,
        stdout=(proc.stdout or "").strip() if capture else "",
        stderr=(proc.stderr or "").strip() if capture else "",
        duration_ms=int((time.monotonic() - start) * 1000),
    )

    if check and not result.ok:
        raise CommandError(
            argv,
            result.stderr or f"exited with code {result.returncode}",
            result=result,
        )

    return result
