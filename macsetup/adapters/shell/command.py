"""
Command runner — the single place external commands are spawned.

Every adapter shells out through ``run_command`` (or a test double with
the same signature). A non-zero exit is a normal result, not an
exception; the caller decides what it means.
"""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Captured outcome of one external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def error_text(self) -> str:
        """Best human-readable reason for a failure."""
        stderr = self.stderr.strip()
        if stderr:
            return stderr[-2000:]
        return f"{self.args[0] if self.args else 'command'} exited with code {self.returncode}"

    def lines(self) -> list[str]:
        """Non-empty stdout lines, stripped."""
        return [line.strip() for line in self.stdout.splitlines() if line.strip()]


Runner = Callable[..., CommandResult]


def run_command(
    args: Sequence[str],
    *,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    timeout: int | None = None,
) -> CommandResult:
    """Run a command and capture its output.

    No timeout by default: installers and downloads block until they
    finish. A missing executable is reported as exit code 127.
    """
    cmd = list(args)
    logger.debug("Executing: %s (cwd=%s)", " ".join(cmd), cwd)
    start = time.monotonic()

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            cwd=cwd,
            env=env,
            timeout=timeout,
        )
    except FileNotFoundError:
        return CommandResult(args=cmd, returncode=127, stderr=f"command not found: {cmd[0]}")
    except subprocess.TimeoutExpired:
        return CommandResult(args=cmd, returncode=124, stderr=f"Command timed out after {timeout}s")
    except OSError as e:
        return CommandResult(args=cmd, returncode=126, stderr=f"Command execution error: {e}")

    elapsed_ms = int((time.monotonic() - start) * 1000)
    if result.returncode != 0:
        logger.debug("Command %s exited %d: %s", cmd[0], result.returncode, result.stderr.strip())

    return CommandResult(
        args=cmd,
        returncode=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
        elapsed_ms=elapsed_ms,
    )
