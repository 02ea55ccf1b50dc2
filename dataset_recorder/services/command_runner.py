"""Execution of allowlisted pnpm commands.

Only the process plumbing lives here; whether a command may run at all is
decided by the command grammar before a runner is ever invoked.
"""

import os
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..core.logging import get_logger
from ..models.tooling import RunCmdArgs

logger = get_logger(__name__)

NO_OUTPUT = "[no output]"
TRUNCATION_SUFFIX = "\n(truncated)"


@dataclass
class CommandOutput:
    """Captured command output."""
    output: str
    failed: bool
    returncode: Optional[int] = None
    timed_out: bool = False
    duration_seconds: float = 0.0


def combine_output(stdout: str, stderr: str) -> str:
    combined = "\n".join(part for part in (stdout, stderr) if part)
    return combined or NO_OUTPUT


def truncate_output(output: str, max_chars: int) -> str:
    if len(output) <= max_chars:
        return output
    return output[:max_chars] + TRUNCATION_SUFFIX


def _decode(payload) -> str:
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    return payload.decode("utf-8", errors="replace")


class CommandRunner(ABC):
    """Runs a recorded invocation and returns its captured output."""

    @abstractmethod
    def run(self, args: RunCmdArgs, cwd: str, timeout_ms: int) -> CommandOutput:
        ...


class SubprocessCommandRunner(CommandRunner):
    """Runs ``pnpm`` directly (no shell) with a hard timeout."""

    def __init__(self, executable: str = "pnpm"):
        self.executable = executable

    def run(self, args: RunCmdArgs, cwd: str, timeout_ms: int) -> CommandOutput:
        env = {**os.environ, **args.env} if args.env else None
        started = time.monotonic()
        logger.info(f"Running {args.display()}", extra={"command": args.display()})
        try:
            process = subprocess.run(
                [self.executable, *args.args],
                cwd=cwd,
                env=env,
                capture_output=True,
                timeout=timeout_ms / 1000,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            collected = combine_output(_decode(exc.stdout), _decode(exc.stderr))
            message = f"run_cmd timed out after {timeout_ms}ms"
            output = message if collected == NO_OUTPUT else f"{collected}\n{message}"
            return CommandOutput(
                output=output,
                failed=True,
                timed_out=True,
                duration_seconds=time.monotonic() - started,
            )
        except OSError as exc:
            return CommandOutput(
                output=str(exc),
                failed=True,
                duration_seconds=time.monotonic() - started,
            )

        output = combine_output(_decode(process.stdout), _decode(process.stderr))
        return CommandOutput(
            output=output,
            failed=process.returncode != 0,
            returncode=process.returncode,
            duration_seconds=time.monotonic() - started,
        )
