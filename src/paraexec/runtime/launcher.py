"""Process launcher for paraexec commands.

This module provides:
- Environment merging (inherited environment + per-command overrides)
- Child process creation with both output streams captured
- Exit outcome description for status lines

Key design points:
- stdin is /dev/null: input is never forwarded to children
- No session/process group isolation: terminal signals (Ctrl+C) reach the
  children directly, the supervisor only keeps reporting
- OSError during spawn becomes LaunchError, scoped to that one command
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Mapping
from dataclasses import dataclass, field

from ..command_spec import CommandSpec
from ..config import DEFAULT_LINE_LIMIT
from ..errors import LaunchError

__all__ = [
    "ExitOutcome",
    "ProcessLauncher",
    "RunningProcess",
    "describe_os_error",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExitOutcome:
    """How a child process terminated.

    Attributes:
        returncode: asyncio return code (negative values are signal numbers)
    """

    returncode: int

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def signal_number(self) -> int | None:
        return -self.returncode if self.returncode < 0 else None

    def describe(self) -> str:
        """Text used in the `<label>  = ...` status line."""
        signum = self.signal_number
        if signum is None:
            return f"exited with code {self.returncode}"
        try:
            name = signal.Signals(signum).name
        except ValueError:
            return f"killed by signal {signum}"
        return f"killed by signal {signum} ({name})"

    def __str__(self) -> str:
        return self.describe()


@dataclass
class RunningProcess:
    """A live child process and its two captured output streams.

    Each stream reader is owned by exactly one multiplexer task.
    """

    label: str
    process: asyncio.subprocess.Process
    exit_outcome: ExitOutcome | None = field(default=None, init=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def stdout(self) -> asyncio.StreamReader:
        if self.process.stdout is None:
            raise RuntimeError("stdout must be captured")
        return self.process.stdout

    @property
    def stderr(self) -> asyncio.StreamReader:
        if self.process.stderr is None:
            raise RuntimeError("stderr must be captured")
        return self.process.stderr

    async def wait(self) -> ExitOutcome:
        """Wait for the child to exit and record its outcome once."""
        returncode = await self.process.wait()
        if self.exit_outcome is None:
            self.exit_outcome = ExitOutcome(returncode)
            logger.debug(
                f"Subprocess completed label={self.label!r} pid={self.pid} "
                f"returncode={returncode}"
            )
        return self.exit_outcome


def describe_os_error(exc: OSError) -> str:
    """Render a spawn failure as `<reason> (os error <errno>)`."""
    if exc.errno is not None and exc.strerror:
        return f"{exc.strerror} (os error {exc.errno})"
    return str(exc) or type(exc).__name__


@dataclass
class ProcessLauncher:
    """Starts one CommandSpec as a child process.

    Example:
        launcher = ProcessLauncher()
        running = await launcher.launch(spec)
        outcome = await running.wait()

    Attributes:
        line_limit: Longest line emitted; also the StreamReader buffer limit
        base_environment: Environment inherited by every child
            (None = os.environ at launch time)
    """

    line_limit: int = DEFAULT_LINE_LIMIT
    base_environment: Mapping[str, str] | None = None

    def build_environment(self, spec: CommandSpec) -> dict[str, str]:
        """Inherited environment with the command's overrides applied.

        Returns a new dict; neither os.environ nor other commands see the
        overrides.
        """
        base = os.environ if self.base_environment is None else self.base_environment
        env = dict(base)
        env.update(spec.environment_overrides)
        return env

    async def launch(self, spec: CommandSpec) -> RunningProcess:
        """Spawn the command with stdout and stderr piped.

        Raises:
            LaunchError: The program could not be started
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self.build_environment(spec),
                limit=self.line_limit,
            )
        except OSError as e:
            logger.debug(f"Failed to start label={spec.label!r} program={spec.program!r}: {e}")
            raise LaunchError(spec.label, describe_os_error(e)) from e
        except ValueError as e:
            # e.g. embedded null byte in an argument
            logger.debug(f"Invalid command label={spec.label!r}: {e}")
            raise LaunchError(spec.label, str(e)) from e

        logger.debug(
            f"Started subprocess label={spec.label!r} pid={process.pid} "
            f"argv={spec.argv!r} overrides={sorted(spec.environment_overrides)}"
        )
        return RunningProcess(label=spec.label, process=process)
