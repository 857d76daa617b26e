"""Supervisor: runs every command concurrently and aggregates the result.

Per command, independent of all others:

    Spawning -> LaunchFailed
    Spawning -> Running -> (exit collected, status printed) -> Drained -> Completed

All per-command tasks live in one anyio task group, so run() returns only
after every command has exited and both of its streams are drained.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

import anyio

from .command_spec import CommandSpec, max_label_width
from .config import DEFAULT_ENCODING
from .errors import LaunchError
from .runtime.launcher import ExitOutcome, ProcessLauncher, RunningProcess
from .runtime.multiplexer import (
    READ_CHUNK_SIZE,
    LineFormatter,
    OutputSink,
    StreamMarker,
    pump_stream,
)

__all__ = [
    "EXIT_SUCCESS",
    "EXIT_FAILURE",
    "AggregateResult",
    "CommandOutcome",
    "Supervisor",
]

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


@dataclass
class CommandOutcome:
    """Final state of one command.

    Attributes:
        label: Command label
        exit_outcome: Set when the command started and exited
        launch_error: Set when the command failed to start
        error: Set when supervising a started command failed unexpectedly
    """

    label: str
    exit_outcome: ExitOutcome | None = None
    launch_error: str | None = None
    error: str | None = None

    @property
    def started(self) -> bool:
        return self.launch_error is None

    @property
    def succeeded(self) -> bool:
        return (
            self.exit_outcome is not None
            and self.exit_outcome.success
            and self.error is None
        )


@dataclass
class AggregateResult:
    """Process-wide verdict over all commands.

    any_failed only ever goes from False to True; it is read after every
    command task has joined.
    """

    any_failed: bool = False
    outcomes: list[CommandOutcome] = field(default_factory=list)

    def mark_failed(self) -> None:
        self.any_failed = True

    def record(self, outcome: CommandOutcome) -> None:
        self.outcomes.append(outcome)
        if not outcome.succeeded:
            self.mark_failed()

    @property
    def exit_code(self) -> int:
        return EXIT_FAILURE if self.any_failed else EXIT_SUCCESS


@dataclass
class Supervisor:
    """Launches all commands at once and reports their output and status.

    Example:
        supervisor = Supervisor(sink=OutputSink())
        result = await supervisor.run(specs)
        sys.exit(result.exit_code)

    Attributes:
        launcher: Starts child processes
        sink: Shared output for all records
        encoding: Decoding of child output
        term_timeout: Seconds to wait after SIGTERM when a run is aborted
        kill_timeout: Seconds to wait after SIGKILL when a run is aborted
    """

    launcher: ProcessLauncher = field(default_factory=ProcessLauncher)
    sink: OutputSink = field(default_factory=OutputSink)
    encoding: str = DEFAULT_ENCODING
    term_timeout: float = 2.0
    kill_timeout: float = 1.0

    async def run(
        self,
        specs: Sequence[CommandSpec],
        *,
        label_width: int | None = None,
    ) -> AggregateResult:
        """Run every command to completion.

        Args:
            specs: Commands to run, all launched immediately
            label_width: Column width for labels (default: longest label)

        Returns:
            AggregateResult with one outcome per command, in completion order
        """
        if label_width is None:
            label_width = max_label_width(specs)
        formatter = LineFormatter(label_width)
        result = AggregateResult()

        logger.info(f"Launching {len(specs)} command(s)")

        async with anyio.create_task_group() as tg:
            for spec in specs:
                tg.start_soon(
                    self._run_and_record, spec, formatter, result,
                    name=f"paraexec-command:{spec.label}",
                )

        failed = sum(1 for outcome in result.outcomes if not outcome.succeeded)
        logger.info(f"All commands completed: total={len(result.outcomes)}, failed={failed}")
        return result

    async def _run_and_record(
        self,
        spec: CommandSpec,
        formatter: LineFormatter,
        result: AggregateResult,
    ) -> None:
        try:
            outcome = await self.run_command(spec, formatter)
        except anyio.get_cancelled_exc_class():
            raise
        except Exception as e:
            # Contained to this command; siblings keep running.
            logger.error(f"Error supervising {spec.label!r}: {e}", exc_info=True)
            outcome = CommandOutcome(label=spec.label, error=str(e) or type(e).__name__)
        result.record(outcome)

    async def run_command(
        self,
        spec: CommandSpec,
        formatter: LineFormatter,
    ) -> CommandOutcome:
        """Launch one command, stream its output and print its status line."""
        try:
            running = await self.launcher.launch(spec)
        except LaunchError as e:
            self.sink.emit(formatter, spec.label, StreamMarker.STATUS, f"failed to start: {e.detail}")
            return CommandOutcome(label=spec.label, launch_error=e.detail)

        try:
            async with anyio.create_task_group() as streams:
                for reader, marker in (
                    (running.stdout, StreamMarker.STDOUT),
                    (running.stderr, StreamMarker.STDERR),
                ):
                    streams.start_soon(
                        pump_stream, reader, spec.label, marker,
                        self.sink, formatter, self.encoding, self.launcher.line_limit,
                        name=f"paraexec-{marker.name.lower()}:{spec.label}",
                    )

                outcome = await running.wait()
                # Printed on exit; the other stream may still be draining.
                self.sink.emit(formatter, spec.label, StreamMarker.STATUS, outcome.describe())
        except BaseException:
            # Cancelled run or failed pump (e.g. BrokenPipeError on stdout):
            # the child must not outlive run().
            with anyio.CancelScope(shield=True):
                await self._terminate(running)
            raise

        return CommandOutcome(label=spec.label, exit_outcome=outcome)

    async def _terminate(self, running: RunningProcess) -> None:
        """Stop a child left behind by an aborted command (SIGTERM, then SIGKILL).

        Both streams are discarded meanwhile; asyncio only reports the exit
        once the pipes are closed.
        """
        if running.process.returncode is not None:
            return

        async with anyio.create_task_group() as drain:
            drain.start_soon(_discard, running.stdout)
            drain.start_soon(_discard, running.stderr)
            await self._stop_process(running)
            drain.cancel_scope.cancel()

    async def _stop_process(self, running: RunningProcess) -> None:
        logger.debug(f"Terminating subprocess label={running.label!r} pid={running.pid}")
        try:
            running.process.terminate()
            with anyio.move_on_after(self.term_timeout):
                await running.process.wait()
                return

            logger.debug(f"Force killing subprocess label={running.label!r} pid={running.pid}")
            running.process.kill()
            with anyio.move_on_after(self.kill_timeout):
                await running.process.wait()
                return

            logger.warning(f"Subprocess did not exit after kill pid={running.pid}")
        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={running.pid}")


async def _discard(reader) -> None:
    while await reader.read(READ_CHUNK_SIZE):
        pass
