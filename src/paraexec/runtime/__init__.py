"""paraexec runtime: process launching and output multiplexing."""

from .launcher import ExitOutcome, ProcessLauncher, RunningProcess
from .multiplexer import LineFormatter, OutputSink, StreamMarker, pump_stream

__all__ = [
    "ExitOutcome",
    "ProcessLauncher",
    "RunningProcess",
    "LineFormatter",
    "OutputSink",
    "StreamMarker",
    "pump_stream",
]
