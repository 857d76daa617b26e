"""Stream multiplexer: labelled line output from concurrent children.

Every output record is a single line:

    <label padded to the longest label>  | <stdout line>
    <label padded to the longest label> !| <stderr line>
    <label padded to the longest label>  = <status text>

Records from different commands interleave in arbitrary order. Within one
stream of one command the child's line order is preserved.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from ..config import DEFAULT_ENCODING, DEFAULT_LINE_LIMIT

__all__ = [
    "StreamMarker",
    "LineFormatter",
    "OutputSink",
    "pump_stream",
]

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


class StreamMarker(str, Enum):
    """Column marker placed between the label and the text."""

    STDOUT = "  |"
    STDERR = " !|"
    STATUS = "  ="


@dataclass(frozen=True)
class LineFormatter:
    """Formats records aligned to the longest label of the run.

    Attributes:
        label_width: Computed once before any process starts
    """

    label_width: int

    def format(self, label: str, marker: StreamMarker, text: str) -> str:
        return f"{label.ljust(self.label_width)}{marker.value} {text}"


class OutputSink:
    """Shared destination for all records.

    Each record is written with one write() call followed by flush(), so
    records never interleave mid-line.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        # Resolved at write time so a replaced sys.stdout is honoured
        return self._stream if self._stream is not None else sys.stdout

    def write_line(self, line: str) -> None:
        stream = self.stream
        stream.write(line + "\n")
        stream.flush()

    def emit(
        self,
        formatter: LineFormatter,
        label: str,
        marker: StreamMarker,
        text: str,
    ) -> None:
        self.write_line(formatter.format(label, marker, text))


def _strip_line_ending(raw: bytes) -> bytes:
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw


async def pump_stream(
    reader: asyncio.StreamReader,
    label: str,
    marker: StreamMarker,
    sink: OutputSink,
    formatter: LineFormatter,
    encoding: str = DEFAULT_ENCODING,
    line_limit: int = DEFAULT_LINE_LIMIT,
) -> int:
    """Copy one child stream to the sink, line by line, until EOF.

    A final line without a trailing newline is still emitted. Lines that
    cannot be decoded, or whose text is longer than line_limit bytes, are
    skipped whole: an over-long line is dropped up to and including its
    newline, however many reads it spans.

    Args:
        reader: The child's stdout or stderr reader
        label: Command label
        marker: STDOUT or STDERR marker
        sink: Shared output sink
        formatter: Label-width formatter for this run
        encoding: Text encoding of the child's output
        line_limit: Longest line (in bytes, without line ending) emitted

    Returns:
        Number of lines emitted
    """
    emitted = 0
    skipped = 0
    pending = bytearray()
    discarding = False

    def emit(raw: bytes) -> None:
        nonlocal emitted, skipped
        body = _strip_line_ending(raw)
        if len(body) > line_limit:
            skipped += 1
            logger.debug(f"Skipped over-long line label={label!r} stream={marker.name}")
            return
        try:
            text = body.decode(encoding)
        except UnicodeDecodeError as e:
            skipped += 1
            logger.debug(f"Skipped undecodable line label={label!r} stream={marker.name}: {e}")
            return
        sink.emit(formatter, label, marker, text)
        emitted += 1

    while True:
        chunk = await reader.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        pending += chunk

        while True:
            end = pending.find(b"\n")
            if end < 0:
                break
            raw = bytes(pending[:end + 1])
            del pending[:end + 1]
            if discarding:
                # Tail of a line already counted as skipped
                discarding = False
                continue
            emit(raw)

        # Unterminated data beyond the limit can only become an over-long line
        if len(pending) > line_limit + 1:
            pending.clear()
            if not discarding:
                discarding = True
                skipped += 1
                logger.debug(f"Skipped over-long line label={label!r} stream={marker.name}")

    if pending and not discarding:
        emit(bytes(pending))

    logger.debug(
        f"Stream drained label={label!r} stream={marker.name} "
        f"emitted={emitted} skipped={skipped}"
    )
    return emitted
