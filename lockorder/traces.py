"""
lockorder.traces
================

Reading lock traces and feeding them into an order graph.

Binary layout (one file per traced thread)
------------------------------------------
::

    header  : int64 time | int32 thread | int32 pid
    record  : int32 tag, then
      tag == -1  → int32 thread | int32 instance | cstring file | int32 line
      otherwise  → int32 instance | int32 later_thread | int32 later_instance
                   | cstring file | int32 line
                   (the tag itself is the earlier lock's thread)

Strings are NUL-terminated.  Byte order is the tracer's native order unless
configured otherwise (:class:`~lockorder.config.VerifierConfig`).

Files named ``*.sexp`` are read with :mod:`lockorder.sexp_traces` instead.

Before any event of a file is forwarded, its header is checked against the
headers already accepted (:class:`TraceSetValidator`): all files must come
from one process and one run.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Optional, Protocol, Set, Union

from lockorder.config import VerifierConfig
from lockorder.errors import ErrorCode, MalformedTraceError, TraceHeaderError
from lockorder.order_graph import LockId, SourceSite

logger = logging.getLogger(__name__)

CREATE_TAG = -1


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TraceHeader:
    """Identifies the run and thread a trace file belongs to."""

    created: int
    thread: int
    pid: int
    source: str = ""

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.created, tz=timezone.utc)


@dataclass(frozen=True)
class CreateEvent:
    lock_id: LockId
    site: SourceSite


@dataclass(frozen=True)
class OrderEvent:
    earlier: LockId
    later: LockId
    site: SourceSite


TraceEvent = Union[CreateEvent, OrderEvent]


class TraceSink(Protocol):
    """What ingestion needs from the graph side."""

    def emit_creation(self, lock_id: LockId, file: str, line: int) -> None: ...

    def emit_order(self, earlier: LockId, later: LockId, file: str, line: int) -> None: ...


# ---------------------------------------------------------------------------
# Header cross-validation
# ---------------------------------------------------------------------------

class TraceSetValidator:
    """Checks that trace headers belong to one run of one process.

    The first accepted header fixes the pid and creation time.  Later
    headers from another pid are rejected (the file is skipped); a repeated
    thread number or a creation time outside the window is fatal.
    """

    def __init__(self, time_window: int = 3600, max_threads: int = 256) -> None:
        self.time_window = time_window
        self.max_threads = max_threads
        self.first: Optional[TraceHeader] = None
        self.threads: Set[int] = set()

    def accept(self, header: TraceHeader) -> bool:
        """Return ``True`` if the file's events should be ingested."""
        if not 0 <= header.thread < self.max_threads:
            raise TraceHeaderError(
                f"thread number {header.thread} outside [0, {self.max_threads})",
                code=ErrorCode.BAD_THREAD_NUMBER,
                site=header.source or None,
            )

        if self.first is None:
            self.first = header
            self.threads.add(header.thread)
            logger.info(
                "trace %d from pid %d on %s",
                header.thread, header.pid, header.created_at.isoformat(),
            )
            return True

        if header.pid != self.first.pid:
            logger.warning(
                "%s has pid %d, not %d. Skipped.",
                header.source or "trace", header.pid, self.first.pid,
            )
            return False
        if header.thread in self.threads:
            raise TraceHeaderError(
                f"same thread number {header.thread} in two files",
                code=ErrorCode.DUPLICATE_THREAD,
                site=header.source or None,
            )
        if abs(self.first.created - header.created) > self.time_window:
            raise TraceHeaderError(
                f"input files from different times: {self.first.created} {header.created}",
                code=ErrorCode.TIME_WINDOW,
                site=header.source or None,
            )
        self.threads.add(header.thread)
        logger.info("trace of thread %d", header.thread)
        return True


# ---------------------------------------------------------------------------
# Binary reader
# ---------------------------------------------------------------------------

class BinaryTraceReader:
    """Decodes one binary trace stream.

    Parameters
    ----------
    stream : binary file object
        Positioned at the start of the header.
    config : VerifierConfig, optional
        Byte order and string length limit.
    name : str
        Used in error messages.
    """

    def __init__(
        self,
        stream: BinaryIO,
        config: Optional[VerifierConfig] = None,
        name: str = "<stream>",
    ) -> None:
        self._stream = stream
        self._config = config or VerifierConfig()
        self.name = name
        prefix = self._config.struct_prefix
        self._header = struct.Struct(prefix + "qii")
        self._int = struct.Struct(prefix + "i")

    def read_header(self) -> TraceHeader:
        data = self._stream.read(self._header.size)
        if len(data) != self._header.size:
            raise MalformedTraceError(
                "trace header too short",
                code=ErrorCode.TRUNCATED_TRACE,
                site=self.name,
            )
        created, thread, pid = self._header.unpack(data)
        return TraceHeader(created=created, thread=thread, pid=pid, source=self.name)

    def events(self) -> Iterator[TraceEvent]:
        """Yield events until a clean end of file."""
        while True:
            data = self._stream.read(self._int.size)
            if not data:
                return
            if len(data) != self._int.size:
                raise MalformedTraceError(
                    "partial record tag at end of file",
                    code=ErrorCode.TRUNCATED_TRACE,
                    site=self.name,
                )
            (tag,) = self._int.unpack(data)
            if tag == CREATE_TAG:
                yield self._read_create()
            else:
                yield self._read_order(tag)

    # ----- records ----------------------------------------------------------

    def _read_create(self) -> CreateEvent:
        thread = self._read_int()
        instance = self._read_int()
        file = self._read_str()
        line = self._read_int()
        return CreateEvent(LockId(thread, instance), SourceSite(file, line))

    def _read_order(self, earlier_thread: int) -> OrderEvent:
        earlier_instance = self._read_int()
        later_thread = self._read_int()
        later_instance = self._read_int()
        file = self._read_str()
        line = self._read_int()
        return OrderEvent(
            LockId(earlier_thread, earlier_instance),
            LockId(later_thread, later_instance),
            SourceSite(file, line),
        )

    def _read_int(self) -> int:
        data = self._stream.read(self._int.size)
        if len(data) != self._int.size:
            raise MalformedTraceError(
                "file too short inside a record",
                code=ErrorCode.TRUNCATED_TRACE,
                site=self.name,
            )
        return self._int.unpack(data)[0]

    def _read_str(self) -> str:
        buf = bytearray()
        while True:
            c = self._stream.read(1)
            if not c:
                raise MalformedTraceError(
                    "eof in string, file too short",
                    code=ErrorCode.TRUNCATED_TRACE,
                    site=self.name,
                )
            if c == b"\x00":
                return buf.decode("utf-8", errors="replace")
            buf += c
            if len(buf) >= self._config.max_string:
                raise MalformedTraceError(
                    "string too long, bad file format",
                    code=ErrorCode.STRING_TOO_LONG,
                    site=self.name,
                )


# ---------------------------------------------------------------------------
# Ingestion driver
# ---------------------------------------------------------------------------

@dataclass
class IngestSummary:
    """What :func:`ingest_paths` read."""

    files_read: List[str] = field(default_factory=list)
    files_skipped: List[str] = field(default_factory=list)
    creations: int = 0
    orders: int = 0


def feed_events(sink: TraceSink, events: Iterable[TraceEvent], summary: IngestSummary) -> None:
    """Forward decoded events to *sink*, counting them in *summary*."""
    for event in events:
        if isinstance(event, CreateEvent):
            sink.emit_creation(event.lock_id, event.site.file, event.site.line)
            summary.creations += 1
        else:
            sink.emit_order(event.earlier, event.later, event.site.file, event.site.line)
            summary.orders += 1


def is_sexp_trace(path: Union[str, Path]) -> bool:
    return Path(path).suffix == ".sexp"


def ingest_file(
    sink: TraceSink,
    path: Union[str, Path],
    validator: TraceSetValidator,
    config: Optional[VerifierConfig] = None,
    summary: Optional[IngestSummary] = None,
) -> IngestSummary:
    """Read one trace file (binary or ``.sexp``) into *sink*."""
    config = config or VerifierConfig()
    summary = summary if summary is not None else IngestSummary()
    name = str(path)
    logger.info("file %s", name)

    if is_sexp_trace(path):
        from lockorder.sexp_traces import load_sexp_trace

        header, events = load_sexp_trace(Path(path).read_text(encoding="utf-8"), source=name)
        if not validator.accept(header):
            summary.files_skipped.append(name)
            return summary
        feed_events(sink, events, summary)
        summary.files_read.append(name)
        return summary

    with open(path, "rb") as fh:
        reader = BinaryTraceReader(fh, config, name=name)
        if not validator.accept(reader.read_header()):
            summary.files_skipped.append(name)
            return summary
        feed_events(sink, reader.events(), summary)
    summary.files_read.append(name)
    return summary


def ingest_paths(
    sink: TraceSink,
    paths: Iterable[Union[str, Path]],
    config: Optional[VerifierConfig] = None,
) -> IngestSummary:
    """Read every trace file in *paths*, in order, into one sink."""
    config = config or VerifierConfig()
    validator = TraceSetValidator(config.time_window, config.max_threads)
    summary = IngestSummary()
    for path in paths:
        ingest_file(sink, path, validator, config, summary)
    return summary


__all__ = [
    "CREATE_TAG",
    "TraceHeader",
    "CreateEvent",
    "OrderEvent",
    "TraceEvent",
    "TraceSink",
    "TraceSetValidator",
    "BinaryTraceReader",
    "IngestSummary",
    "feed_events",
    "is_sexp_trace",
    "ingest_file",
    "ingest_paths",
]
