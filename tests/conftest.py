# tests/conftest.py
"""
Shared builders and fixtures for the lockorder test-suite.

``make_graph`` builds an :class:`OrderGraph` from compact tuples;
``BinaryTraceWriter`` produces trace files in the tracer's binary layout so
the reader can be tested without a traced program.
"""

import io
import struct
from typing import Iterable, Tuple

import pytest

from lockorder.order_graph import LockId, OrderGraph
from lockorder.plus_reporter import Reporter

Pair = Tuple[int, int]


def make_graph(
    locks: Iterable[Pair],
    orders: Iterable[Tuple[Pair, Pair]] = (),
    file: str = "lock.c",
) -> OrderGraph:
    """Create every lock in *locks*, then record each ``(earlier, later)``.

    Lock ``(t, i)`` is created at line ``100 * t + i``; the n-th order
    record is observed at line ``1000 + n``.
    """
    graph = OrderGraph()
    for thr, inst in locks:
        graph.emit_creation(LockId(thr, inst), file, 100 * thr + inst)
    for n, (earlier, later) in enumerate(orders):
        graph.emit_order(LockId(*earlier), LockId(*later), file, 1000 + n)
    return graph


L1 = (0, 0)
L2 = (0, 1)
L3 = (1, 0)


class BinaryTraceWriter:
    """Writes traces in the layout read by ``BinaryTraceReader``."""

    def __init__(self, prefix: str = "=") -> None:
        self.prefix = prefix
        self.buf = io.BytesIO()

    def _int(self, value: int) -> None:
        self.buf.write(struct.pack(self.prefix + "i", value))

    def _str(self, text: str) -> None:
        self.buf.write(text.encode("utf-8") + b"\x00")

    def header(self, created: int = 1_700_000_000, thread: int = 0, pid: int = 4242):
        self.buf.write(struct.pack(self.prefix + "qii", created, thread, pid))
        return self

    def create(self, lock: Pair, file: str = "lock.c", line: int = 1):
        self._int(-1)
        self._int(lock[0])
        self._int(lock[1])
        self._str(file)
        self._int(line)
        return self

    def order(self, earlier: Pair, later: Pair, file: str = "lock.c", line: int = 1):
        self._int(earlier[0])
        self._int(earlier[1])
        self._int(later[0])
        self._int(later[1])
        self._str(file)
        self._int(line)
        return self

    def raw(self, data: bytes):
        self.buf.write(data)
        return self

    def getvalue(self) -> bytes:
        return self.buf.getvalue()

    def save(self, path) -> str:
        with open(path, "wb") as fh:
            fh.write(self.getvalue())
        return str(path)


@pytest.fixture
def plain_reporter():
    """A colourless reporter writing into a StringIO (``.stream``)."""
    stream = io.StringIO()
    rep = Reporter(stream=stream, colour=False)
    rep.stream = stream
    return rep


@pytest.fixture
def trace_writer():
    return BinaryTraceWriter
