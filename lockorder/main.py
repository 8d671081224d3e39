#!/usr/bin/env python3
"""lockorder/main.py — CLI entry-point for the lock-order verifier.

Usage examples
--------------
    # Check the traces of every thread of one run
    lock-verify /tmp/ubtrace.0 /tmp/ubtrace.1 /tmp/ubtrace.2

    # Hand-written textual traces work too
    lock-verify tests/data/cycle.sexp

    # Also write a SARIF report and the order graph as Graphviz
    lock-verify --sarif locks.sarif --dot locks.dot /tmp/ubtrace.*

    # Show a binary trace in the textual format
    lock-verify --dump /tmp/ubtrace.0

Exit codes
----------
    0   No inconsistent locking order found.
    1   One or more lock-order cycles were reported.
    2   Infrastructure failure (unreadable file, malformed or
        inconsistent traces, bad configuration).

The module doubles as ``python -m lockorder`` via the companion
``lockorder/__main__.py``.
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from lockorder import __version__
from lockorder.config import BYTE_ORDERS, VerifierConfig
from lockorder.counterexample import CounterexampleReporter
from lockorder.cycle_detector import CycleDetector, CycleReport
from lockorder.errors import LockOrderError
from lockorder.order_graph import OrderGraph
from lockorder.plus_reporter import Reporter
from lockorder.traces import (
    BinaryTraceReader,
    IngestSummary,
    ingest_paths,
    is_sexp_trace,
)

_log = logging.getLogger("lockorder")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_CYCLES: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``lockorder`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("lockorder")
    root.setLevel(level)
    root.handlers[:] = [handler]


# ===========================================================================
# Verification
# ===========================================================================

@dataclass
class VerificationResult:
    """Outcome of one verifier run."""

    lock_count: int
    errors: int
    elapsed: float
    reports: List[CycleReport] = field(default_factory=list)
    ingest: Optional[IngestSummary] = None

    @property
    def exit_code(self) -> int:
        return EXIT_CYCLES if self.errors else EXIT_OK

    def summary_line(self) -> str:
        return (
            f"checked {self.lock_count} locks in {int(self.elapsed)} seconds "
            f"with {self.errors} errors."
        )


def verify_graph(graph: OrderGraph, reporter: Reporter) -> CounterexampleReporter:
    """Run the cycle detector over *graph*, reporting through *reporter*."""
    counter = CounterexampleReporter(reporter)
    CycleDetector(graph, on_cycle=counter).run()
    return counter


def run_verification(
    paths: Sequence[str],
    config: Optional[VerifierConfig] = None,
    stream: Optional[TextIO] = None,
) -> VerificationResult:
    """Ingest *paths* into one graph and check it.

    Raises
    ------
    IngestionError
        If the traces are malformed or inconsistent.
    OSError
        If a trace file cannot be read.
    """
    config = config or VerifierConfig()
    start = time.monotonic()

    graph = OrderGraph()
    summary = ingest_paths(graph, paths, config)
    _log.info(
        "read %d files (%d skipped): %d creations, %d orders",
        len(summary.files_read), len(summary.files_skipped),
        summary.creations, summary.orders,
    )
    _log.info("graph statistics: %s", graph.statistics())

    if config.dot_path:
        Path(config.dot_path).write_text(graph.to_dot(title="lock order"), encoding="utf-8")
        _log.info("wrote order graph to %s", config.dot_path)

    reporter = Reporter(
        stream=stream,
        colour=config.colour,
        sarif_path=config.sarif_path,
        tool_name="lock-verify",
        tool_version=__version__,
    )
    with reporter:
        counter = verify_graph(graph, reporter)

    return VerificationResult(
        lock_count=graph.lock_count,
        errors=counter.errors_detected,
        elapsed=time.monotonic() - start,
        reports=list(counter.reports),
        ingest=summary,
    )


def dump_traces(paths: Sequence[str], config: VerifierConfig, out: TextIO) -> None:
    """Print binary traces in the textual format."""
    from lockorder.sexp_traces import dump_sexp_trace

    for path in paths:
        if is_sexp_trace(path):
            out.write(Path(path).read_text(encoding="utf-8"))
            continue
        with open(path, "rb") as fh:
            reader = BinaryTraceReader(fh, config, name=str(path))
            header = reader.read_header()
            out.write(f"; {path}\n")
            out.write(dump_sexp_trace(header, reader.events()))


# ===========================================================================
# Argument parsing
# ===========================================================================

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the lock-verify CLI."""
    parser = argparse.ArgumentParser(
        prog="lock-verify",
        description="Check lock traces for inconsistent locking order.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              %(prog)s /tmp/ubtrace.0 /tmp/ubtrace.1
              %(prog)s --sarif locks.sarif /tmp/ubtrace.*
              %(prog)s --dump /tmp/ubtrace.0
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "traces",
        nargs="+",
        help="trace files; *.sexp files are read as textual traces",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="increase log output (-v info, -vv debug)",
    )
    parser.add_argument(
        "--byte-order",
        choices=sorted(BYTE_ORDERS),
        help="byte order of binary traces (default: native)",
    )
    parser.add_argument(
        "--time-window",
        type=int,
        metavar="SECONDS",
        help="maximum spread of trace creation times (default: 3600)",
    )
    parser.add_argument(
        "--max-threads",
        type=int,
        metavar="N",
        help="thread numbers must be below N (default: 256)",
    )
    parser.add_argument(
        "--colour", "--color",
        dest="colour",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="force coloured output on or off (default: when stdout is a TTY)",
    )
    parser.add_argument("--sarif", metavar="PATH", help="also write a SARIF 2.1.0 report")
    parser.add_argument("--dot", metavar="PATH", help="write the order graph as Graphviz DOT")
    parser.add_argument(
        "--dump",
        action="store_true",
        help="print the traces in the textual format instead of checking them",
    )
    return parser


# ===========================================================================
# MAIN
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the lock-verify CLI.

    Returns
    -------
    int
        Exit code (see module docstring).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        config = VerifierConfig.from_env().with_overrides(
            byte_order=args.byte_order,
            time_window=args.time_window,
            max_threads=args.max_threads,
            colour=args.colour,
            sarif_path=args.sarif,
            dot_path=args.dot,
        )
        if args.dump:
            dump_traces(args.traces, config, sys.stdout)
            return EXIT_OK
        result = run_verification(args.traces, config)
    except LockOrderError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    except OSError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    except KeyboardInterrupt:
        sys.stderr.write("\nInterrupted.\n")
        return 130

    print(result.summary_line())
    return result.exit_code
