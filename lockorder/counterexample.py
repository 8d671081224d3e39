"""
lockorder.counterexample
========================

Turns :class:`~lockorder.cycle_detector.CycleReport` objects into
diagnostics a developer can act on without re-running the traced program.

For each cycle the witness lock and its creation site come first, then one
pair of lines per hop::

    [0] lock 0 0 is locked at worker.c:40 before lock 0 1
    [0] lock 0 1 is created at worker.c:13

The chain ends exactly when the witness lock is reached again, so its
length is the true cycle length.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from lockorder.cycle_detector import CycleReport
from lockorder.plus_reporter import Reporter, Severity

logger = logging.getLogger(__name__)

ERROR_ID = "lockOrderCycle"
CWE_DEADLOCK = 833


def render_chain(report: CycleReport) -> List[str]:
    """Return the plain-text lines describing one cycle."""
    witness = report.witness
    lines = [
        f"Found inconsistent locking order of length {report.length}",
        f"for lock {witness.id} created {witness.created_at}",
        "sequence is:",
    ]
    for i, hop in enumerate(report.hops):
        lines.append(
            f"[{i}] lock {hop.earlier.id} is locked at {hop.site} "
            f"before lock {hop.later.id}"
        )
        lines.append(f"[{i}] lock {hop.later.id} is created at {hop.later.created_at}")
    return lines


class CounterexampleReporter:
    """Counts cycles and forwards each one to a :class:`Reporter`.

    Instances are callable so they can be passed straight to
    :class:`~lockorder.cycle_detector.CycleDetector` as ``on_cycle``.
    """

    def __init__(self, reporter: Optional[Reporter] = None) -> None:
        self.reporter = reporter if reporter is not None else Reporter()
        self.errors_detected = 0
        self.reports: List[CycleReport] = []

    def __call__(self, report: CycleReport) -> None:
        self.report_cycle(report)

    def report_cycle(self, report: CycleReport) -> None:
        self.errors_detected += 1
        self.reports.append(report)
        witness = report.witness
        diag = self.reporter.diagnostic(
            Severity.ERROR,
            ERROR_ID,
            f"inconsistent locking order of length {report.length} "
            f"for lock {witness.id}",
        ).at(witness.created_at)

        if report.root is not witness:
            diag.note(
                f"found while checking from lock {report.root.id}",
                report.root.created_at,
            )
        for i, hop in enumerate(report.hops):
            diag.note(
                f"[{i}] lock {hop.earlier.id} is locked before lock {hop.later.id}",
                hop.site,
            )
            diag.note(f"[{i}] lock {hop.later.id} is created", hop.later.created_at)
        diag.help("acquire these locks in one consistent order in every thread")
        diag.with_cwe(CWE_DEADLOCK).emit()

        for line in render_chain(report):
            logger.debug("%s", line)


__all__ = [
    "ERROR_ID",
    "CWE_DEADLOCK",
    "render_chain",
    "CounterexampleReporter",
]
