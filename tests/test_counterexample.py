# tests/test_counterexample.py
"""
Tests for counterexample rendering and the diagnostic reporter.
"""

import io
import json

from lockorder.counterexample import (
    CWE_DEADLOCK,
    ERROR_ID,
    CounterexampleReporter,
    render_chain,
)
from lockorder.cycle_detector import detect_cycles
from lockorder.order_graph import SourceSite
from lockorder.plus_reporter import Reporter, ReporterStats, Severity
from tests.conftest import L1, L2, L3, make_graph


def _three_lock_report():
    g = make_graph([L1, L2, L3], [(L1, L2), (L2, L3), (L3, L1)])
    return detect_cycles(g)[0]


class TestRenderChain:

    def test_header_lines(self):
        lines = render_chain(_three_lock_report())
        assert lines[0] == "Found inconsistent locking order of length 3"
        assert lines[1] == "for lock 0 0 created lock.c:0"
        assert lines[2] == "sequence is:"

    def test_one_pair_of_lines_per_hop(self):
        lines = render_chain(_three_lock_report())
        body = lines[3:]
        assert len(body) == 6
        assert body[0] == "[0] lock 0 0 is locked at lock.c:1000 before lock 0 1"
        assert body[1] == "[0] lock 0 1 is created at lock.c:1"
        assert body[2] == "[1] lock 0 1 is locked at lock.c:1001 before lock 1 0"
        assert body[3] == "[1] lock 1 0 is created at lock.c:100"
        assert body[5] == "[2] lock 0 0 is created at lock.c:0"

    def test_self_loop(self):
        report = detect_cycles(make_graph([L2], [(L2, L2)]))[0]
        lines = render_chain(report)
        assert lines[0].endswith("of length 1")
        assert lines[3] == "[0] lock 0 1 is locked at lock.c:1000 before lock 0 1"


class TestCounterexampleReporter:

    def test_counts_and_collects(self, plain_reporter):
        counter = CounterexampleReporter(plain_reporter)
        g = make_graph(
            [L1, L2, (1, 0), (1, 1)],
            [(L1, L2), (L2, L1), ((1, 0), (1, 1)), ((1, 1), (1, 0))],
        )
        reports = detect_cycles(g, on_cycle=counter)
        assert counter.errors_detected == 2
        assert counter.reports == reports
        assert plain_reporter.stats.error == 2

    def test_plain_output(self, plain_reporter):
        counter = CounterexampleReporter(plain_reporter)
        detect_cycles(make_graph([L1, L2], [(L1, L2), (L2, L1)]), on_cycle=counter)
        out = plain_reporter.stream.getvalue()
        first = out.splitlines()[0]
        assert first == (
            "[lock.c:0]: (error) inconsistent locking order of length 2 "
            "for lock 0 0 [lockOrderCycle]"
        )
        assert "  note [lock.c:1000]: [0] lock 0 0 is locked before lock 0 1" in out
        assert "  note [lock.c:1]: [0] lock 0 1 is created" in out
        assert "  help: acquire these locks in one consistent order" in out

    def test_root_note_when_witness_differs(self, plain_reporter):
        counter = CounterexampleReporter(plain_reporter)
        r, x, y = (0, 0), (1, 0), (1, 1)
        detect_cycles(make_graph([r, x, y], [(x, r), (x, y), (y, x)]), on_cycle=counter)
        diag = plain_reporter.diagnostics[0]
        assert diag.site == SourceSite("lock.c", 100)
        assert diag.notes[0].message == "found while checking from lock 0 0"
        assert diag.cwe == CWE_DEADLOCK
        assert diag.error_id == ERROR_ID

    def test_sarif_written_on_finish(self, tmp_path):
        sarif = tmp_path / "out.sarif"
        with Reporter(stream=io.StringIO(), colour=False, sarif_path=str(sarif)) as rep:
            counter = CounterexampleReporter(rep)
            detect_cycles(make_graph([L1, L2], [(L1, L2), (L2, L1)]), on_cycle=counter)
        data = json.loads(sarif.read_text(encoding="utf-8"))
        assert data["version"] == "2.1.0"
        run = data["runs"][0]
        assert run["tool"]["driver"]["rules"][0]["id"] == ERROR_ID
        result = run["results"][0]
        assert result["level"] == "error"
        assert result["properties"]["cwe"] == 833
        loc = result["locations"][0]["physicalLocation"]
        assert loc["artifactLocation"]["uri"] == "lock.c"
        assert loc["region"]["startLine"] == 0
        assert len(result["relatedLocations"]) == 4


class TestReporter:

    def test_summary_line(self):
        stats = ReporterStats()
        assert stats.summary_line() == "no diagnostics emitted"
        stats.record(Severity.ERROR)
        assert stats.summary_line() == "1 error (1 total)"
        stats.record(Severity.ERROR)
        stats.record(Severity.WARNING)
        assert stats.summary_line() == "2 errors; 1 warning (3 total)"

    def test_one_liner_without_site(self, plain_reporter):
        diag = plain_reporter.diagnostic(Severity.WARNING, "x", "msg")
        assert diag.one_liner() == "[:0]: (warning) msg [x]"

    def test_coloured_output_contains_message(self):
        stream = io.StringIO()
        rep = Reporter(stream=stream, colour=True)
        rep.diagnostic(Severity.ERROR, ERROR_ID, "boom").at(SourceSite("a.c", 3)).emit()
        out = stream.getvalue()
        assert "boom" in out
        assert "a.c:3" in out
