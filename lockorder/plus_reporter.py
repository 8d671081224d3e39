#!/usr/bin/env python3
"""
lockorder/plus_reporter.py
══════════════════════════

Rust-style colourful diagnostic reporter for verifier findings.

Output formats
──────────────
  • Terminal : colourful rendering when the stream is a TTY (default)
  • Plain    : cppcheck-style one-liners otherwise
  • SARIF    : additionally, if a SARIF path is configured

Every diagnostic has a classic one-liner form:
    [filename:line]: (severity) message [errorId]

Usage
─────
    from lockorder.plus_reporter import Reporter, Severity

    with Reporter() as rep:
        (rep.diagnostic(Severity.ERROR, "lockOrderCycle",
                        "inconsistent locking order of length 2")
            .at(SourceSite("db.c", 14))
            .note("[0] lock 0 1 is locked before lock 0 0", SourceSite("db.c", 80))
            .with_cwe(833)
            .emit())
"""

from __future__ import annotations

import enum
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Union

from termcolor import colored, cprint

from lockorder.order_graph import SourceSite


# ═════════════════════════════════════════════════════════════════════════
#  SEVERITY ENUM
# ═════════════════════════════════════════════════════════════════════════

class Severity(enum.Enum):
    """
    Diagnostic severity levels.

    Each carries:
      • label       — the string used in one-liner output
      • color       — termcolor colour name
      • sarif_level — SARIF 2.1.0 ``level`` string
    """

    ERROR = ("error", "red", "error")
    WARNING = ("warning", "yellow", "warning")
    INFORMATION = ("information", "white", "note")

    def __init__(self, label: str, color: str, sarif_level: str) -> None:
        self.label = label
        self.color = color
        self.sarif_level = sarif_level


# ═════════════════════════════════════════════════════════════════════════
#  DATA STRUCTURES
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class DiagnosticNote:
    """A note or help line attached to a diagnostic."""
    kind: str  # "note" or "help"
    message: str
    site: Optional[SourceSite] = None


@dataclass
class ReporterStats:
    """Aggregate counts per severity."""
    error: int = 0
    warning: int = 0
    information: int = 0

    def record(self, severity: Severity) -> None:
        setattr(self, severity.label, getattr(self, severity.label) + 1)

    @property
    def total(self) -> int:
        return self.error + self.warning + self.information

    def summary_line(self) -> str:
        parts: List[str] = []
        if self.error:
            parts.append(f"{self.error} error{'s' if self.error != 1 else ''}")
        if self.warning:
            parts.append(f"{self.warning} warning{'s' if self.warning != 1 else ''}")
        if self.information:
            parts.append(f"{self.information} info")
        if not parts:
            return "no diagnostics emitted"
        return "; ".join(parts) + f" ({self.total} total)"


# ═════════════════════════════════════════════════════════════════════════
#  DIAGNOSTIC (builder pattern)
# ═════════════════════════════════════════════════════════════════════════

class Diagnostic:
    """
    Incrementally constructed diagnostic.

    All builder methods return ``self`` so calls can be chained; finish
    with :meth:`emit`.
    """

    def __init__(
        self,
        reporter: Reporter,
        severity: Severity,
        error_id: str,
        message: str,
    ) -> None:
        self._reporter = reporter
        self.severity = severity
        self.error_id = error_id
        self.message = message
        self.site: Optional[SourceSite] = None
        self.cwe: Optional[int] = None
        self.notes: List[DiagnosticNote] = []

    def at(self, site: SourceSite) -> Diagnostic:
        """Set the primary source location."""
        self.site = site
        return self

    def note(self, message: str, site: Optional[SourceSite] = None) -> Diagnostic:
        self.notes.append(DiagnosticNote("note", message, site))
        return self

    def help(self, message: str) -> Diagnostic:
        self.notes.append(DiagnosticNote("help", message))
        return self

    def with_cwe(self, cwe_id: int) -> Diagnostic:
        """Tag this diagnostic with a MITRE CWE number."""
        self.cwe = cwe_id
        return self

    def emit(self) -> None:
        """Send the diagnostic to the reporter.  Do not reuse the builder."""
        self._reporter._accept(self)  # noqa: SLF001

    def one_liner(self) -> str:
        """Classic one-liner: ``[file:line]: (severity) message [id]``."""
        fname = self.site.file if self.site else ""
        lineno = self.site.line if self.site else 0
        return f"[{fname}:{lineno}]: ({self.severity.label}) {self.message} [{self.error_id}]"


# ═════════════════════════════════════════════════════════════════════════
#  RENDERERS
# ═════════════════════════════════════════════════════════════════════════

class _TerminalRenderer:
    """Render diagnostics to a terminal with colours."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def render(self, diag: Diagnostic) -> None:
        lines: List[str] = []

        sev_str = colored(
            f"{diag.severity.label}[{diag.error_id}]",
            diag.severity.color,
            attrs=["bold"],
        )
        lines.append(f"{sev_str}: {colored(diag.message, 'white', attrs=['bold'])}")

        arrow = colored("-->", "blue", attrs=["bold"])
        if diag.site:
            lines.append(f"  {arrow} {diag.site}")

        for note in diag.notes:
            colour = "cyan" if note.kind == "note" else "green"
            prefix = colored(note.kind, colour, attrs=["bold"])
            lines.append(f"  = {prefix}: {note.message}")
            if note.site:
                lines.append(f"    {arrow} {note.site}")

        if diag.cwe is not None:
            cwe_str = colored(f"CWE-{diag.cwe}", "blue", attrs=["underline"])
            lines.append(f"  = {cwe_str}: https://cwe.mitre.org/data/definitions/{diag.cwe}.html")

        lines.append(colored(diag.one_liner(), attrs=["dark"]))
        lines.append("")
        self._stream.write("\n".join(lines) + "\n")
        self._stream.flush()


class _PlainRenderer:
    """Non-coloured renderer for log files and pipes."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def render(self, diag: Diagnostic) -> None:
        self._stream.write(diag.one_liner() + "\n")
        for note in diag.notes:
            loc_str = f" [{note.site}]" if note.site else ""
            self._stream.write(f"  {note.kind}{loc_str}: {note.message}\n")
        self._stream.flush()


# ═════════════════════════════════════════════════════════════════════════
#  SARIF 2.1.0 BUILDER
# ═════════════════════════════════════════════════════════════════════════

class _SarifBuilder:
    """Accumulates diagnostics and writes a SARIF 2.1.0 JSON file."""

    SARIF_VERSION = "2.1.0"
    SARIF_SCHEMA = (
        "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/"
        "Schemata/sarif-schema-2.1.0.json"
    )

    def __init__(self) -> None:
        self._results: List[Dict[str, Any]] = []
        self._rules: Dict[str, Dict[str, Any]] = {}

    @staticmethod
    def _physical(site: SourceSite) -> Dict[str, Any]:
        return {
            "artifactLocation": {"uri": site.file},
            "region": {"startLine": site.line},
        }

    def add(self, diag: Diagnostic) -> None:
        if diag.error_id not in self._rules:
            rule: Dict[str, Any] = {
                "id": diag.error_id,
                "shortDescription": {"text": diag.message},
            }
            if diag.cwe is not None:
                rule["properties"] = {"cwe": f"CWE-{diag.cwe}"}
            self._rules[diag.error_id] = rule

        result: Dict[str, Any] = {
            "ruleId": diag.error_id,
            "level": diag.severity.sarif_level,
            "message": {"text": diag.message},
        }
        if diag.site:
            result["locations"] = [{"physicalLocation": self._physical(diag.site)}]

        related: List[Dict[str, Any]] = []
        for idx, note in enumerate(n for n in diag.notes if n.kind == "note"):
            entry: Dict[str, Any] = {"id": idx, "message": {"text": note.message}}
            if note.site:
                entry["physicalLocation"] = self._physical(note.site)
            related.append(entry)
        if related:
            result["relatedLocations"] = related

        if diag.cwe is not None:
            result.setdefault("properties", {})["cwe"] = diag.cwe

        self._results.append(result)

    def to_json(self, tool_name: str, version: str) -> str:
        sarif: Dict[str, Any] = {
            "$schema": self.SARIF_SCHEMA,
            "version": self.SARIF_VERSION,
            "runs": [
                {
                    "tool": {
                        "driver": {
                            "name": tool_name,
                            "version": version,
                            "rules": list(self._rules.values()),
                        }
                    },
                    "results": self._results,
                }
            ],
        }
        return json.dumps(sarif, indent=2)

    def write(self, path: str, tool_name: str, version: str) -> None:
        Path(path).write_text(self.to_json(tool_name, version), encoding="utf-8")


# ═════════════════════════════════════════════════════════════════════════
#  REPORTER  (main entry point)
# ═════════════════════════════════════════════════════════════════════════

class Reporter:
    """
    Central diagnostic dispatcher.

    Use as a context manager::

        with Reporter() as rep:
            rep.diagnostic(Severity.ERROR, "id", "msg").at(site).emit()
        # finish() is called automatically
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        colour: Optional[bool] = None,
        sarif_path: Optional[str] = None,
        tool_name: str = "lockorder",
        tool_version: str = "0.1.0",
    ) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self.tool_name = tool_name
        self.tool_version = tool_version
        self.stats = ReporterStats()
        self.diagnostics: List[Diagnostic] = []

        use_colour = colour if colour is not None else (
            hasattr(self._stream, "isatty") and self._stream.isatty()
        )
        if use_colour:
            self._renderer: Union[_TerminalRenderer, _PlainRenderer] = \
                _TerminalRenderer(self._stream)
        else:
            self._renderer = _PlainRenderer(self._stream)

        self._sarif_path = sarif_path
        self._sarif: Optional[_SarifBuilder] = _SarifBuilder() if sarif_path else None

    def __enter__(self) -> Reporter:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.finish()

    def diagnostic(self, severity: Severity, error_id: str, message: str) -> Diagnostic:
        """Create a new :class:`Diagnostic` builder bound to this reporter."""
        return Diagnostic(self, severity, error_id, message)

    def _accept(self, diag: Diagnostic) -> None:
        # count first so finish() sees the real totals even if a renderer raises
        self.stats.record(diag.severity)
        self.diagnostics.append(diag)
        self._renderer.render(diag)
        if self._sarif is not None:
            self._sarif.add(diag)

    def finish(self) -> ReporterStats:
        """Print the summary line, write SARIF if configured, return stats."""
        summary = self.stats.summary_line()
        if isinstance(self._renderer, _TerminalRenderer):
            colour = "red" if self.stats.error else ("yellow" if self.stats.total else "green")
            cprint(f"  ╰─ {summary}", colour, attrs=["bold"], file=sys.stderr)
        else:
            print(f"  {summary}", file=sys.stderr)

        if self._sarif is not None and self._sarif_path:
            try:
                self._sarif.write(self._sarif_path, self.tool_name, self.tool_version)
            except OSError as exc:
                print(f"plus_reporter: failed to write SARIF: {exc}", file=sys.stderr)

        return self.stats


__all__ = [
    "Severity",
    "DiagnosticNote",
    "Diagnostic",
    "Reporter",
    "ReporterStats",
]
