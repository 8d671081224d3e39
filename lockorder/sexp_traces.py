"""
sexp_traces.py — human-writable lock traces
===========================================

A textual twin of the binary trace format, handy for writing regression
traces by hand and for inspecting binary traces (``lock-verify --dump``).

One S-expression per record; the header form comes first::

    ; thread 0 of run 4242
    (trace :thread 0 :pid 4242 :time 1700000000)
    (create (0 0) "lock.c" 10)
    (create (0 1) "lock.c" 11)
    (order (0 0) (0 1) "lock.c" 20)

A ``;`` outside a string starts a comment that runs to the end of the line.

Depends on:
    - sexpdata          (S-expression parsing)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import sexpdata

from lockorder.errors import MalformedTraceError
from lockorder.order_graph import LockId, SourceSite
from lockorder.traces import CreateEvent, OrderEvent, TraceEvent, TraceHeader

logger = logging.getLogger(__name__)

_HEADER_KEYS = (":thread", ":pid", ":time")


# ===================================================================
#  PARSING
# ===================================================================

def _symbol_name(obj: Any) -> Optional[str]:
    """Return the name of a ``sexpdata.Symbol``, or ``None`` for other atoms."""
    if not isinstance(obj, sexpdata.Symbol):
        return None
    value = getattr(obj, "value", None)
    if callable(value):
        return str(value())
    return str(obj)


def _strip_comments(text: str) -> str:
    """Drop ``;`` comments to end of line, leaving string literals intact."""
    out: List[str] = []
    in_string = escaped = in_comment = False
    for ch in text:
        if in_comment:
            if ch == "\n":
                in_comment = False
                out.append(ch)
            continue
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == ";":
            in_comment = True
            continue
        out.append(ch)
    return "".join(out)


def _parse_forms(text: str, source: str) -> List[Any]:
    """Parse every top-level form of *text*."""
    body = _strip_comments(text)
    # sexpdata reads a single form; wrap the stream and strip the outer layer
    try:
        parsed = sexpdata.loads(f"({body})")
    except Exception as exc:
        raise MalformedTraceError(f"failed to parse S-expression trace: {exc}", site=source) from exc
    return list(parsed)


def _int(obj: Any, what: str, source: str) -> int:
    if isinstance(obj, bool) or not isinstance(obj, int):
        raise MalformedTraceError(f"{what} must be an integer, got {obj!r}", site=source)
    return obj


def _str(obj: Any, what: str, source: str) -> str:
    if not isinstance(obj, str) or _symbol_name(obj) is not None:
        raise MalformedTraceError(f"{what} must be a string, got {obj!r}", site=source)
    return obj


def _lock_id(obj: Any, source: str) -> LockId:
    if not isinstance(obj, list) or len(obj) != 2:
        raise MalformedTraceError(f"lock id must be (thread instance), got {obj!r}", site=source)
    return LockId(_int(obj[0], "thread", source), _int(obj[1], "instance", source))


def _parse_header(form: Any, source: str) -> TraceHeader:
    if not isinstance(form, list) or not form or _symbol_name(form[0]) != "trace":
        raise MalformedTraceError("trace must start with a (trace ...) header", site=source)
    args = form[1:]
    if len(args) % 2:
        raise MalformedTraceError("odd number of items in trace header", site=source)
    fields: Dict[str, int] = {}
    for key, value in zip(args[::2], args[1::2]):
        name = _symbol_name(key)
        if name not in _HEADER_KEYS:
            raise MalformedTraceError(f"unknown header field {key!r}", site=source)
        fields[name] = _int(value, name, source)
    missing = [k for k in _HEADER_KEYS if k not in fields]
    if missing:
        raise MalformedTraceError(f"trace header lacks {', '.join(missing)}", site=source)
    return TraceHeader(
        created=fields[":time"],
        thread=fields[":thread"],
        pid=fields[":pid"],
        source=source,
    )


def _parse_event(form: Any, source: str) -> TraceEvent:
    head = _symbol_name(form[0]) if isinstance(form, list) and form else None
    if head == "create" and len(form) == 4:
        return CreateEvent(
            _lock_id(form[1], source),
            SourceSite(_str(form[2], "file", source), _int(form[3], "line", source)),
        )
    if head == "order" and len(form) == 5:
        return OrderEvent(
            _lock_id(form[1], source),
            _lock_id(form[2], source),
            SourceSite(_str(form[3], "file", source), _int(form[4], "line", source)),
        )
    raise MalformedTraceError(f"bad trace record {form!r}", site=source)


def load_sexp_trace(text: str, source: str = "<string>") -> Tuple[TraceHeader, List[TraceEvent]]:
    """Parse a textual trace into its header and events."""
    forms = _parse_forms(text, source)
    if not forms:
        raise MalformedTraceError("empty trace", site=source)
    header = _parse_header(forms[0], source)
    events = [_parse_event(f, source) for f in forms[1:]]
    logger.debug("parsed %d records from %s", len(events), source)
    return header, events


# ===================================================================
#  WRITING
# ===================================================================

def _event_form(event: TraceEvent) -> List[Any]:
    if isinstance(event, CreateEvent):
        return [
            sexpdata.Symbol("create"),
            list(event.lock_id),
            event.site.file,
            event.site.line,
        ]
    return [
        sexpdata.Symbol("order"),
        list(event.earlier),
        list(event.later),
        event.site.file,
        event.site.line,
    ]


def dump_sexp_trace(header: TraceHeader, events: Iterable[TraceEvent]) -> str:
    """Render *header* and *events* in the textual trace format."""
    head = [
        sexpdata.Symbol("trace"),
        sexpdata.Symbol(":thread"), header.thread,
        sexpdata.Symbol(":pid"), header.pid,
        sexpdata.Symbol(":time"), header.created,
    ]
    lines = [sexpdata.dumps(head)]
    lines.extend(sexpdata.dumps(_event_form(e)) for e in events)
    return "\n".join(lines) + "\n"


__all__ = [
    "load_sexp_trace",
    "dump_sexp_trace",
]
