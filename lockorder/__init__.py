"""
lockorder — Offline Lock-Order Verification
===========================================

Checks recorded lock-acquisition traces for a cyclic "locked before"
relation among locks.  If thread A locks X before Y while thread B locks Y
before X, running both at once can deadlock; such a cycle is reported with
the creation and acquisition sites that establish it.

Core modules
------------
order_graph
    Lock registry and the "locked before" graph built from trace events.
cycle_detector
    Rooted depth-first cycle search with memoised visitation.
counterexample
    Renders each cycle as a diagnostic chain of sites.
plus_reporter
    Coloured terminal / plain / SARIF diagnostic output.
traces
    Binary trace decoding, header cross-validation, ingestion.
sexp_traces
    Textual (S-expression) trace format.
config
    ``VerifierConfig`` settings.
errors
    Exception hierarchy.

Quick start
-----------
>>> from lockorder import LockId, OrderGraph, detect_cycles
>>> g = OrderGraph()
>>> for i in range(2):
...     g.emit_creation(LockId(0, i), "demo.c", 10 + i)
>>> g.emit_order(LockId(0, 0), LockId(0, 1), "demo.c", 20)
>>> g.emit_order(LockId(0, 1), LockId(0, 0), "demo.c", 30)
>>> [r.length for r in detect_cycles(g)]
[2]

Package layout
--------------
::

    lockorder/
    ├── __init__.py            ← this file
    ├── __main__.py
    ├── main.py
    ├── config.py
    ├── errors.py
    ├── order_graph.py
    ├── cycle_detector.py
    ├── counterexample.py
    ├── plus_reporter.py
    ├── traces.py
    └── sexp_traces.py
"""

from __future__ import annotations

import importlib
import sys
from typing import TYPE_CHECKING, List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__license__ = "BSD-3-Clause"
__all__: List[str] = []          # populated below


# ---------------------------------------------------------------------------
# Internal registry: (module_name, list_of_names_to_re-export)
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "errors": [
        "LockOrderError",
        "ConfigError",
        "IngestionError",
        "DuplicateLockError",
        "UnknownLockError",
        "MalformedTraceError",
        "TraceHeaderError",
    ],
    "config": [
        "VerifierConfig",
    ],
    "order_graph": [
        "LockId",
        "SourceSite",
        "LockNode",
        "OrderEdge",
        "LockRegistry",
        "OrderGraph",
    ],
    "cycle_detector": [
        "CycleHop",
        "CycleReport",
        "CycleDetector",
        "detect_cycles",
    ],
    "plus_reporter": [
        "Reporter",
        "Severity",
    ],
    "counterexample": [
        "CounterexampleReporter",
        "render_chain",
    ],
    "traces": [
        "TraceHeader",
        "TraceSetValidator",
        "BinaryTraceReader",
        "ingest_paths",
    ],
    "sexp_traces": [
        "load_sexp_trace",
        "dump_sexp_trace",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace.

    An ``ImportError`` or a missing name propagates: every module listed in
    ``_CORE_MODULES`` is required.
    """
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"lockorder: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        obj = getattr(mod, name, None)
        if obj is None:
            raise AttributeError(f"lockorder.{module_rel_name} does not export '{name}'")
        setattr(current_module, name, obj)
        __all__.append(name)

    # lockorder.order_graph.LockId works as well as lockorder.LockId
    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names


def list_submodules() -> List[str]:
    """Return the names of all re-exported submodules."""
    return sorted(_CORE_MODULES)


__all__ += ["list_submodules", "__version__"]

# ---------------------------------------------------------------------------
# Static re-imports for type checkers
# ---------------------------------------------------------------------------

if TYPE_CHECKING:
    from .errors import (
        LockOrderError as LockOrderError,
        ConfigError as ConfigError,
        IngestionError as IngestionError,
        DuplicateLockError as DuplicateLockError,
        UnknownLockError as UnknownLockError,
        MalformedTraceError as MalformedTraceError,
        TraceHeaderError as TraceHeaderError,
    )
    from .config import VerifierConfig as VerifierConfig
    from .order_graph import (
        LockId as LockId,
        SourceSite as SourceSite,
        LockNode as LockNode,
        OrderEdge as OrderEdge,
        LockRegistry as LockRegistry,
        OrderGraph as OrderGraph,
    )
    from .cycle_detector import (
        CycleHop as CycleHop,
        CycleReport as CycleReport,
        CycleDetector as CycleDetector,
        detect_cycles as detect_cycles,
    )
    from .plus_reporter import Reporter as Reporter, Severity as Severity
    from .counterexample import (
        CounterexampleReporter as CounterexampleReporter,
        render_chain as render_chain,
    )
    from .traces import (
        TraceHeader as TraceHeader,
        TraceSetValidator as TraceSetValidator,
        BinaryTraceReader as BinaryTraceReader,
        ingest_paths as ingest_paths,
    )
    from .sexp_traces import (
        load_sexp_trace as load_sexp_trace,
        dump_sexp_trace as dump_sexp_trace,
    )
