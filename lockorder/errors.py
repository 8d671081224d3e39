# lockorder/errors.py
"""
Error types for trace ingestion and verification.

Hierarchy
─────────
┌─────────────────────────────────────────────────────────────────────┐
│  LockOrderError (base)                                              │
│  ├── ConfigError            - bad configuration value               │
│  └── IngestionError         - trace data is untrustworthy (fatal)   │
│      ├── DuplicateLockError - a lock id was created twice           │
│      ├── UnknownLockError   - an order record names an unknown lock │
│      ├── MalformedTraceError- short read, bad string, bad form      │
│      └── TraceHeaderError   - trace files do not belong together    │
└─────────────────────────────────────────────────────────────────────┘

Error codes follow the pattern ``LOCK-XXXX``:
  - 0001-0999: configuration
  - 1000-1999: ingestion

Detected lock-order cycles are *findings*, not errors, and never appear
here; see :mod:`lockorder.cycle_detector`.
"""

from __future__ import annotations

from typing import Any, Optional


class ErrorCode:
    """Stable identifiers for every error this package raises."""

    BAD_CONFIG = "LOCK-0001"

    DUPLICATE_LOCK = "LOCK-1001"
    UNKNOWN_LOCK = "LOCK-1002"
    MALFORMED_TRACE = "LOCK-1003"
    STRING_TOO_LONG = "LOCK-1004"
    TRUNCATED_TRACE = "LOCK-1005"
    PID_MISMATCH = "LOCK-1010"
    DUPLICATE_THREAD = "LOCK-1011"
    TIME_WINDOW = "LOCK-1012"
    BAD_THREAD_NUMBER = "LOCK-1013"


class LockOrderError(Exception):
    """Base class for all lockorder errors.

    Attributes
    ----------
    code : str
        One of the :class:`ErrorCode` constants.
    message : str
        Human-readable description.
    site : object, optional
        Where the problem was observed; anything with a useful ``str()``
        (normally a :class:`~lockorder.order_graph.SourceSite` or a path).
    """

    default_code: str = ErrorCode.BAD_CONFIG

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        site: Any = None,
    ) -> None:
        self.code = code or self.default_code
        self.message = message
        self.site = site
        super().__init__(str(self))

    def __str__(self) -> str:
        text = f"[{self.code}] {self.message}"
        if self.site is not None:
            text += f" (at {self.site})"
        return text


class ConfigError(LockOrderError):
    """A configuration value could not be parsed or is out of range."""

    default_code = ErrorCode.BAD_CONFIG


class IngestionError(LockOrderError):
    """The trace data is internally inconsistent; analysis must not go on."""

    default_code = ErrorCode.MALFORMED_TRACE


class DuplicateLockError(IngestionError):
    """A lock id was the subject of two creation records."""

    default_code = ErrorCode.DUPLICATE_LOCK

    def __init__(self, lock_id: Any, *, site: Any = None) -> None:
        self.lock_id = lock_id
        super().__init__(f"lock {lock_id} created twice", site=site)


class UnknownLockError(IngestionError):
    """An order record refers to a lock that was never created."""

    default_code = ErrorCode.UNKNOWN_LOCK

    def __init__(self, lock_id: Any, *, site: Any = None) -> None:
        self.lock_id = lock_id
        super().__init__(f"could not find lock {lock_id}", site=site)


class MalformedTraceError(IngestionError):
    """A trace record could not be decoded."""

    default_code = ErrorCode.MALFORMED_TRACE


class TraceHeaderError(IngestionError):
    """Trace headers disagree about which run they belong to."""

    default_code = ErrorCode.DUPLICATE_THREAD


__all__ = [
    "ErrorCode",
    "LockOrderError",
    "ConfigError",
    "IngestionError",
    "DuplicateLockError",
    "UnknownLockError",
    "MalformedTraceError",
    "TraceHeaderError",
]
