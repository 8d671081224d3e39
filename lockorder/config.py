"""
lockorder.config
================

Run-time settings for the verifier.

Values come from three layers, later layers winning:

1. the defaults on :class:`VerifierConfig`;
2. environment variables (:meth:`VerifierConfig.from_env`);
3. command-line flags (:meth:`VerifierConfig.with_overrides`).

Environment variables
---------------------
``LOCKORDER_BYTE_ORDER``
    ``native`` (default), ``little`` or ``big``.
``LOCKORDER_TIME_WINDOW``
    Maximum spread, in seconds, between trace creation times.
``LOCKORDER_MAX_THREADS``
    Upper bound (exclusive) on thread numbers in trace headers.
``REPORT_GENERATE_SARIF``
    If set, a SARIF 2.1.0 report is written to this path.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from lockorder.errors import ConfigError

# struct prefix per byte order name
BYTE_ORDERS: Dict[str, str] = {
    "native": "=",
    "little": "<",
    "big": ">",
}

DEFAULT_TIME_WINDOW = 3600
DEFAULT_MAX_THREADS = 256
DEFAULT_MAX_STRING = 1024


@dataclass(frozen=True)
class VerifierConfig:
    """Immutable settings bundle passed from the CLI to the library."""

    byte_order: str = "native"
    time_window: int = DEFAULT_TIME_WINDOW
    max_threads: int = DEFAULT_MAX_THREADS
    max_string: int = DEFAULT_MAX_STRING
    colour: Optional[bool] = None
    sarif_path: Optional[str] = None
    dot_path: Optional[str] = None

    def __post_init__(self) -> None:
        if self.byte_order not in BYTE_ORDERS:
            raise ConfigError(
                f"unknown byte order {self.byte_order!r}; "
                f"expected one of {', '.join(sorted(BYTE_ORDERS))}"
            )
        for name in ("time_window", "max_threads", "max_string"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")

    @property
    def struct_prefix(self) -> str:
        return BYTE_ORDERS[self.byte_order]

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> VerifierConfig:
        """Build a config from environment variables on top of the defaults."""
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        if env.get("LOCKORDER_BYTE_ORDER"):
            values["byte_order"] = env["LOCKORDER_BYTE_ORDER"].strip().lower()
        if env.get("LOCKORDER_TIME_WINDOW"):
            values["time_window"] = _parse_int(env, "LOCKORDER_TIME_WINDOW")
        if env.get("LOCKORDER_MAX_THREADS"):
            values["max_threads"] = _parse_int(env, "LOCKORDER_MAX_THREADS")
        if env.get("REPORT_GENERATE_SARIF"):
            values["sarif_path"] = env["REPORT_GENERATE_SARIF"]
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> VerifierConfig:
        """Return a copy with every non-``None`` override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)


def _parse_int(env: Mapping[str, str], name: str) -> int:
    raw = env[name]
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


__all__ = [
    "BYTE_ORDERS",
    "DEFAULT_TIME_WINDOW",
    "DEFAULT_MAX_THREADS",
    "DEFAULT_MAX_STRING",
    "VerifierConfig",
]
