"""
Timing helpers.

The forwarder times each upstream stage (synthesize, download) and the
catalog times its probe request; the durations go to the
relay_upstream_duration_seconds histogram and to VERBOSE log lines.

Example:
    with timeit("synthesize") as t:
        response = upstream.get(endpoint, api_key=key, params=params)
    metrics.observe_upstream("synthesize", t.timing.seconds)
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """A finished measurement: stage name, elapsed seconds, optional metadata."""
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager that measures the wall-clock time of its block.

    The Timing is also recorded when the block raises, so failed upstream
    calls still report how long they took.
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=perf_counter() - self._t0, meta=self.meta)

    @property
    def seconds(self) -> float:
        """Elapsed seconds so far, or the final value after exit."""
        if self.timing is not None:
            return self.timing.seconds
        if self._t0 is None:
            return 0.0
        return perf_counter() - self._t0
