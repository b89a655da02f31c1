"""
Wall-clock timing for code blocks.

    with timeit("chunking", meta={"chars": len(text)}) as t:
        result = chunk_by_tokens(text, 500, measure)
    print(f"Took {t.timing.seconds:.3f}s")

Uses time.perf_counter(). The result is available on ``t.timing`` after the
block exits, including when it exits with an exception.
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Attributes:
        name: What was timed ("chunking", "inference", ...).
        seconds: Duration in seconds.
        meta: Optional extra context.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """Context manager that records a Timing on exit."""

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)

    @property
    def seconds(self) -> float:
        """Elapsed time so far, or the final duration after exit."""
        if self.timing is not None:
            return self.timing.seconds
        if self._t0 is None:
            return 0.0
        return perf_counter() - self._t0
