"""
Stage timing.

    with timeit("encode") as t:
        embeddings = encoder.predict(ids, mask)
    verbose(log, "encoded", seconds=t.timing.seconds)

``time.perf_counter`` is used, so readings are monotonic and sub-millisecond.
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Attributes:
        name: What was timed ("g2p", "bert", "vits2", ...).
        seconds: Wall-clock duration.
        meta: Optional extra context.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager recording a Timing on exit.

    ``timing`` stays None until the block finishes; it is also set when the
    block raises, so failures can still be logged with their duration.
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
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)

    @property
    def seconds(self) -> float:
        """Elapsed seconds, -1.0 while the block is still running."""
        return self.timing.seconds if self.timing else -1.0
