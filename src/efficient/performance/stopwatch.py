"""
stopwatch.py - Lap Timer

An explicit state object for measuring wall-clock time across one or more
start/stop laps.  Usable directly or as a context manager::

    sw = Stopwatch()
    sw.start(); work(); sw.stop()

    with Stopwatch() as sw:
        work()
    print(sw.elapsed)

The clock is injectable so tests can drive it deterministically.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional


class Stopwatch:
    """
    Accumulating lap timer.

    Attributes
    ----------
    laps : list of float
        Duration in seconds of every completed lap, in order.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock
        self._started_at: Optional[float] = None
        self.laps: List[float] = []

    @property
    def running(self) -> bool:
        return self._started_at is not None

    @property
    def elapsed(self) -> float:
        """Total seconds over completed laps plus the live lap, if any."""
        total = sum(self.laps)
        if self._started_at is not None:
            total += self._clock() - self._started_at
        return total

    def start(self) -> "Stopwatch":
        if self._started_at is not None:
            raise RuntimeError("Stopwatch is already running")
        self._started_at = self._clock()
        return self

    def stop(self) -> float:
        """End the current lap and return its duration in seconds."""
        if self._started_at is None:
            raise RuntimeError("Stopwatch is not running")
        lap = self._clock() - self._started_at
        self._started_at = None
        self.laps.append(lap)
        return lap

    def reset(self) -> None:
        self._started_at = None
        self.laps.clear()

    def __enter__(self) -> "Stopwatch":
        return self.start()

    def __exit__(self, *args) -> None:
        self.stop()

    def __repr__(self) -> str:
        state = "running" if self.running else "stopped"
        return f"Stopwatch({state}, laps={len(self.laps)}, elapsed={self.elapsed:.6f}s)"
