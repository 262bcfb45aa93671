"""
Wall-clock timing of procedure phases.

Every procedure splits its work into named phases (case extraction, the
stepwise loop, the eigen decomposition, classification) and reports the
seconds spent in each through ``Result.timing``.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator


class Timer:
    """
    Overall clock plus accumulated per-phase durations.

    Usage:
        timer = Timer()
        timer.start()
        with timer.section('extract'):
            dataset = AnalyzedDataset.from_records(records, main)
        with timer.section('stepwise'):
            params, notes = run_stepwise(dataset, config)
        timing = timer.finish()
        # {'total_seconds': 0.05, 'extract': 0.01, 'stepwise': 0.04}

    A phase entered more than once (one section per stepwise candidate,
    say) accumulates; ``entries`` keeps how many times each was entered.
    """

    def __init__(self) -> None:
        self._phases: dict[str, float] = {}
        self.entries: dict[str, int] = {}
        self._started: float | None = None
        self._elapsed: float | None = None

    @property
    def running(self) -> bool:
        return self._started is not None and self._elapsed is None

    def start(self) -> None:
        self._started = time.perf_counter()
        self._elapsed = None

    def stop(self) -> None:
        if self._started is None:
            raise RuntimeError("Timer.stop() called before start()")
        self._elapsed = time.perf_counter() - self._started

    @contextmanager
    def section(self, name: str) -> Iterator[None]:
        """Charge the time spent inside the block to phase ``name``."""
        began = time.perf_counter()
        try:
            yield
        finally:
            spent = time.perf_counter() - began
            self._phases[name] = self._phases.get(name, 0.0) + spent
            self.entries[name] = self.entries.get(name, 0) + 1

    def result(self) -> dict[str, float]:
        """
        Timing dict for a Result: ``total_seconds`` then each phase in the
        order it was first entered.

        Raises:
            RuntimeError: If the timer has not been stopped
        """
        if self._elapsed is None:
            raise RuntimeError("Timer.result() called before stop()")
        return {'total_seconds': self._elapsed, **self._phases}

    def finish(self) -> dict[str, float]:
        """Stop the clock and return the timing dict."""
        self.stop()
        return self.result()


@contextmanager
def timed() -> Iterator[Timer]:
    """
    Time a block as a whole.

    Usage:
        with timed() as timer:
            result = discriminant_analysis(records, config)
        print(f"{timer.result()['total_seconds']:.3f}s")
    """
    timer = Timer()
    timer.start()
    try:
        yield timer
    finally:
        timer.stop()
