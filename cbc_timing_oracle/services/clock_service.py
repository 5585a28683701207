"""
Clock implementations for the oracle's delay model.

SystemClock really sleeps; SimulatedClock only advances a virtual timer,
which keeps the statistical behaviour of the oracle while making every
query return immediately.
"""

import time

from cbc_timing_oracle.core.interfaces import IClock


class SystemClock(IClock):
    """
    Wall-clock implementation.

    Uses perf_counter for measurement (unaffected by system clock changes).
    """

    def now(self) -> float:
        return time.perf_counter()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


class SimulatedClock(IClock):
    """
    Virtual clock advanced only by sleep().

    Example:
        >>> clock = SimulatedClock()
        >>> start = clock.now()
        >>> clock.sleep(0.02)
        >>> round(clock.now() - start, 6)
        0.02
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self.total_slept = 0.0

    def now(self) -> float:
        return self._now

    def sleep(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError(f"Cannot sleep for a negative duration ({seconds})")
        self._now += seconds
        self.total_slept += seconds
