"""
Randomness source for forged IV filler and simulated network jitter.
"""

from typing import Optional

import numpy as np

from cbc_timing_oracle.core.interfaces import IRandomSource


class NumpyRandomSource(IRandomSource):
    """
    IRandomSource backed by a numpy Generator.

    Passing a seed makes an attack run reproducible.

    Example:
        >>> a = NumpyRandomSource(seed=7).random_bytes(4)
        >>> b = NumpyRandomSource(seed=7).random_bytes(4)
        >>> a == b
        True
    """

    def __init__(self, seed: Optional[int] = None):
        self._rng = np.random.default_rng(seed)

    def random_bytes(self, n: int) -> bytes:
        if n < 0:
            raise ValueError(f"Byte count must be non-negative, got {n}")
        if n == 0:
            return b""
        return self._rng.integers(0, 256, size=n, dtype=np.uint8).tobytes()

    def uniform(self, low: float, high: float) -> float:
        if high <= low:
            return float(low)
        return float(self._rng.uniform(low, high))
