"""
Shared fixtures for the padding oracle tests.
"""

import pytest

from cbc_timing_oracle.core.interfaces import IRandomSource
from cbc_timing_oracle.services.clock_service import SimulatedClock
from cbc_timing_oracle.utils.logger import Logger


class FixedRandomSource(IRandomSource):
    """
    Deterministic randomness: constant filler bytes and a fixed jitter fraction.

    A 0xFF filler keeps the forged prefix far from any padding value, so the
    only valid padding the oracle sees is the one the guess is aiming for.
    """

    def __init__(self, filler: int = 0xFF, fraction: float = 0.5):
        self.filler = filler
        self.fraction = fraction
        self.bytes_requested = 0

    def random_bytes(self, n: int) -> bytes:
        self.bytes_requested += n
        return bytes([self.filler]) * n

    def uniform(self, low: float, high: float) -> float:
        return low + (high - low) * self.fraction


@pytest.fixture
def logger():
    return Logger(console=False)


@pytest.fixture
def clock():
    return SimulatedClock()


@pytest.fixture
def fixed_random():
    return FixedRandomSource()
