"""
Abstract interfaces for the padding oracle attack simulator.

This module defines the contracts (interfaces) that the concrete oracle,
distinguisher and recovery implementations follow, plus the small data
classes passed between them. Collaborators are injected through these
interfaces so tests can swap in deterministic stand-ins.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class Verdict(Enum):
    """Outcome of one sequential test."""
    ACCEPT = "accept"
    REJECT = "reject"
    UNDECIDED = "undecided"


@dataclass(frozen=True)
class SessionCapture:
    """
    One observed legitimate ciphertext block and the block preceding it.

    Attributes:
        iv_prev: Previous ciphertext block (or IV) of the captured session
        target: The ciphertext block under attack
    """
    iv_prev: bytes
    target: bytes


@dataclass(frozen=True)
class SPRTResult:
    """
    Result of one distinguisher invocation.

    Attributes:
        verdict: ACCEPT, REJECT or UNDECIDED
        log_likelihood_ratio: Final accumulated log-likelihood ratio
        latencies: Observed oracle latencies in query order (seconds)
    """
    verdict: Verdict
    log_likelihood_ratio: float
    latencies: Tuple[float, ...]

    @property
    def attempts(self) -> int:
        return len(self.latencies)

    @property
    def accepted(self) -> bool:
        return self.verdict is Verdict.ACCEPT


class IClock(ABC):
    """
    Interface for delay and time measurement.

    The oracle blocks on `sleep` and measures itself with `now`, so a
    simulated clock makes every query instantaneous in wall-clock terms.
    """

    @abstractmethod
    def now(self) -> float:
        """Return a monotonic timestamp in seconds."""
        pass

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Block for the given duration."""
        pass


class IRandomSource(ABC):
    """Interface for the randomness used in IV filler and network jitter."""

    @abstractmethod
    def random_bytes(self, n: int) -> bytes:
        """Return n uniformly distributed bytes."""
        pass

    @abstractmethod
    def uniform(self, low: float, high: float) -> float:
        """Return a float drawn uniformly from [low, high)."""
        pass


class IOracle(ABC):
    """
    Interface for a padding oracle leaking validity through latency.
    """

    @property
    @abstractmethod
    def block_size(self) -> int:
        pass

    @property
    @abstractmethod
    def num_blocks(self) -> int:
        pass

    @property
    @abstractmethod
    def clock(self) -> IClock:
        """Clock the oracle sleeps on and measures its latency with."""
        pass

    @abstractmethod
    def query(self, iv: bytes, ciphertext: bytes) -> float:
        """
        Submit a forged (IV, ciphertext) pair.

        Args:
            iv: Initialization vector, one block long
            ciphertext: Ciphertext block, one block long

        Returns:
            Observed processing latency in seconds

        Raises:
            InvalidBlockLengthException: If either argument is not one block
        """
        pass

    @abstractmethod
    def capture_session(self, block_index: int) -> SessionCapture:
        """
        Observe a legitimate ciphertext block and its predecessor.

        Raises:
            BlockIndexOutOfRangeException: If block_index is not in the message
        """
        pass


class IDistinguisher(ABC):
    """Interface for deciding whether a candidate suffix yields valid padding."""

    @abstractmethod
    def check(self, candidate_suffix: bytes, block_index: int) -> SPRTResult:
        pass


class IAttackStrategy(ABC):
    """
    Interface for plaintext recovery strategies.
    """

    @abstractmethod
    def recover_block(self, block_index: int) -> bytes:
        """
        Recover one full plaintext block.

        Raises:
            AttackFailedException: If a byte of the block cannot be recovered
        """
        pass


class ILogger(ABC):
    """Interface for logging functionality."""

    @abstractmethod
    def debug(self, message: str) -> None:
        """Log debug message."""
        pass

    @abstractmethod
    def info(self, message: str) -> None:
        """Log info message."""
        pass

    @abstractmethod
    def warning(self, message: str) -> None:
        """Log warning message."""
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        """Log error message."""
        pass
