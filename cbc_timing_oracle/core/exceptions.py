"""
Custom exceptions for the padding oracle attack simulator.

Provides specific, meaningful exceptions for the different failure modes
of the oracle and the recovery loops.
"""

from typing import List


class TimingAttackException(Exception):
    """Base exception for all timing attack errors."""
    pass


class PreconditionViolationException(TimingAttackException, ValueError):
    """Raised when an operation receives malformed input."""
    pass


class InvalidBlockLengthException(PreconditionViolationException):
    """Raised when an IV or ciphertext block does not have the block size."""

    def __init__(self, name: str, expected: int, actual: int):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{name} must be {expected} bytes, got {actual}"
        )


class BlockIndexOutOfRangeException(PreconditionViolationException):
    """Raised when a block index falls outside the secret message."""

    def __init__(self, block_index: int, num_blocks: int):
        self.block_index = block_index
        self.num_blocks = num_blocks
        super().__init__(
            f"Block index {block_index} out of range "
            f"(message has {num_blocks} blocks)"
        )


class InvalidSuffixLengthException(PreconditionViolationException):
    """Raised when a candidate suffix is empty or longer than a block."""

    def __init__(self, length: int, block_size: int):
        self.length = length
        self.block_size = block_size
        super().__init__(
            f"Candidate suffix length {length} not in 1..{block_size}"
        )


class AttackFailedException(TimingAttackException):
    """Raised when the attack fails to recover a plaintext byte."""

    def __init__(self, position: int, reason: str):
        self.position = position
        self.reason = reason
        super().__init__(
            f"Attack failed at position {position}: {reason}"
        )


class ByteRecoveryFailedException(AttackFailedException):
    """Raised when no candidate byte value is accepted by the distinguisher."""

    def __init__(self, block_index: int, position: int, undecided: List[int]):
        self.block_index = block_index
        self.undecided = list(undecided)
        reason = f"no candidate accepted in block {block_index}"
        if self.undecided:
            reason += f" ({len(self.undecided)} undecided)"
        super().__init__(position, reason)


class SPRTUndecidedException(AttackFailedException):
    """Raised when the SPRT runs out of attempts and the policy forbids skipping."""

    def __init__(self, block_index: int, position: int, candidate: int, attempts: int):
        self.block_index = block_index
        self.candidate = candidate
        self.attempts = attempts
        super().__init__(
            position,
            f"SPRT undecided for candidate 0x{candidate:02x} in block "
            f"{block_index} after {attempts} attempts"
        )


class ConfigurationError(TimingAttackException):
    """Raised when configuration is invalid or missing."""
    pass
