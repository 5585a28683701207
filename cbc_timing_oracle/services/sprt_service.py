"""
Sequential Probability Ratio Test over oracle latencies.

Implements IDistinguisher: given a candidate plaintext suffix, forge IVs
that turn a correct guess into valid padding, query the oracle until the
accumulated log-likelihood ratio crosses a threshold, and report the verdict.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from cbc_timing_oracle.core.exceptions import (
    ConfigurationError,
    InvalidBlockLengthException,
    InvalidSuffixLengthException,
)
from cbc_timing_oracle.core.interfaces import (
    IDistinguisher, ILogger, IOracle, IRandomSource, SPRTResult, Verdict
)
from cbc_timing_oracle.services.random_service import NumpyRandomSource
from cbc_timing_oracle.utils.logger import Logger
from cbc_timing_oracle.utils.stats import (
    gaussian_log_likelihood_ratio,
    sequential_log_likelihood,
)


@dataclass
class SPRTConfig:
    """
    Parameters of the timing distributions and the test thresholds.

    The means would normally be learned in a calibration phase; here they
    match the oracle's simulated delays.
    """
    mean_valid: float = 0.020     # mu_r, padding OK
    mean_invalid: float = 0.002   # mu_w, padding error
    sigma: float = 0.0005
    accept_threshold: float = 5.0
    reject_threshold: float = -5.0
    max_attempts: int = 100

    def __post_init__(self):
        if self.sigma <= 0:
            raise ConfigurationError(f"sigma must be positive, got {self.sigma}")
        if self.reject_threshold >= self.accept_threshold:
            raise ConfigurationError("reject_threshold must be below accept_threshold")
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be at least 1, got {self.max_attempts}")


class SPRTDistinguisher(IDistinguisher):
    """
    Padding-validity distinguisher driven by a sequential test.

    Algorithm (per check):
    1. Capture a fresh session (iv_prev, target) for the block
    2. Forge r = (L | (R XOR u)) XOR iv_prev, with L random filler and
       R the padding pattern (|u| - 1) repeated |u| times
    3. Query the oracle with (r, target)
    4. Add the Gaussian log-odds of the latency to the running ratio
    5. Stop once the ratio leaves [reject_threshold, accept_threshold]

    Example:
        >>> distinguisher = SPRTDistinguisher(oracle, SPRTConfig())
        >>> result = distinguisher.check(bytes([0x31]), block_index=0)
        >>> result.verdict
        <Verdict.ACCEPT: 'accept'>
    """

    def __init__(
        self,
        oracle: IOracle,
        config: Optional[SPRTConfig] = None,
        random_source: Optional[IRandomSource] = None,
        logger: Optional[ILogger] = None
    ):
        self.oracle = oracle
        self.config = config or SPRTConfig()
        self.random_source = random_source or NumpyRandomSource()
        self.logger = logger or Logger()

    def forge_iv(self, candidate_suffix: bytes, iv_prev: bytes) -> bytes:
        """
        Build the attack IV for a candidate suffix.

        The decrypted block ends in |u| bytes equal to |u| - 1 exactly when
        every guessed byte matches the true plaintext.

        Args:
            candidate_suffix: Guessed trailing plaintext bytes u
            iv_prev: Previous ciphertext block of the captured session

        Returns:
            Forged IV, one block long
        """
        block_size = self.oracle.block_size
        length = len(candidate_suffix)
        if not 1 <= length <= block_size:
            raise InvalidSuffixLengthException(length, block_size)
        if len(iv_prev) != block_size:
            raise InvalidBlockLengthException("iv_prev", block_size, len(iv_prev))

        pad_byte = length - 1
        offset = block_size - length
        filler = self.random_source.random_bytes(offset)
        tail = bytes(
            (pad_byte ^ guess) ^ iv_prev[offset + k]
            for k, guess in enumerate(candidate_suffix)
        )
        return filler + tail

    def log_likelihood_ratio(self, latencies: Iterable[float]) -> float:
        """Log-likelihood ratio of a fixed set of latency samples."""
        return sequential_log_likelihood(
            latencies,
            self.config.mean_valid,
            self.config.mean_invalid,
            self.config.sigma
        )

    def check(self, candidate_suffix: bytes, block_index: int) -> SPRTResult:
        """
        Run the sequential test for one candidate suffix.

        Args:
            candidate_suffix: Guessed trailing plaintext bytes (1..block size)
            block_index: Block under attack

        Returns:
            SPRTResult with ACCEPT, REJECT or UNDECIDED once the attempt
            budget is exhausted

        Raises:
            InvalidSuffixLengthException: If the suffix length is out of range
            BlockIndexOutOfRangeException: If the block index is invalid
        """
        candidate_suffix = bytes(candidate_suffix)
        length = len(candidate_suffix)
        if not 1 <= length <= self.oracle.block_size:
            raise InvalidSuffixLengthException(length, self.oracle.block_size)

        cfg = self.config
        log_likelihood_ratio = 0.0
        latencies: List[float] = []

        for _ in range(cfg.max_attempts):
            capture = self.oracle.capture_session(block_index)
            forged_iv = self.forge_iv(candidate_suffix, capture.iv_prev)

            latency = self.oracle.query(forged_iv, capture.target)
            latencies.append(latency)

            log_likelihood_ratio += gaussian_log_likelihood_ratio(
                latency, cfg.mean_valid, cfg.mean_invalid, cfg.sigma
            )

            if log_likelihood_ratio > cfg.accept_threshold:
                return SPRTResult(Verdict.ACCEPT, log_likelihood_ratio, tuple(latencies))
            if log_likelihood_ratio < cfg.reject_threshold:
                return SPRTResult(Verdict.REJECT, log_likelihood_ratio, tuple(latencies))

        self.logger.warning(
            f"SPRT undecided for suffix {candidate_suffix.hex()} after "
            f"{cfg.max_attempts} attempts (llr={log_likelihood_ratio:.3f})"
        )
        return SPRTResult(Verdict.UNDECIDED, log_likelihood_ratio, tuple(latencies))
