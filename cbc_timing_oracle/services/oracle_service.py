"""
Mock vulnerable CBC decryption oracle with a timing side channel.

The oracle decrypts with a per-byte XOR stand-in for a block cipher, undoes
CBC chaining with the supplied IV, checks the padding and then spends more
time on valid padding (the MAC check proceeds) than on invalid padding
(early abort). Latency is the only thing it reveals.
"""

from dataclasses import dataclass
from typing import Optional

from cbc_timing_oracle.core.exceptions import (
    BlockIndexOutOfRangeException,
    ConfigurationError,
    InvalidBlockLengthException,
)
from cbc_timing_oracle.core.interfaces import (
    IClock, ILogger, IOracle, IRandomSource, SessionCapture
)
from cbc_timing_oracle.services.clock_service import SystemClock
from cbc_timing_oracle.services.random_service import NumpyRandomSource
from cbc_timing_oracle.utils.logger import Logger
from cbc_timing_oracle.utils.padding import has_valid_padding, pad, xor_bytes


@dataclass
class OracleConfig:
    """
    Simulation parameters for the oracle.

    Delays are in seconds. Jitter is drawn uniformly from [0, jitter).
    """
    block_size: int = 8
    valid_delay: float = 0.020    # MAC check proceeds
    invalid_delay: float = 0.002  # Padding error, fast fail
    jitter: float = 0.001         # Network noise
    key_byte: int = 0xAA

    def __post_init__(self):
        if not 1 <= self.block_size <= 256:
            raise ConfigurationError(f"block_size must be in 1..256, got {self.block_size}")
        if self.valid_delay < 0 or self.invalid_delay < 0 or self.jitter < 0:
            raise ConfigurationError("Delays and jitter must be non-negative")
        if not 0 <= self.key_byte <= 0xFF:
            raise ConfigurationError(f"key_byte must be a byte value, got {self.key_byte}")


class TimingOracle(IOracle):
    """
    Padding oracle that leaks validity through response time.

    Example:
        >>> oracle = new_oracle("PASSWRD1")
        >>> capture = oracle.capture_session(0)
        >>> latency = oracle.query(capture.iv_prev, capture.target)
    """

    def __init__(
        self,
        secret_message: bytes,
        key: Optional[bytes] = None,
        config: Optional[OracleConfig] = None,
        clock: Optional[IClock] = None,
        random_source: Optional[IRandomSource] = None,
        logger: Optional[ILogger] = None
    ):
        """
        Initialize the oracle.

        Args:
            secret_message: Already padded secret, a multiple of the block size
            key: Block-sized key (defaults to key_byte repeated)
            config: Oracle simulation parameters
            clock: Delay and measurement source
            random_source: Jitter source
            logger: Logger instance

        Raises:
            ConfigurationError: If the message or key do not fit the block size
        """
        self.config = config or OracleConfig()
        block_size = self.config.block_size

        if not secret_message or len(secret_message) % block_size:
            raise ConfigurationError(
                f"Secret message length {len(secret_message)} is not a "
                f"non-zero multiple of {block_size}"
            )
        if not has_valid_padding(secret_message[-block_size:], block_size):
            raise ConfigurationError("Secret message is not correctly padded")

        if key is None:
            key = bytes([self.config.key_byte]) * block_size
        if len(key) != block_size:
            raise ConfigurationError(f"Key must be {block_size} bytes, got {len(key)}")

        self._secret_message = bytes(secret_message)
        self._key = bytes(key)
        self._reference_iv = bytes(block_size)
        self._clock = clock or SystemClock()
        self.random_source = random_source or NumpyRandomSource()
        self.logger = logger or Logger()

        self.logger.debug(
            f"Oracle ready: {self.num_blocks} blocks of {block_size} bytes"
        )

    @property
    def block_size(self) -> int:
        return self.config.block_size

    @property
    def num_blocks(self) -> int:
        return len(self._secret_message) // self.block_size

    @property
    def clock(self) -> IClock:
        return self._clock

    @property
    def key(self) -> bytes:
        return self._key

    @property
    def secret_message(self) -> bytes:
        return self._secret_message

    def _check_block(self, name: str, value: bytes) -> None:
        if len(value) != self.block_size:
            raise InvalidBlockLengthException(name, self.block_size, len(value))

    def _check_block_index(self, block_index: int) -> None:
        if not 0 <= block_index < self.num_blocks:
            raise BlockIndexOutOfRangeException(block_index, self.num_blocks)

    def _unchain(self, iv: bytes, ciphertext: bytes) -> bytes:
        decrypted = xor_bytes(ciphertext, self._key)
        return xor_bytes(decrypted, iv)

    def is_padding_valid(self, iv: bytes, ciphertext: bytes) -> bool:
        """
        Decrypt and check padding without the timing side effect.

        Raises:
            InvalidBlockLengthException: If iv or ciphertext is not one block
        """
        self._check_block("iv", iv)
        self._check_block("ciphertext", ciphertext)
        return has_valid_padding(self._unchain(iv, ciphertext), self.block_size)

    def capture_session(self, block_index: int) -> SessionCapture:
        """
        Simulate capturing a legitimate ciphertext block off the wire.

        The block is re-encrypted on every call as
        y = P XOR iv_prev XOR key against the fixed reference IV.

        Args:
            block_index: Index of the plaintext block to capture

        Returns:
            SessionCapture(iv_prev, target)

        Raises:
            BlockIndexOutOfRangeException: If block_index is not in the message
        """
        self._check_block_index(block_index)

        start = block_index * self.block_size
        plaintext = self._secret_message[start:start + self.block_size]
        iv_prev = self._reference_iv
        target = xor_bytes(xor_bytes(plaintext, iv_prev), self._key)

        return SessionCapture(iv_prev=iv_prev, target=target)

    def query(self, iv: bytes, ciphertext: bytes) -> float:
        """
        Decrypt, check padding and respond after a validity-dependent delay.

        Args:
            iv: Forged IV, one block long
            ciphertext: Target ciphertext block, one block long

        Returns:
            Elapsed time measured on the oracle's clock (seconds)

        Raises:
            InvalidBlockLengthException: If iv or ciphertext is not one block
        """
        start = self.clock.now()

        padding_valid = self.is_padding_valid(iv, ciphertext)

        base_delay = self.config.valid_delay if padding_valid else self.config.invalid_delay
        noise = self.random_source.uniform(0.0, self.config.jitter)
        self.clock.sleep(base_delay + noise)

        elapsed = self.clock.now() - start

        self.logger.debug(
            f"Query iv={iv.hex()}: valid={padding_valid}, time={elapsed:.6f}s"
        )

        return elapsed


def new_oracle(
    secret_plaintext: str,
    config: Optional[OracleConfig] = None,
    clock: Optional[IClock] = None,
    random_source: Optional[IRandomSource] = None,
    logger: Optional[ILogger] = None
) -> TimingOracle:
    """
    Build an oracle holding the padded UTF-8 encoding of a secret.

    Example:
        >>> oracle = new_oracle("PASSWRD1")
        >>> oracle.num_blocks
        2
    """
    config = config or OracleConfig()
    message = pad(secret_plaintext.encode("utf-8"), config.block_size)
    return TimingOracle(
        message,
        config=config,
        clock=clock,
        random_source=random_source,
        logger=logger
    )
