"""
Unit tests for the timing oracle.

Run with: pytest tests/test_oracle_service.py -v
"""

import pytest

from cbc_timing_oracle.core.exceptions import (
    BlockIndexOutOfRangeException,
    ConfigurationError,
    InvalidBlockLengthException,
    PreconditionViolationException,
)
from cbc_timing_oracle.services.oracle_service import OracleConfig, TimingOracle, new_oracle
from cbc_timing_oracle.utils.padding import xor_bytes


@pytest.fixture
def oracle(clock, fixed_random, logger):
    return new_oracle("PASSWRD1", clock=clock, random_source=fixed_random, logger=logger)


def iv_for_plaintext(oracle, plaintext: bytes, ciphertext: bytes) -> bytes:
    """IV that makes `ciphertext` decrypt to `plaintext` under the oracle's key."""
    return xor_bytes(xor_bytes(plaintext, oracle.key), ciphertext)


class TestConstruction:
    """Test oracle construction and its invariants."""

    def test_new_oracle_pads_full_block(self, oracle):
        assert oracle.secret_message == b"PASSWRD1" + bytes([7]) * 8
        assert oracle.num_blocks == 2
        assert oracle.block_size == 8

    def test_new_oracle_partial_block(self, clock, logger):
        oracle = new_oracle("hello", clock=clock, logger=logger)

        assert oracle.secret_message == b"hello\x02\x02\x02"
        assert len(oracle.secret_message) % oracle.block_size == 0

    def test_default_key(self, oracle):
        assert oracle.key == bytes([0xAA]) * 8

    def test_rejects_unaligned_message(self, logger):
        with pytest.raises(ConfigurationError):
            TimingOracle(b"abc", logger=logger)

    def test_rejects_unpadded_message(self, logger):
        with pytest.raises(ConfigurationError):
            TimingOracle(b"PASSWRD1", logger=logger)

    def test_rejects_wrong_key_length(self, logger):
        with pytest.raises(ConfigurationError):
            TimingOracle(bytes([7]) * 8, key=b"short", logger=logger)

    def test_config_validation(self):
        with pytest.raises(ConfigurationError):
            OracleConfig(block_size=0)
        with pytest.raises(ConfigurationError):
            OracleConfig(jitter=-0.1)

    def test_custom_block_size(self, clock, logger):
        oracle = new_oracle("x" * 16, config=OracleConfig(block_size=16),
                            clock=clock, logger=logger)

        assert oracle.num_blocks == 2


class TestCaptureSession:
    """Test simulated session capture."""

    def test_capture_encrypts_block(self, oracle):
        capture = oracle.capture_session(0)

        assert capture.iv_prev == bytes(8)
        assert capture.target == xor_bytes(b"PASSWRD1", oracle.key)

    def test_captured_block_has_valid_padding_only_for_last_block(self, oracle):
        first = oracle.capture_session(0)
        last = oracle.capture_session(1)

        assert oracle.is_padding_valid(first.iv_prev, first.target) is False
        assert oracle.is_padding_valid(last.iv_prev, last.target) is True

    def test_capture_is_recomputed_identically(self, oracle):
        assert oracle.capture_session(1) == oracle.capture_session(1)

    @pytest.mark.parametrize("block_index", [-1, 2, 100])
    def test_capture_out_of_range(self, oracle, block_index):
        with pytest.raises(BlockIndexOutOfRangeException) as exc_info:
            oracle.capture_session(block_index)

        assert exc_info.value.num_blocks == 2


class TestPaddingCheck:
    """Padding validity as seen through the oracle."""

    @pytest.mark.parametrize("l", range(8))
    def test_valid_padding_pattern(self, oracle, l):
        plaintext = bytes([0xEE]) * (7 - l) + bytes([l]) * (l + 1)
        ciphertext = bytes(range(8))

        iv = iv_for_plaintext(oracle, plaintext, ciphertext)

        assert oracle.is_padding_valid(iv, ciphertext) is True

    @pytest.mark.parametrize("l", range(1, 8))
    def test_broken_padding_pattern(self, oracle, l):
        plaintext = bytearray(bytes([0xEE]) * (7 - l) + bytes([l]) * (l + 1))
        plaintext[7 - l] ^= 0x01
        ciphertext = bytes(8)

        iv = iv_for_plaintext(oracle, bytes(plaintext), ciphertext)

        assert oracle.is_padding_valid(iv, ciphertext) is False

    @pytest.mark.parametrize("l", [8, 9, 0x41, 0xFF])
    def test_length_beyond_block_always_invalid(self, oracle, l):
        plaintext = bytes([l]) * 8
        ciphertext = bytes(8)

        iv = iv_for_plaintext(oracle, plaintext, ciphertext)

        assert oracle.is_padding_valid(iv, ciphertext) is False


class TestQuery:
    """Timing side channel of the oracle."""

    def test_valid_padding_is_slow(self, oracle):
        capture = oracle.capture_session(1)

        latency = oracle.query(capture.iv_prev, capture.target)

        # 20ms MAC check + half of the 1ms jitter
        assert latency == pytest.approx(0.0205)

    def test_invalid_padding_is_fast(self, oracle):
        capture = oracle.capture_session(0)

        latency = oracle.query(capture.iv_prev, capture.target)

        assert latency == pytest.approx(0.0025)

    def test_query_sleeps_on_injected_clock(self, oracle, clock):
        capture = oracle.capture_session(0)
        oracle.query(capture.iv_prev, capture.target)
        oracle.query(capture.iv_prev, capture.target)

        assert clock.total_slept == pytest.approx(0.005)

    def test_jitter_is_bounded(self, clock, logger):
        from cbc_timing_oracle.services.random_service import NumpyRandomSource

        oracle = new_oracle("PASSWRD1", clock=clock,
                            random_source=NumpyRandomSource(11), logger=logger)
        capture = oracle.capture_session(0)
        latencies = [oracle.query(capture.iv_prev, capture.target) for _ in range(50)]

        assert all(0.002 - 1e-9 <= t < 0.003 + 1e-9 for t in latencies)

    @pytest.mark.parametrize("iv, ciphertext", [
        (bytes(7), bytes(8)),
        (bytes(8), bytes(9)),
        (b"", b""),
    ])
    def test_rejects_wrong_lengths(self, oracle, iv, ciphertext):
        with pytest.raises(InvalidBlockLengthException):
            oracle.query(iv, ciphertext)

    def test_precondition_errors_are_value_errors(self, oracle):
        with pytest.raises(ValueError):
            oracle.query(bytes(3), bytes(8))
        assert issubclass(InvalidBlockLengthException, PreconditionViolationException)
