"""
Block padding helpers.

Padding follows the length-minus-one convention: a run of n padding bytes,
each with value n - 1, so a single padding byte is 0x00 and a full 8-byte
pad block is eight 0x07 bytes.
"""


def xor_bytes(a: bytes, b: bytes) -> bytes:
    """Return the byte-wise XOR of two equal-length byte sequences."""
    if len(a) != len(b):
        raise ValueError(f"Inputs must be the same length ({len(a)} != {len(b)})")
    return bytes(x ^ y for x, y in zip(a, b))


def pad(data: bytes, block_size: int) -> bytes:
    """
    Pad data to a multiple of block_size.

    A full block of padding is appended when data already fills whole blocks.

    Example:
        >>> pad(b"PASSWRD1", 8)
        b'PASSWRD1\\x07\\x07\\x07\\x07\\x07\\x07\\x07\\x07'
    """
    if not 1 <= block_size <= 256:
        raise ValueError(f"Block size must be in 1..256, got {block_size}")
    pad_length = block_size - (len(data) % block_size)
    return data + bytes([pad_length - 1]) * pad_length


def has_valid_padding(block: bytes, block_size: int) -> bool:
    """
    Check the trailing padding run of a decrypted block.

    The last byte l announces a padding length of l + 1; padding is valid
    when that length fits in the block and the final l + 1 bytes all equal l.
    """
    if len(block) != block_size:
        return False
    last = block[-1]
    pad_length = last + 1
    if pad_length > block_size:
        return False
    return all(b == last for b in block[-pad_length:])


def unpad(data: bytes, block_size: int) -> bytes:
    """
    Strip length-minus-one padding.

    Raises:
        ValueError: If data is not block aligned or its padding is malformed
    """
    if not data or len(data) % block_size:
        raise ValueError(
            f"Padded data must be a non-empty multiple of {block_size} bytes"
        )
    if not has_valid_padding(data[-block_size:], block_size):
        raise ValueError("Invalid padding")
    return data[:-(data[-1] + 1)]
