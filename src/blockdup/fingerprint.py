"""Block-level content fingerprints.

A fingerprint is the ordered sequence of CRC-32 checksums of a file's fixed-size
blocks. The last block is right-padded with zero bytes to the full block size
before it is hashed, so every checksum covers exactly ``block_size`` bytes.

Fingerprints are detection signals, not proofs of byte identity. Two files that
differ only by trailing zero bytes inside their final block produce the same
fingerprint.
"""
import pathlib
import struct
import zlib
from typing import NamedTuple

Fingerprint = tuple[int, ...]

DEFAULT_BLOCK_SIZE = 4096

_HASH_WIDTH = 4


def block_count(size: int, block_size: int) -> int:
    """Number of blocks (and therefore hashes) for a file of ``size`` bytes."""
    if block_size < 1:
        raise ValueError(f"Block size must be positive: {block_size}")
    return -(-size // block_size)


def compute_fingerprint(path: pathlib.Path, block_size: int = DEFAULT_BLOCK_SIZE) -> Fingerprint:
    """Read ``path`` block by block and return its fingerprint.

    Raises:
        ValueError: If block_size is smaller than 1
        OSError: If the file cannot be opened or read
    """
    if block_size < 1:
        raise ValueError(f"Block size must be positive: {block_size}")

    hashes = []
    with open(path, "rb") as f:
        while chunk := f.read(block_size):
            if len(chunk) < block_size:
                chunk = chunk.ljust(block_size, b"\0")
            hashes.append(zlib.crc32(chunk) & 0xFFFFFFFF)
    return tuple(hashes)


def fingerprints_equal(a: Fingerprint, b: Fingerprint) -> bool:
    """Two fingerprints are equal iff they have the same length and every hash matches."""
    if len(a) != len(b):
        return False
    for x, y in zip(a, b):
        if x != y:
            return False
    return True


def fingerprint_key(fingerprint: Fingerprint) -> bytes:
    """Literal byte form of a fingerprint: each hash as little-endian uint32, in order."""
    return struct.pack(f"<{len(fingerprint)}I", *fingerprint)


def fingerprint_from_key(key: bytes) -> Fingerprint:
    if len(key) % _HASH_WIDTH:
        raise ValueError(f"Fingerprint key length is not a multiple of {_HASH_WIDTH}: {len(key)}")
    return struct.unpack(f"<{len(key) // _HASH_WIDTH}I", key)


class Fingerprinted(NamedTuple):
    """Successful fingerprint of one file."""
    path: pathlib.Path
    fingerprint: Fingerprint


class FingerprintFailure(NamedTuple):
    """A file that could not be fingerprinted, with the error that stopped it."""
    path: pathlib.Path
    error: OSError


FingerprintResult = Fingerprinted | FingerprintFailure


def fingerprint_file(path: pathlib.Path, block_size: int = DEFAULT_BLOCK_SIZE) -> FingerprintResult:
    """Fingerprint ``path`` and report I/O failures as a value instead of raising."""
    try:
        return Fingerprinted(path, compute_fingerprint(path, block_size))
    except OSError as e:
        return FingerprintFailure(path, e)
