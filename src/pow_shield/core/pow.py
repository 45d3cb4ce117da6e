"""Proof-of-Work helpers.

This module defines the puzzle every caller solves before a protected request
is admitted: a stamp is the digest of ``endpoint:timestamp:nonce:context`` and
is valid when its leading bits are zero up to the configured difficulty.
"""
from __future__ import annotations

from typing import Final

from pow_shield.utils.hash import Hasher, constant_time_equals

BITS_PER_NIBBLE: Final[int] = 4
HEX_DIGITS: Final[str] = "0123456789abcdefABCDEF"
DEFAULT_DIFFICULTY: Final[int] = 4


def count_leading_zero_bits(hex_digest: str) -> int:
    """Count the leading zero bits of a hex-encoded digest.

    Args:
        hex_digest: Digest as a string of hex characters.

    Returns:
        Number of leading zero bits. Counting stops at the first character
        that is not a hex digit.
    """
    zeros = 0
    for char in hex_digest:
        if char not in HEX_DIGITS:
            break
        nibble = int(char, 16)
        if nibble == 0:
            zeros += BITS_PER_NIBBLE
            continue
        # Count bits in the first non-zero nibble
        for bit in range(BITS_PER_NIBBLE - 1, -1, -1):
            if (nibble >> bit) & 1 == 0:
                zeros += 1
            else:
                break
        break
    return zeros


def satisfies(hex_digest: str, difficulty_bits: int) -> bool:
    """Return True if the first `difficulty_bits` bits of the digest are zero.

    A difficulty of zero is always satisfied, even by an empty digest; a
    difficulty wider than the digest never is.
    """
    if difficulty_bits <= 0:
        return True
    if difficulty_bits > BITS_PER_NIBBLE * len(hex_digest):
        return False
    return count_leading_zero_bits(hex_digest) >= difficulty_bits


def stamp_payload(endpoint: str, timestamp: str | int, nonce: str, context: str) -> str:
    """Return the canonical string a stamp is computed over."""
    return f"{endpoint}:{timestamp}:{nonce}:{context}"


def compute_stamp(
    hasher: Hasher, endpoint: str, timestamp: str | int, nonce: str, context: str
) -> str:
    """Return the hex stamp for one puzzle attempt."""
    return hasher.digest(stamp_payload(endpoint, timestamp, nonce, context))


def stamp_matches(
    hasher: Hasher, endpoint: str, timestamp: str, nonce: str, context: str, stamp: str
) -> bool:
    """Return True if `stamp` is exactly the digest of the supplied fields."""
    expected = compute_stamp(hasher, endpoint, timestamp, nonce, context)
    return constant_time_equals(expected, stamp)


def validate_solution(
    hasher: Hasher,
    endpoint: str,
    timestamp: str,
    nonce: str,
    context: str,
    stamp: str,
    difficulty_bits: int,
) -> bool:
    """Validate a proposed proof-of-work solution.

    Args:
        hasher: Digest primitive matching the one the solver used.
        endpoint: Request path the proof was computed for.
        timestamp: Timestamp string exactly as transmitted.
        nonce: Solver-chosen nonce.
        context: Caller fingerprint.
        stamp: Hex digest supplied by the caller.
        difficulty_bits: Number of leading zero bits required.

    Returns:
        True if the stamp is the digest of the fields and meets the target.
    """
    return stamp_matches(hasher, endpoint, timestamp, nonce, context, stamp) and satisfies(
        stamp, difficulty_bits
    )
