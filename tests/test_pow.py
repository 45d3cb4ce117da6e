# tests/test_pow.py
"""Tests for the difficulty check and stamp helpers."""

import pytest

from pow_shield.core import pow as core_pow
from pow_shield.utils.hash import Hasher

DIGEST = "00f" + "a" * 61
THREE_NIBBLES = "000f" + "a" * 60


class TestSatisfies:
    """Leading-zero-bit difficulty check."""

    @pytest.mark.parametrize("digest", ["", "f", DIGEST, "not-hex"])
    def test_zero_difficulty_always_passes(self, digest: str) -> None:
        assert core_pow.satisfies(digest, 0)

    @pytest.mark.parametrize("digest", ["", "0", "00", "0000"])
    def test_difficulty_wider_than_digest_fails(self, digest: str) -> None:
        assert not core_pow.satisfies(digest, 4 * len(digest) + 1)

    def test_two_zero_nibbles(self) -> None:
        assert core_pow.satisfies(DIGEST, 8)
        assert not core_pow.satisfies(DIGEST, 9)

    def test_three_zero_nibbles(self) -> None:
        assert core_pow.satisfies(THREE_NIBBLES, 12)
        assert not core_pow.satisfies(THREE_NIBBLES, 13)

    @pytest.mark.parametrize(
        ("digest", "bits", "expected"),
        [
            ("1f", 3, True),   # 0001
            ("1f", 4, False),
            ("2f", 2, True),   # 0010
            ("2f", 3, False),
            ("7f", 1, True),   # 0111
            ("8f", 1, False),  # 1000
            ("0", 4, True),
        ],
    )
    def test_counts_bits_not_characters(self, digest: str, bits: int, expected: bool) -> None:
        assert core_pow.satisfies(digest, bits) is expected

    def test_uppercase_hex_is_accepted(self) -> None:
        assert core_pow.satisfies("0F", 4)

    def test_non_hex_never_satisfies_positive_target(self) -> None:
        assert not core_pow.satisfies("zz", 1)


def test_count_leading_zero_bits() -> None:
    assert core_pow.count_leading_zero_bits("") == 0
    assert core_pow.count_leading_zero_bits("0000") == 16
    assert core_pow.count_leading_zero_bits("01") == 7
    assert core_pow.count_leading_zero_bits("ff") == 0


def test_stamp_payload_layout() -> None:
    assert core_pow.stamp_payload("/api/data", 17, "n", "c") == "/api/data:17:n:c"


def test_compute_stamp_is_digest_of_payload() -> None:
    hasher = Hasher()
    stamp = core_pow.compute_stamp(hasher, "/api/data", "17", "n", "c")
    assert stamp == hasher.digest("/api/data:17:n:c")


def test_validate_solution_requires_match_and_difficulty() -> None:
    hasher = Hasher()
    stamp = core_pow.compute_stamp(hasher, "/api/data", "17", "n", "c")
    bits = core_pow.count_leading_zero_bits(stamp)

    assert core_pow.validate_solution(hasher, "/api/data", "17", "n", "c", stamp, bits)
    assert not core_pow.validate_solution(hasher, "/api/data", "17", "n", "c", stamp, bits + 1)
    assert not core_pow.validate_solution(hasher, "/api/other", "17", "n", "c", stamp, 0)
