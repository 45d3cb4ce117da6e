# src/pow_shield/utils/hash.py
"""Hashing helpers: one-way digests, keyed MACs and random tokens."""

from __future__ import annotations

import hashlib
import hmac
import secrets
from collections.abc import Callable
from typing import Final

from blake3 import blake3

from pow_shield.core.errors import ConfigurationError

NONCE_SIZE_BYTES: Final[int] = 16

_DIGESTS: Final[dict[str, Callable[[bytes], str]]] = {
    "sha256": lambda data: hashlib.sha256(data).hexdigest(),
    "sha512": lambda data: hashlib.sha512(data).hexdigest(),
    "blake3": lambda data: blake3(data).hexdigest(),
}
# Stamp width in bits; a difficulty above it can never be met.
DIGEST_BITS: Final[dict[str, int]] = {
    "sha256": 256,
    "sha512": 512,
    "blake3": 256,
}
_MACS: Final[dict[str, str]] = {
    "sha256": "sha256",
    "sha512": "sha512",
}


def _to_bytes(data: bytes | str) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else data


class Hasher:
    """Digest and MAC primitives bound to a pair of algorithm choices.

    Args:
        digest_algorithm: ``"sha256"``, ``"sha512"`` or ``"blake3"``.
        mac_algorithm: ``"sha256"`` or ``"sha512"``.

    Raises:
        ConfigurationError: If either algorithm is not supported.
    """

    def __init__(self, digest_algorithm: str = "sha256", mac_algorithm: str = "sha256") -> None:
        if digest_algorithm not in _DIGESTS:
            raise ConfigurationError(f"Unsupported hash algorithm: {digest_algorithm}")
        if mac_algorithm not in _MACS:
            raise ConfigurationError(f"Unsupported HMAC algorithm: {mac_algorithm}")
        self.digest_algorithm = digest_algorithm
        self.mac_algorithm = mac_algorithm
        self._digest = _DIGESTS[digest_algorithm]

    def digest(self, data: bytes | str) -> str:
        """Return the hexadecimal digest of `data`."""
        return self._digest(_to_bytes(data))

    def mac(self, data: bytes | str, key: bytes | str) -> str:
        """Return the hexadecimal HMAC of `data` under `key`."""
        return hmac.new(_to_bytes(key), _to_bytes(data), _MACS[self.mac_algorithm]).hexdigest()

    @staticmethod
    def random_token() -> str:
        """Return a cryptographically random hex token (32 characters)."""
        return secrets.token_hex(NONCE_SIZE_BYTES)


def sha256_hexdigest(data: bytes | str) -> str:
    """Return the SHA-256 hex digest used for caller fingerprints."""
    return hashlib.sha256(_to_bytes(data)).hexdigest()


def constant_time_equals(left: str, right: str) -> bool:
    """Compare two hex strings without leaking the mismatch position."""
    return secrets.compare_digest(left.encode("utf-8"), right.encode("utf-8"))
