"""Proof fields carried in request headers."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from pydantic import BaseModel, ConfigDict

from pow_shield.core.errors import MalformedRequest

HEADER_TIMESTAMP: Final[str] = "X-Timestamp"
HEADER_NONCE: Final[str] = "X-Nonce"
HEADER_CONTEXT: Final[str] = "X-Context"
HEADER_STAMP: Final[str] = "X-Stamp"
HEADER_HMAC: Final[str] = "X-HMAC"


def header_lookup(headers: Mapping[str, str]) -> dict[str, str]:
    """Return the headers keyed by lower-cased name.

    Empty values are dropped so that a blank header counts as missing.
    """
    return {name.lower(): value for name, value in headers.items() if value}


class ProofHeaders(BaseModel):
    """The four proof fields plus the optional trust signature."""

    model_config = ConfigDict(frozen=True)

    timestamp: str
    nonce: str
    context: str
    stamp: str | None = None
    hmac: str | None = None

    @classmethod
    def from_headers(
        cls,
        headers: Mapping[str, str],
        *,
        require_stamp: bool = True,
        detail: str = "Missing PoW headers",
    ) -> ProofHeaders:
        """Extract proof fields from request headers.

        Raises:
            MalformedRequest: If any required field is missing or blank.
        """
        lookup = header_lookup(headers)
        timestamp = lookup.get(HEADER_TIMESTAMP.lower())
        nonce = lookup.get(HEADER_NONCE.lower())
        context = lookup.get(HEADER_CONTEXT.lower())
        stamp = lookup.get(HEADER_STAMP.lower())
        if not timestamp or not nonce or not context or (require_stamp and not stamp):
            raise MalformedRequest(detail)
        return cls(
            timestamp=timestamp,
            nonce=nonce,
            context=context,
            stamp=stamp,
            hmac=lookup.get(HEADER_HMAC.lower()),
        )
