"""Chain-of-custody signatures between the edge validator and the origin.

The edge signs ``timestamp:nonce:context`` with a secret shared only with the
origin; the origin recomputes the signature to confirm that proof-of-work
validation already happened upstream.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping

from pow_shield.core.endpoints import is_protected_endpoint
from pow_shield.core.errors import ProofRejected, ShieldError
from pow_shield.core.settings import ShieldSettings
from pow_shield.schemas.decision import Decision, Pass, Proceed, Reject
from pow_shield.schemas.headers import HEADER_HMAC, ProofHeaders, header_lookup
from pow_shield.utils.hash import Hasher, constant_time_equals

logger = logging.getLogger(__name__)


def trust_payload(timestamp: str, nonce: str, context: str) -> str:
    """Return the canonical string covered by the trust signature."""
    return f"{timestamp}:{nonce}:{context}"


def sign_trust(hasher: Hasher, secret: str, timestamp: str, nonce: str, context: str) -> str:
    """Return the hex trust signature for a vetted proof."""
    return hasher.mac(trust_payload(timestamp, nonce, context), secret)


class TrustVerifier:
    """Origin guard checking the signature added by the edge validator.

    Stateless: one instance can serve any number of concurrent requests.
    """

    def __init__(self, settings: ShieldSettings, hasher: Hasher | None = None) -> None:
        self.settings = settings.require("origin")
        self._secret: str = settings.secret or ""
        if hasher is None:
            hasher = Hasher(settings.hash_algorithm, settings.hmac_algorithm)
        self._hasher = hasher

    def is_protected(self, path: str) -> bool:
        """Return True if `path` requires a trust signature."""
        return is_protected_endpoint(path, self.settings.endpoints)

    def verify(self, headers: Mapping[str, str]) -> bool:
        """Check the trust signature in `headers`.

        Returns:
            True if a valid signature is present, False if none was sent and
            the guard is not in strict mode.

        Raises:
            ProofRejected: If the signature is missing in strict mode or does
                not match.
            MalformedRequest: If a signature is present without the proof
                fields it covers.
        """
        signature = header_lookup(headers).get(HEADER_HMAC.lower())
        if not signature:
            if self.settings.strict_mode:
                raise ProofRejected("Missing HMAC signature")
            return False

        proof = ProofHeaders.from_headers(
            headers, require_stamp=False, detail="Missing required headers"
        )
        expected = sign_trust(
            self._hasher, self._secret, proof.timestamp, proof.nonce, proof.context
        )
        if not constant_time_equals(expected, signature):
            raise ProofRejected("Invalid HMAC signature")
        return True

    def decide(self, path: str, headers: Mapping[str, str]) -> Decision:
        """Return the origin's verdict for one request."""
        if not self.is_protected(path):
            return Pass()
        try:
            signed = self.verify(headers)
        except ShieldError as err:
            logger.info("Origin rejected %s: %s", path, err.detail)
            return Reject(status_code=err.status_code, detail=err.detail)
        if not signed:
            logger.debug("Admitting unsigned request to %s (strict mode off)", path)
        return Proceed()
