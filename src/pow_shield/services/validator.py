"""Edge validation of proof-of-work requests.

Every request to a protected path runs through the same ordered checks:

1. endpoint match (unprotected paths pass through untouched)
2. all four proof headers present
3. timestamp parses and is within the tolerance window
4. ``timestamp:nonce`` not already admitted
5. stamp equals the recomputed digest
6. stamp meets the difficulty target
7. proof is marked as used
8. caller is under its per-minute ceiling (when rate limiting is enabled)
9. the request is signed for the origin

Any failed check short-circuits into a rejection. Only steps 7 and 8 write to
shared state and both go through atomic store operations.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping

from pow_shield.core.endpoints import is_protected_endpoint
from pow_shield.core.errors import MalformedRequest, ProofRejected, RateExceeded, ShieldError
from pow_shield.core.pow import satisfies, stamp_matches
from pow_shield.core.settings import ShieldSettings
from pow_shield.schemas.decision import Decision, Pass, Proceed, Reject
from pow_shield.schemas.headers import HEADER_HMAC, ProofHeaders, header_lookup
from pow_shield.services.rate_limit import RateLimiter, build_rate_limiter
from pow_shield.services.replay import ReplayCache, build_replay_cache, replay_key
from pow_shield.services.trust import sign_trust
from pow_shield.utils.hash import Hasher

logger = logging.getLogger(__name__)

# Whole-second timestamps can sit up to one second behind the clock used for
# cache expiry.
_REPLAY_TTL_MARGIN_SECONDS = 1


class EdgeValidator:
    """Admission decisions for one edge instance.

    The replay cache and rate limiter are owned by this instance. Pass shared
    Redis-backed stores to coordinate several instances.

    Args:
        settings: Shield settings; must carry endpoints and a secret.
        replay_cache: Store of admitted proofs. Built from `settings` if omitted.
        rate_limiter: Per-caller counter. Built from `settings` if omitted.
        hasher: Digest and MAC primitives. Built from `settings` if omitted.
        clock: Wall-clock source returning seconds since the epoch.
    """

    def __init__(
        self,
        settings: ShieldSettings,
        *,
        replay_cache: ReplayCache | None = None,
        rate_limiter: RateLimiter | None = None,
        hasher: Hasher | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings.require("edge")
        self._secret: str = settings.secret or ""
        if hasher is None:
            hasher = Hasher(settings.hash_algorithm, settings.hmac_algorithm)
        self._hasher = hasher
        # Empty memory stores are falsy (they define __len__).
        self._replay_cache = (
            replay_cache if replay_cache is not None else build_replay_cache(settings)
        )
        self._rate_limiter = (
            rate_limiter if rate_limiter is not None else build_rate_limiter(settings)
        )
        self._clock = clock

    def is_protected(self, path: str) -> bool:
        """Return True if `path` requires a proof."""
        return is_protected_endpoint(path, self.settings.endpoints)

    def client_identity(self, headers: Mapping[str, str], client_ip: str | None = None) -> str:
        """Return the identity used for rate limiting.

        Prefers the address supplied by the transport. The client-IP header
        is consulted only when a trusted proxy has been configured through
        ``client_ip_header``; otherwise it is caller-controlled and ignored.
        """
        if client_ip:
            return client_ip
        header = self.settings.client_ip_header
        if not header:
            return ""
        forwarded = header_lookup(headers).get(header.lower(), "")
        return forwarded.split(",")[0].strip()

    def _check_freshness(self, timestamp: str, now: int) -> int:
        # Plain ASCII digits only: no sign, whitespace or digit separators.
        if not (timestamp.isascii() and timestamp.isdecimal()):
            raise MalformedRequest("Invalid timestamp")
        issued_at = int(timestamp)
        tolerance = self.settings.timestamp_tolerance
        if now - issued_at > tolerance:
            raise ProofRejected("Timestamp expired")
        if issued_at - now > tolerance:
            raise ProofRejected("Timestamp is in the future")
        return issued_at

    def _check_proof(self, path: str, proof: ProofHeaders) -> None:
        stamp = proof.stamp or ""
        if not stamp_matches(
            self._hasher, path, proof.timestamp, proof.nonce, proof.context, stamp
        ):
            raise ProofRejected("Invalid PoW stamp")
        if not satisfies(stamp, self.settings.difficulty):
            raise ProofRejected("Insufficient PoW difficulty")

    def _replay_ttl(self, issued_at: int, now: int) -> int:
        # Keep the key until the proof itself goes stale.
        tolerance = self.settings.timestamp_tolerance
        return max(tolerance, issued_at + tolerance - now) + _REPLAY_TTL_MARGIN_SECONDS

    def validate(
        self, path: str, headers: Mapping[str, str], client_ip: str | None = None
    ) -> dict[str, str]:
        """Run the admission checks for a protected request.

        Returns:
            Headers to add to the forwarded request.

        Raises:
            MalformedRequest: Missing or unparsable proof fields.
            ProofRejected: Stale, replayed, forged or too-easy proof.
            RateExceeded: Caller is over its per-minute ceiling.
        """
        proof = ProofHeaders.from_headers(headers)
        now = int(self._clock())
        issued_at = self._check_freshness(proof.timestamp, now)

        key = replay_key(proof.timestamp, proof.nonce)
        if self._replay_cache.seen(key):
            raise ProofRejected("Nonce already used")

        self._check_proof(path, proof)

        if not self._replay_cache.check_and_mark(key, self._replay_ttl(issued_at, now)):
            raise ProofRejected("Nonce already used")

        if self.settings.rate_limiting:
            identity = self.client_identity(headers, client_ip)
            if not self._rate_limiter.try_admit(identity):
                raise RateExceeded()

        signature = sign_trust(
            self._hasher, self._secret, proof.timestamp, proof.nonce, proof.context
        )
        return {HEADER_HMAC: signature}

    def decide(
        self, path: str, headers: Mapping[str, str], client_ip: str | None = None
    ) -> Decision:
        """Return the edge verdict for one request."""
        if not self.is_protected(path):
            return Pass()
        try:
            trust_headers = self.validate(path, headers, client_ip)
        except ShieldError as err:
            logger.info("Edge rejected %s with %d: %s", path, err.status_code, err.detail)
            return Reject(status_code=err.status_code, detail=err.detail)
        return Proceed(headers=trust_headers)
