"""Client-side proof-of-work utilities.

This module provides the puzzle solver used by callers of protected endpoints,
plus the caller fingerprint (context) that binds a stamp to one client.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Final

from pow_shield.core.errors import ExhaustedPuzzle
from pow_shield.core.pow import DEFAULT_DIFFICULTY, compute_stamp, satisfies
from pow_shield.core.settings import ContextGenerator, ShieldSettings
from pow_shield.schemas.headers import (
    HEADER_CONTEXT,
    HEADER_NONCE,
    HEADER_STAMP,
    HEADER_TIMESTAMP,
)
from pow_shield.utils.hash import Hasher, sha256_hexdigest

logger = logging.getLogger(__name__)

ATTEMPTS_PER_RETRY: Final[int] = 100
DEFAULT_MAX_RETRIES: Final[int] = 5
UNKNOWN_USER_AGENT: Final[str] = "unknown"


def generate_context(
    user_agent: str,
    ip: str | None = None,
    method: ContextGenerator = "userAgent",
) -> str:
    """Derive the caller fingerprint bound into every stamp.

    Args:
        user_agent: Caller user-agent string.
        ip: Caller IP address, used only by ``"ip+userAgent"``.
        method: Context generation method. ``"custom"`` currently hashes the
            user agent like ``"userAgent"``.

    Returns:
        SHA-256 hex digest of the selected attributes.
    """
    if method == "ip+userAgent":
        return sha256_hexdigest(f"{ip or ''}:{user_agent}")
    return sha256_hexdigest(user_agent)


class SolverState(Enum):
    """Lifecycle of a single puzzle."""

    READY = "ready"
    SOLVING = "solving"
    SOLVED = "solved"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class PuzzleProof:
    """A solved puzzle, ready to travel in the four proof headers."""

    timestamp: str
    nonce: str
    context: str
    stamp: str
    attempts: int = 0

    def as_headers(self) -> dict[str, str]:
        """Return the proof as transport headers."""
        return {
            HEADER_TIMESTAMP: self.timestamp,
            HEADER_NONCE: self.nonce,
            HEADER_CONTEXT: self.context,
            HEADER_STAMP: self.stamp,
        }


class PuzzleSolver:
    """Brute-force solver for one endpoint/timestamp/context challenge.

    A solver instance is single use: it moves from ``READY`` through
    ``SOLVING`` to either ``SOLVED`` or ``EXHAUSTED``.
    """

    def __init__(
        self,
        endpoint: str,
        context: str,
        *,
        difficulty: int = DEFAULT_DIFFICULTY,
        max_retries: int = DEFAULT_MAX_RETRIES,
        hasher: Hasher | None = None,
        timestamp: int | None = None,
        nonce_factory: Callable[[], str] | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.context = context
        self.difficulty = difficulty
        self.max_attempts = max_retries * ATTEMPTS_PER_RETRY
        self.timestamp = str(int(time.time()) if timestamp is None else timestamp)
        self._hasher = hasher or Hasher()
        self._nonce_factory = nonce_factory or Hasher.random_token
        self.attempts = 0
        self.state = SolverState.READY
        self.proof: PuzzleProof | None = None

    def _attempt(self) -> PuzzleProof | None:
        self.attempts += 1
        nonce = self._nonce_factory()
        stamp = compute_stamp(self._hasher, self.endpoint, self.timestamp, nonce, self.context)
        if not satisfies(stamp, self.difficulty):
            return None
        self.state = SolverState.SOLVED
        self.proof = PuzzleProof(self.timestamp, nonce, self.context, stamp, self.attempts)
        logger.debug("Solved PoW for %s after %d attempts", self.endpoint, self.attempts)
        return self.proof

    def _start(self) -> None:
        if self.state is not SolverState.READY:
            raise RuntimeError(f"Solver already used (state={self.state.value})")
        self.state = SolverState.SOLVING

    def _exhaust(self) -> ExhaustedPuzzle:
        self.state = SolverState.EXHAUSTED
        logger.warning(
            "Gave up on PoW for %s at difficulty %d after %d attempts",
            self.endpoint,
            self.difficulty,
            self.attempts,
        )
        return ExhaustedPuzzle(self.attempts)

    def solve(self) -> PuzzleProof:
        """Solve the puzzle in a blocking loop.

        Raises:
            ExhaustedPuzzle: If no stamp met the difficulty within the budget.
        """
        self._start()
        while self.attempts < self.max_attempts:
            proof = self._attempt()
            if proof is not None:
                return proof
        raise self._exhaust()

    async def solve_async(self) -> PuzzleProof:
        """Solve the puzzle, yielding to the event loop every 100 attempts.

        Cancelling the awaiting task abandons the puzzle; there is nothing to
        clean up.

        Raises:
            ExhaustedPuzzle: If no stamp met the difficulty within the budget.
        """
        self._start()
        while self.attempts < self.max_attempts:
            proof = self._attempt()
            if proof is not None:
                return proof
            if self.attempts % ATTEMPTS_PER_RETRY == 0:
                await asyncio.sleep(0)
        raise self._exhaust()


def solver_from_settings(
    settings: ShieldSettings,
    endpoint: str,
    *,
    user_agent: str = UNKNOWN_USER_AGENT,
    ip: str | None = None,
    timestamp: int | None = None,
) -> PuzzleSolver:
    """Build a solver configured from shared shield settings."""
    context = generate_context(user_agent, ip, settings.context_generator)
    return PuzzleSolver(
        endpoint,
        context,
        difficulty=settings.difficulty,
        max_retries=settings.max_retries,
        hasher=Hasher(settings.hash_algorithm, settings.hmac_algorithm),
        timestamp=timestamp,
    )
