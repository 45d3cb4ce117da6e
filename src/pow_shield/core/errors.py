"""Error taxonomy for PoW Shield.

Request-time failures carry the HTTP status they map to so that every hop can
turn them into a response without a lookup table. Configuration and solver
failures are raised to the calling code and never converted into responses.
"""
from __future__ import annotations

HTTP_BAD_REQUEST = 400
HTTP_FORBIDDEN = 403
HTTP_TOO_MANY_REQUESTS = 429


class ShieldError(Exception):
    """Base exception for a rejected request.

    Attributes:
        status_code: HTTP status code surfaced to the caller.
        detail: Short human-readable reason used as the response body.
    """

    status_code: int = HTTP_FORBIDDEN
    default_detail: str = "Request rejected"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class MalformedRequest(ShieldError):
    """Raised when required proof fields are missing or unparsable."""

    status_code = HTTP_BAD_REQUEST
    default_detail = "Missing PoW headers"


class ProofRejected(ShieldError):
    """Raised when a proof is stale, replayed, forged or too easy."""

    status_code = HTTP_FORBIDDEN
    default_detail = "Invalid PoW stamp"


class RateExceeded(ShieldError):
    """Raised when a caller exceeds its per-minute admission ceiling."""

    status_code = HTTP_TOO_MANY_REQUESTS
    default_detail = "Rate limit exceeded"


class ConfigurationError(RuntimeError):
    """Raised at startup when the shield cannot operate with its settings.

    This is fatal and never retried: a missing secret or an empty endpoint
    list must be fixed by the operator.
    """


class ExhaustedPuzzle(RuntimeError):
    """Raised by the solver when no valid stamp was found within its budget."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Failed to generate valid PoW after {attempts} attempts")
