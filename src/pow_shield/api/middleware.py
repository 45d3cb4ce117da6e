"""FastAPI/Starlette bindings for the edge validator and origin guard.

These are thin translations of a ``Decision`` into the framework's request and
response objects; all admission logic lives in the services.
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp

from pow_shield.schemas.decision import Decision, Proceed, Reject
from pow_shield.services.trust import TrustVerifier
from pow_shield.services.validator import EdgeValidator

CallNext = Callable[[Request], Awaitable[Response]]


def request_client_ip(request: Request, validator: EdgeValidator) -> str | None:
    """Return the caller address used for rate limiting.

    The socket peer is used unless `client_ip_header` names a header set by a
    trusted proxy, in which case the peer is that proxy and the header wins.
    """
    if validator.settings.client_ip_header:
        forwarded = validator.client_identity(request.headers)
        if forwarded:
            return forwarded
    return request.client.host if request.client else None


def with_headers(request: Request, extra: dict[str, str]) -> None:
    """Replace `extra` headers on the ASGI scope so downstream apps see them."""
    names = {name.lower().encode("latin-1") for name in extra}
    raw = [(key, value) for key, value in request.scope["headers"] if key not in names]
    raw.extend(
        (name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in extra.items()
    )
    request.scope["headers"] = raw


def reject_response(decision: Reject) -> Response:
    return PlainTextResponse(decision.detail, status_code=decision.status_code)


class EdgeShieldMiddleware(BaseHTTPMiddleware):
    """Validate proofs and sign vetted requests before the wrapped app sees them."""

    def __init__(self, app: ASGIApp, validator: EdgeValidator) -> None:
        super().__init__(app)
        self.validator = validator

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        decision: Decision = await asyncio.to_thread(
            self.validator.decide,
            request.url.path,
            request.headers,
            client_ip=request_client_ip(request, self.validator),
        )
        if isinstance(decision, Reject):
            return reject_response(decision)
        if isinstance(decision, Proceed):
            with_headers(request, decision.headers)
        return await call_next(request)


class OriginGuardMiddleware(BaseHTTPMiddleware):
    """Reject protected requests that lack a valid edge signature."""

    def __init__(self, app: ASGIApp, verifier: TrustVerifier) -> None:
        super().__init__(app)
        self.verifier = verifier

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        decision = await asyncio.to_thread(
            self.verifier.decide, request.url.path, request.headers
        )
        if isinstance(decision, Reject):
            return reject_response(decision)
        return await call_next(request)


def require_trusted_request(verifier: TrustVerifier) -> Callable[[Request], None]:
    """Build a FastAPI dependency enforcing the trust signature on one route.

    Example:
        guard = require_trusted_request(TrustVerifier(settings))

        @app.get("/api/data", dependencies=[Depends(guard)])
        async def data() -> dict[str, str]: ...
    """

    def _dependency(request: Request) -> None:
        decision = verifier.decide(request.url.path, request.headers)
        if isinstance(decision, Reject):
            raise HTTPException(status_code=decision.status_code, detail=decision.detail)

    return _dependency
