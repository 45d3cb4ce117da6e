# src/pow_shield/main.py
"""Edge validator application.

Runs the edge hop as a small FastAPI reverse proxy: protected requests are
validated, signed and forwarded to the configured origin; unprotected ones are
forwarded untouched.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Final

import httpx
from fastapi import FastAPI, Request
from starlette.responses import PlainTextResponse, Response

from pow_shield.api.middleware import reject_response, request_client_ip
from pow_shield.core.errors import ConfigurationError
from pow_shield.core.settings import ShieldSettings, get_settings
from pow_shield.schemas.decision import Proceed, Reject
from pow_shield.schemas.headers import HEADER_HMAC
from pow_shield.schemas.pow import PowConfigOut
from pow_shield.services.validator import EdgeValidator

logger = logging.getLogger(__name__)

HTTP_BAD_GATEWAY: Final[int] = 502
PROXY_METHODS: Final[list[str]] = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
# Hop-by-hop and length headers are recomputed by each side of the proxy.
_SKIPPED_HEADERS: Final[frozenset[str]] = frozenset(
    {
        "host",
        "connection",
        "keep-alive",
        "transfer-encoding",
        "content-length",
        "content-encoding",
        "upgrade",
    }
)


def _forwardable(items: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    # Pairs, not a dict: repeated headers such as Set-Cookie must survive.
    return [(name, value) for name, value in items if name.lower() not in _SKIPPED_HEADERS]


def create_edge_app(
    settings: ShieldSettings | None = None,
    *,
    validator: EdgeValidator | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the edge proxy application.

    Args:
        settings: Shield settings. Loaded from the environment if omitted.
        validator: Pre-built validator (for injected stores or clocks).
        transport: Optional httpx transport used to reach the origin.

    Raises:
        ConfigurationError: If the settings cannot drive an edge hop or no
            origin URL is configured.
    """
    settings = settings or get_settings()
    if not settings.origin_url:
        raise ConfigurationError("PoW Shield edge requires an origin URL to forward to")
    edge = validator if validator is not None else EdgeValidator(settings)
    origin_url = settings.origin_url.rstrip("/")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.origin = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.proxy_timeout_seconds),
            transport=transport,
        )
        try:
            yield
        finally:
            await app.state.origin.aclose()

    app = FastAPI(
        title="PoW Shield Edge",
        description="Proof-of-work edge validator",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.validator = edge

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint to verify the edge is running."""
        return {"status": "ok"}

    @app.get("/pow/config", response_model=PowConfigOut)
    async def pow_config() -> PowConfigOut:
        """Expose the puzzle parameters clients need to solve."""
        return PowConfigOut(
            endpoints=settings.endpoints,
            difficulty=settings.difficulty,
            timestamp_tolerance=settings.timestamp_tolerance,
            hash_algorithm=settings.hash_algorithm,
            context_generator=settings.context_generator,
        )

    @app.api_route("/{full_path:path}", methods=PROXY_METHODS, include_in_schema=False)
    async def proxy(request: Request) -> Response:
        path = request.url.path
        # Store round-trips (Redis) are blocking; keep them off the event loop.
        decision = await asyncio.to_thread(
            edge.decide, path, request.headers, client_ip=request_client_ip(request, edge)
        )
        if isinstance(decision, Reject):
            return reject_response(decision)

        # Only the edge may vouch for a request.
        headers = [
            (name, value)
            for name, value in _forwardable(request.headers.items())
            if name.lower() != HEADER_HMAC.lower()
        ]
        if isinstance(decision, Proceed):
            headers.extend(decision.headers.items())

        target = f"{origin_url}{path}"
        if request.url.query:
            target = f"{target}?{request.url.query}"

        client: httpx.AsyncClient = request.app.state.origin
        try:
            upstream = await client.request(
                request.method,
                target,
                headers=headers,
                content=await request.body(),
            )
        except httpx.HTTPError as exc:
            logger.warning("Forwarding %s %s to origin failed: %s", request.method, path, exc)
            return PlainTextResponse("Origin unavailable", status_code=HTTP_BAD_GATEWAY)

        response = Response(content=upstream.content, status_code=upstream.status_code)
        for name, value in _forwardable(upstream.headers.multi_items()):
            response.headers.append(name, value)
        return response

    return app


def run() -> None:
    """Serve the edge app with uvicorn using environment settings."""
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
    uvicorn.run(create_edge_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
