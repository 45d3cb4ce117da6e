"""HTTP client that pays the proof-of-work toll for protected endpoints.

Requests to paths covered by the configured endpoints get four proof headers
attached; every other request is sent unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlsplit

import httpx

from pow_shield.core.endpoints import is_protected_endpoint
from pow_shield.core.settings import ShieldSettings
from pow_shield.utils.hash import Hasher
from pow_shield.utils.pow_client import (
    UNKNOWN_USER_AGENT,
    PuzzleSolver,
    generate_context,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class PowClient:
    """Async HTTP client wrapper solving a fresh puzzle per protected request.

    Args:
        settings: Shield settings; must list at least one endpoint.
        user_agent: User agent sent with every request and hashed into the
            caller context.
        ip: Caller address, used only by the ``ip+userAgent`` context method.
        base_url: Optional base URL for relative request paths.
        http_client: Pre-built ``httpx.AsyncClient`` (for custom transports).
    """

    def __init__(
        self,
        settings: ShieldSettings,
        *,
        user_agent: str = UNKNOWN_USER_AGENT,
        ip: str | None = None,
        base_url: str = "",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings.require("client")
        self.user_agent = user_agent
        self.context = generate_context(user_agent, ip, settings.context_generator)
        self._hasher = Hasher(settings.hash_algorithm, settings.hmac_algorithm)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(DEFAULT_TIMEOUT_SECONDS),
            headers={"User-Agent": user_agent},
        )

    async def __aenter__(self) -> PowClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def is_protected(self, endpoint: str) -> bool:
        """Return True if requests to `endpoint` need a proof."""
        return is_protected_endpoint(endpoint, self.settings.endpoints)

    async def get_headers(self, endpoint: str) -> dict[str, str]:
        """Solve a puzzle for `endpoint` and return the proof headers.

        Raises:
            ExhaustedPuzzle: If no valid stamp was found within the attempt
                budget. The request is not retried at a different difficulty.
        """
        solver = PuzzleSolver(
            endpoint,
            self.context,
            difficulty=self.settings.difficulty,
            max_retries=self.settings.max_retries,
            hasher=self._hasher,
        )
        proof = await solver.solve_async()
        return proof.as_headers()

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, attaching proof headers when the path is protected."""
        merged: dict[str, str] = dict(headers or {})
        endpoint = urlsplit(str(self._client.base_url.join(url))).path
        if self.is_protected(endpoint):
            merged.update(await self.get_headers(endpoint))
        return await self._client.request(method, url, headers=merged, **kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def close(self) -> None:
        """Close the underlying HTTP client if this wrapper created it."""
        if self._owns_client:
            await self._client.aclose()


async def fetch_many(client: PowClient, urls: list[str]) -> list[httpx.Response]:
    """Fetch several protected URLs concurrently, each with its own puzzle."""
    return list(await asyncio.gather(*(client.get(url) for url in urls)))
