#!/usr/bin/env python3
"""Demonstration of the full client -> edge -> origin chain in one process.

This script shows how to:
1. Protect an origin app with the trust-signature guard
2. Put the edge proxy in front of it
3. Call a protected endpoint with a solved puzzle, then replay it

Usage:
    python examples/pow_demo.py
"""

import asyncio

import httpx
from fastapi import FastAPI

from pow_shield.api.middleware import OriginGuardMiddleware
from pow_shield.client import PowClient
from pow_shield.core.settings import ShieldSettings
from pow_shield.main import create_edge_app
from pow_shield.services.trust import TrustVerifier


def build_origin(settings: ShieldSettings) -> FastAPI:
    origin = FastAPI(title="Demo origin")
    origin.add_middleware(OriginGuardMiddleware, verifier=TrustVerifier(settings))

    @origin.get("/api/data")
    async def data() -> dict[str, str]:
        return {"message": "vetted"}

    @origin.get("/public")
    async def public() -> dict[str, str]:
        return {"message": "open"}

    return origin


async def main() -> None:
    settings = ShieldSettings(
        endpoints=["/api/*"],
        secret="demo-secret",
        difficulty=8,
        origin_url="http://origin",
    )
    origin = build_origin(settings)
    edge = create_edge_app(settings, transport=httpx.ASGITransport(app=origin))

    async with edge.router.lifespan_context(edge):
        http = httpx.AsyncClient(transport=httpx.ASGITransport(app=edge), base_url="http://edge")
        async with PowClient(settings, user_agent="pow-demo/1.0", http_client=http) as client:
            headers = await client.get_headers("/api/data")
            print(f"Solved headers: {headers}")

            first = await http.get("/api/data", headers=headers)
            print(f"First call:  {first.status_code} {first.text}")

            replay = await http.get("/api/data", headers=headers)
            print(f"Replay:      {replay.status_code} {replay.text}")

            direct = await client.get("/public")
            print(f"Public path: {direct.status_code} {direct.text}")

        await http.aclose()


if __name__ == "__main__":
    asyncio.run(main())
