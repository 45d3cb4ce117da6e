# tests/conftest.py
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from pow_shield.api.middleware import OriginGuardMiddleware
from pow_shield.core.settings import ShieldSettings
from pow_shield.main import create_edge_app
from pow_shield.services.rate_limit import MemoryRateLimiter
from pow_shield.services.replay import MemoryReplayCache
from pow_shield.services.trust import TrustVerifier
from pow_shield.services.validator import EdgeValidator
from pow_shield.utils.hash import Hasher
from pow_shield.utils.pow_client import PuzzleProof, PuzzleSolver, generate_context

TEST_SECRET = "s"
TEST_ENDPOINT = "/api/data"
START_TIME = 1_700_000_000.0


@dataclass
class FakeClock:
    """Controllable time source shared by validators and stores."""

    now: float = START_TIME

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings() -> ShieldSettings:
    return ShieldSettings(
        endpoints=[TEST_ENDPOINT, "/api/v2/*"],
        secret=TEST_SECRET,
        difficulty=4,
        timestamp_tolerance=30,
        cache_size=100,
        requests_per_minute=3,
        origin_url="http://origin",
    )


@pytest.fixture()
def validator(settings: ShieldSettings, clock: FakeClock) -> EdgeValidator:
    return EdgeValidator(
        settings,
        replay_cache=MemoryReplayCache(
            capacity=settings.cache_size,
            ttl_seconds=settings.timestamp_tolerance,
            clock=clock,
        ),
        rate_limiter=MemoryRateLimiter(settings.requests_per_minute, clock=clock),
        clock=clock,
    )


@pytest.fixture()
def verifier(settings: ShieldSettings) -> TrustVerifier:
    return TrustVerifier(settings)


def solve(
    endpoint: str = TEST_ENDPOINT,
    *,
    timestamp: float = START_TIME,
    difficulty: int = 4,
    user_agent: str = "pytest-agent",
) -> PuzzleProof:
    """Return a solved proof for `endpoint` at `timestamp`."""
    solver = PuzzleSolver(
        endpoint,
        generate_context(user_agent),
        difficulty=difficulty,
        timestamp=int(timestamp),
        max_retries=50,
    )
    return solver.solve()


def weak_proof(endpoint: str = TEST_ENDPOINT, *, timestamp: float = START_TIME) -> PuzzleProof:
    """Return a correctly computed proof whose stamp has no leading zero bits."""
    hasher = Hasher()
    context = generate_context("pytest-agent")
    for attempt in range(1000):
        nonce = f"weak-{attempt}"
        stamp = hasher.digest(f"{endpoint}:{int(timestamp)}:{nonce}:{context}")
        if int(stamp[0], 16) >= 8:
            return PuzzleProof(str(int(timestamp)), nonce, context, stamp)
    raise AssertionError("no weak stamp found")


@pytest.fixture()
def origin_app(settings: ShieldSettings) -> FastAPI:
    origin = FastAPI()
    origin.add_middleware(OriginGuardMiddleware, verifier=TrustVerifier(settings))

    @origin.get("/api/data")
    async def data() -> dict[str, str]:
        return {"message": "vetted"}

    @origin.get("/public")
    async def public() -> dict[str, str]:
        return {"message": "open"}

    return origin


@pytest.fixture()
def edge_client(
    settings: ShieldSettings, validator: EdgeValidator, origin_app: FastAPI
) -> Iterator[TestClient]:
    app = create_edge_app(
        settings,
        validator=validator,
        transport=httpx.ASGITransport(app=origin_app),
    )
    with TestClient(app, base_url="http://edge") as test_client:
        yield test_client


@pytest.fixture()
def origin_client(origin_app: FastAPI) -> Iterator[TestClient]:
    with TestClient(origin_app, base_url="http://origin") as test_client:
        yield test_client
