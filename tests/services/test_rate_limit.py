"""Tests for the per-caller rate limiters."""

from unittest.mock import MagicMock

import pytest

from pow_shield.services.rate_limit import (
    MemoryRateLimiter,
    RedisRateLimiter,
    build_rate_limiter,
)


@pytest.fixture
def limiter(clock):
    return MemoryRateLimiter(requests_per_minute=3, clock=clock)


def test_ceiling_is_exact(limiter):
    assert [limiter.try_admit("1.2.3.4") for _ in range(4)] == [True, True, True, False]


def test_distinct_identity_is_unaffected(limiter):
    for _ in range(3):
        limiter.try_admit("1.2.3.4")
    assert not limiter.try_admit("1.2.3.4")
    assert limiter.try_admit("5.6.7.8")


def test_rejections_do_not_count(limiter):
    for _ in range(10):
        limiter.try_admit("1.2.3.4")
    assert limiter.count("1.2.3.4") == 3


def test_window_is_fixed_from_first_admission(limiter, clock):
    limiter.try_admit("1.2.3.4")
    clock.advance(59)
    limiter.try_admit("1.2.3.4")
    limiter.try_admit("1.2.3.4")
    assert not limiter.try_admit("1.2.3.4")

    clock.advance(1)
    assert limiter.count("1.2.3.4") == 0
    assert limiter.try_admit("1.2.3.4")


def test_capacity_forgets_oldest_identity(clock):
    limiter = MemoryRateLimiter(requests_per_minute=1, capacity=2, clock=clock)
    limiter.try_admit("a")
    limiter.try_admit("b")
    limiter.try_admit("c")
    assert limiter.try_admit("a")
    assert not limiter.try_admit("c")


class TestRedisRateLimiter:
    """Redis-backed limiter running an atomic Lua script."""

    def test_admit_runs_script_with_ceiling_and_window(self):
        client = MagicMock()
        script = MagicMock(return_value=1)
        client.register_script.return_value = script
        limiter = RedisRateLimiter(client, requests_per_minute=30)

        assert limiter.try_admit("1.2.3.4")
        script.assert_called_once_with(keys=["powshield:rate:1.2.3.4"], args=[30, 60])

    def test_script_rejection(self):
        client = MagicMock()
        client.register_script.return_value = MagicMock(return_value=0)
        limiter = RedisRateLimiter(client, requests_per_minute=30)
        assert not limiter.try_admit("1.2.3.4")


def test_build_rate_limiter(settings):
    limiter = build_rate_limiter(settings)
    assert isinstance(limiter, MemoryRateLimiter)
    assert limiter.requests_per_minute == settings.requests_per_minute

    settings.cache_backend = "redis"
    assert isinstance(build_rate_limiter(settings, redis_client=MagicMock()), RedisRateLimiter)
