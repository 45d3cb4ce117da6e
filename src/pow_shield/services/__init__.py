"""Admission services for the edge validator and origin guard."""

from .rate_limit import MemoryRateLimiter, RedisRateLimiter, build_rate_limiter
from .replay import MemoryReplayCache, RedisReplayCache, build_replay_cache
from .trust import TrustVerifier
from .validator import EdgeValidator

__all__ = [
    "EdgeValidator",
    "TrustVerifier",
    "MemoryReplayCache",
    "RedisReplayCache",
    "build_replay_cache",
    "MemoryRateLimiter",
    "RedisRateLimiter",
    "build_rate_limiter",
]
