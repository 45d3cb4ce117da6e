"""Replay protection for solved proofs.

A proof is identified by ``timestamp:nonce``; once marked, the same key is
rejected until its entry expires or is evicted for capacity. Both backends
offer an atomic ``check_and_mark`` so that two concurrent requests carrying
the same nonce can never both be admitted.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from threading import Lock
from typing import Any, Final, Protocol

import redis

from pow_shield.core.settings import ShieldSettings

logger = logging.getLogger(__name__)

REDIS_KEY_PREFIX: Final[str] = "powshield:replay:"


def replay_key(timestamp: str, nonce: str) -> str:
    """Return the cache key identifying one proof."""
    return f"{timestamp}:{nonce}"


class ReplayCache(Protocol):
    """Store of proofs already admitted by this validator."""

    def seen(self, key: str) -> bool: ...

    def mark(self, key: str, ttl_seconds: float | None = None) -> None: ...

    def check_and_mark(self, key: str, ttl_seconds: float | None = None) -> bool: ...


class MemoryReplayCache:
    """Bounded in-process cache with LRU and time-based eviction.

    Args:
        capacity: Maximum number of live entries; the least recently marked
            entry is evicted first.
        ttl_seconds: Default lifetime of an entry.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        capacity: int,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity <= 0:
            raise ValueError("Replay cache capacity must be positive")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, float] = OrderedDict()
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            self._purge_locked(self._clock())
            return len(self._entries)

    def _live_locked(self, key: str, now: float) -> bool:
        expiry = self._entries.get(key)
        if expiry is None:
            return False
        if now > expiry:
            del self._entries[key]
            return False
        return True

    def _store_locked(self, key: str, now: float, ttl_seconds: float | None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = now + ttl
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Replay cache full, evicted %s", evicted)

    def _purge_locked(self, now: float) -> None:
        expired = [key for key, expiry in self._entries.items() if now > expiry]
        for key in expired:
            del self._entries[key]

    def seen(self, key: str) -> bool:
        """Return True if `key` was marked and has not expired or been evicted."""
        with self._lock:
            return self._live_locked(key, self._clock())

    def mark(self, key: str, ttl_seconds: float | None = None) -> None:
        """Record `key` as used."""
        with self._lock:
            self._store_locked(key, self._clock(), ttl_seconds)

    def check_and_mark(self, key: str, ttl_seconds: float | None = None) -> bool:
        """Atomically mark `key`; return False if it was already live."""
        with self._lock:
            now = self._clock()
            if self._live_locked(key, now):
                return False
            self._store_locked(key, now, ttl_seconds)
            return True

    def purge_expired(self) -> None:
        """Drop every expired entry."""
        with self._lock:
            self._purge_locked(self._clock())


class RedisReplayCache:
    """Replay cache shared by every validator instance through Redis.

    Capacity is governed by the Redis server's own memory policy.
    """

    def __init__(
        self,
        client: Any,
        ttl_seconds: float,
        prefix: str = REDIS_KEY_PREFIX,
    ) -> None:
        self._redis = client
        self.ttl_seconds = ttl_seconds
        self._prefix = prefix

    def _ttl_ms(self, ttl_seconds: float | None) -> int:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        return max(1, int(ttl * 1000))

    def seen(self, key: str) -> bool:
        """Return True if `key` is present in Redis."""
        return bool(self._redis.exists(f"{self._prefix}{key}"))

    def mark(self, key: str, ttl_seconds: float | None = None) -> None:
        """Record `key` with an expiry."""
        self._redis.set(f"{self._prefix}{key}", "1", px=self._ttl_ms(ttl_seconds))

    def check_and_mark(self, key: str, ttl_seconds: float | None = None) -> bool:
        """Atomically mark `key` using ``SET NX``; False if it already existed."""
        created = self._redis.set(
            f"{self._prefix}{key}", "1", px=self._ttl_ms(ttl_seconds), nx=True
        )
        return bool(created)


def build_replay_cache(
    settings: ShieldSettings,
    redis_client: Any | None = None,
) -> ReplayCache:
    """Return the replay cache backend selected by `settings`."""
    if settings.cache_backend == "redis":
        client = redis_client or redis.from_url(settings.redis_url)  # type: ignore[no-untyped-call]
        logger.info("Using Redis replay cache at %s", settings.redis_url)
        return RedisReplayCache(client, ttl_seconds=settings.timestamp_tolerance)
    return MemoryReplayCache(
        capacity=settings.cache_size,
        ttl_seconds=settings.timestamp_tolerance,
    )
