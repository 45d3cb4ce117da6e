"""Per-caller admission ceilings for the edge validator.

Windows are fixed rather than sliding: the first admission for an identity
opens a 60 second window and every admission inside it counts against the
same ceiling. Rejected attempts do not increment the count.
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

WINDOW_SECONDS: Final[int] = 60
REDIS_KEY_PREFIX: Final[str] = "powshield:rate:"

# KEYS[1] = counter key, ARGV[1] = ceiling, ARGV[2] = window in seconds.
_ADMIT_SCRIPT: Final[str] = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
if current >= tonumber(ARGV[1]) then
    return 0
end
current = redis.call('INCR', KEYS[1])
if current == 1 then
    redis.call('EXPIRE', KEYS[1], tonumber(ARGV[2]))
end
return 1
"""


class RateLimiter(Protocol):
    """Counts admissions per caller identity."""

    def try_admit(self, identity: str) -> bool: ...


class MemoryRateLimiter:
    """In-process fixed-window counter.

    Args:
        requests_per_minute: Admissions allowed per identity per window.
        capacity: Maximum identities tracked; the least recently admitted
            identity is forgotten first.
        window_seconds: Window length.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        requests_per_minute: int,
        capacity: int = 10_000,
        window_seconds: float = WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.requests_per_minute = requests_per_minute
        self.capacity = capacity
        self.window_seconds = window_seconds
        self._clock = clock
        # identity -> [count, window_end]
        self._counters: OrderedDict[str, list[float]] = OrderedDict()
        self._lock = Lock()

    def try_admit(self, identity: str) -> bool:
        """Admit and count one request, or return False at the ceiling."""
        with self._lock:
            now = self._clock()
            entry = self._counters.get(identity)
            if entry is not None and now >= entry[1]:
                del self._counters[identity]
                entry = None

            if entry is None:
                self._counters[identity] = [1, now + self.window_seconds]
                while len(self._counters) > self.capacity:
                    self._counters.popitem(last=False)
                return True

            if entry[0] >= self.requests_per_minute:
                return False
            entry[0] += 1
            self._counters.move_to_end(identity)
            return True

    def count(self, identity: str) -> int:
        """Return the admissions recorded for `identity` in its live window."""
        with self._lock:
            entry = self._counters.get(identity)
            if entry is None or self._clock() >= entry[1]:
                return 0
            return int(entry[0])


class RedisRateLimiter:
    """Fixed-window counter shared through Redis, admitted atomically by Lua."""

    def __init__(
        self,
        client: Any,
        requests_per_minute: int,
        window_seconds: int = WINDOW_SECONDS,
        prefix: str = REDIS_KEY_PREFIX,
    ) -> None:
        self._redis = client
        self.requests_per_minute = requests_per_minute
        self.window_seconds = window_seconds
        self._prefix = prefix
        self._admit = client.register_script(_ADMIT_SCRIPT)

    def try_admit(self, identity: str) -> bool:
        """Admit and count one request, or return False at the ceiling."""
        result = self._admit(
            keys=[f"{self._prefix}{identity}"],
            args=[self.requests_per_minute, self.window_seconds],
        )
        return int(result) == 1


def build_rate_limiter(
    settings: ShieldSettings,
    redis_client: Any | None = None,
) -> RateLimiter:
    """Return the rate limiter backend selected by `settings`."""
    if settings.cache_backend == "redis":
        client = redis_client or redis.from_url(settings.redis_url)  # type: ignore[no-untyped-call]
        return RedisRateLimiter(client, settings.requests_per_minute)
    return MemoryRateLimiter(settings.requests_per_minute, capacity=settings.cache_size)
