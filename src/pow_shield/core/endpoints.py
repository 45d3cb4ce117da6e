"""Protected endpoint matching shared by the client, edge and origin."""
from __future__ import annotations

from collections.abc import Iterable

WILDCARD = "*"


def matches_endpoint(path: str, pattern: str) -> bool:
    """Return True if `path` is covered by a single endpoint pattern.

    Patterns are exact paths, or prefixes when they end with ``*``
    (``/api/*`` covers ``/api/data`` and ``/api/``).
    """
    if path == pattern:
        return True
    if pattern.endswith(WILDCARD):
        return path.startswith(pattern[: -len(WILDCARD)])
    return False


def is_protected_endpoint(path: str, endpoints: Iterable[str]) -> bool:
    """Return True if any configured pattern covers `path`."""
    return any(matches_endpoint(path, pattern) for pattern in endpoints)
