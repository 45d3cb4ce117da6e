"""Tests for protected endpoint matching."""

import pytest

from pow_shield.core.endpoints import is_protected_endpoint, matches_endpoint


@pytest.mark.parametrize(
    ("path", "pattern", "expected"),
    [
        ("/api/data", "/api/data", True),
        ("/api/data/", "/api/data", False),
        ("/api/data", "/api/*", True),
        ("/api/", "/api/*", True),
        ("/api", "/api/*", False),
        ("/apis", "/api*", True),
        ("/public", "/api/*", False),
        ("/anything", "*", True),
    ],
)
def test_matches_endpoint(path, pattern, expected):
    assert matches_endpoint(path, pattern) is expected


def test_is_protected_endpoint():
    endpoints = ["/login", "/api/*"]
    assert is_protected_endpoint("/login", endpoints)
    assert is_protected_endpoint("/api/items/1", endpoints)
    assert not is_protected_endpoint("/public", endpoints)
    assert not is_protected_endpoint("/login", [])
