"""Framework bindings for PoW Shield."""

from .middleware import EdgeShieldMiddleware, OriginGuardMiddleware, require_trusted_request

__all__ = ["EdgeShieldMiddleware", "OriginGuardMiddleware", "require_trusted_request"]
