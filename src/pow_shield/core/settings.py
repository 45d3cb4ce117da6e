"""Shield settings and configuration.

This module defines all configuration options shared by the PoW Shield client,
edge validator and origin guard. Settings are loaded from environment variables
(or an ``.env`` file) with documented defaults; every hop reads the same typed
struct and checks only the fields its role requires.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pow_shield.core.errors import ConfigurationError
from pow_shield.utils.hash import DIGEST_BITS

logger = logging.getLogger(__name__)

Role = Literal["client", "edge", "origin"]
CacheBackend = Literal["memory", "redis"]
ContextGenerator = Literal["userAgent", "ip+userAgent", "custom"]
DigestAlgorithm = Literal["sha256", "sha512", "blake3"]
MacAlgorithm = Literal["sha256", "sha512"]

_SIGNING_ROLES: frozenset[str] = frozenset({"edge", "origin"})


class ShieldSettings(BaseSettings):
    """Settings loaded from environment variables.

    Values can be overridden via ``POW_SHIELD_*`` environment variables, an
    ``.env`` file, or keyword arguments using the field names.
    """

    # Protected surface and shared secret
    endpoints: list[str] = Field(default_factory=list, alias="POW_SHIELD_ENDPOINTS")
    secret: str | None = Field(default=None, alias="POW_SHIELD_SECRET")

    # Proof-of-Work settings (leading zero bits, seconds)
    difficulty: int = Field(default=4, ge=0, le=512, alias="POW_SHIELD_DIFFICULTY")
    timestamp_tolerance: int = Field(default=30, gt=0, alias="POW_SHIELD_TIMESTAMP_TOLERANCE")
    hash_algorithm: DigestAlgorithm = Field(default="sha256", alias="POW_SHIELD_HASH_ALGORITHM")
    hmac_algorithm: MacAlgorithm = Field(default="sha256", alias="POW_SHIELD_HMAC_ALGORITHM")
    context_generator: ContextGenerator = Field(
        default="userAgent", alias="POW_SHIELD_CONTEXT_GENERATOR"
    )

    # Replay and rate-limit storage
    cache_backend: CacheBackend = Field(default="memory", alias="POW_SHIELD_CACHE_BACKEND")
    cache_size: int = Field(default=10_000, gt=0, alias="POW_SHIELD_CACHE_SIZE")
    redis_url: str = Field(default="redis://localhost:6379", alias="POW_SHIELD_REDIS_URL")

    # Client
    max_retries: int = Field(default=5, gt=0, alias="POW_SHIELD_MAX_RETRIES")

    # Edge
    rate_limiting: bool = Field(default=True, alias="POW_SHIELD_RATE_LIMITING")
    requests_per_minute: int = Field(default=30, gt=0, alias="POW_SHIELD_REQUESTS_PER_MINUTE")
    # Set only behind a trusted proxy that overwrites this header.
    client_ip_header: str | None = Field(default=None, alias="POW_SHIELD_CLIENT_IP_HEADER")
    origin_url: str | None = Field(default=None, alias="POW_SHIELD_ORIGIN_URL")
    proxy_timeout_seconds: float = Field(
        default=10.0, gt=0, alias="POW_SHIELD_PROXY_TIMEOUT_SECONDS"
    )

    # Origin
    strict_mode: bool = Field(default=True, alias="POW_SHIELD_STRICT_MODE")

    debug: bool = Field(default=False, alias="POW_SHIELD_DEBUG")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _difficulty_fits_digest(self) -> ShieldSettings:
        width = DIGEST_BITS[self.hash_algorithm]
        if self.difficulty > width:
            raise ValueError(
                f"difficulty {self.difficulty} exceeds the {width}-bit {self.hash_algorithm} stamp"
            )
        return self

    def require(self, role: Role) -> ShieldSettings:
        """Fail fast if these settings cannot drive the given role.

        Args:
            role: ``"client"``, ``"edge"`` or ``"origin"``.

        Returns:
            Self, so the call can be chained at construction sites.

        Raises:
            ConfigurationError: If no endpoint is configured, or the shared
                secret is missing for a role that signs or verifies.
        """
        if not self.endpoints:
            raise ConfigurationError("PoW Shield requires at least one endpoint to protect")
        if role in _SIGNING_ROLES and not self.secret:
            raise ConfigurationError("PoW Shield requires a shared secret for HMAC generation")
        return self

    def redacted(self) -> dict[str, object]:
        """Return the effective configuration with the secret masked."""
        data = self.model_dump()
        if data.get("secret"):
            data["secret"] = "***"
        return data


def load_settings(**overrides: object) -> ShieldSettings:
    """Build settings from the environment, converting validation failures.

    Raises:
        ConfigurationError: If any value fails validation (for example an
            unknown hash algorithm).
    """
    try:
        return ShieldSettings(**overrides)  # type: ignore[arg-type]
    except ValidationError as err:
        logger.error("Invalid PoW Shield configuration: %s", err)
        raise ConfigurationError(f"Invalid PoW Shield configuration: {err}") from err


@lru_cache(maxsize=1)
def get_settings() -> ShieldSettings:
    """Return the process-wide settings loaded from the environment."""
    return load_settings()
