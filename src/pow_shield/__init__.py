"""PoW Shield: proof-of-work admission for unauthenticated APIs."""

from pow_shield.client import PowClient
from pow_shield.core.settings import ShieldSettings, load_settings
from pow_shield.services.trust import TrustVerifier
from pow_shield.services.validator import EdgeValidator

__all__ = ["EdgeValidator", "PowClient", "ShieldSettings", "TrustVerifier", "load_settings"]
