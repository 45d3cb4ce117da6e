"""Schemas related to proof-of-work parameters."""
from __future__ import annotations

from pydantic import BaseModel


class PowConfigOut(BaseModel):
    """Public puzzle parameters a client needs before solving."""

    endpoints: list[str]
    difficulty: int
    timestamp_tolerance: int
    hash_algorithm: str
    context_generator: str
