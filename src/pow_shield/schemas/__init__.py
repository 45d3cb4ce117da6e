"""Pydantic schemas for PoW Shield."""

from .decision import Decision, Pass, Proceed, Reject
from .headers import ProofHeaders
from .pow import PowConfigOut

__all__ = [
    "Decision",
    "Pass",
    "Proceed",
    "Reject",
    "ProofHeaders",
    "PowConfigOut",
]
