"""Tagged outcomes returned by the edge validator and the origin guard."""
from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Pass(BaseModel):
    """The path is not protected; hand the request on untouched."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pass"] = "pass"


class Reject(BaseModel):
    """Terminal rejection to be returned to the caller as-is."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["reject"] = "reject"
    status_code: int
    detail: str


class Proceed(BaseModel):
    """The request was vetted; forward it with `headers` added."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["proceed"] = "proceed"
    headers: dict[str, str] = Field(default_factory=dict)


Decision = Union[Pass, Reject, Proceed]

__all__ = ["Decision", "Pass", "Proceed", "Reject"]
