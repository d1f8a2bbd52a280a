"""Run-time configuration of force distribution analysis."""

from .pfi import read_pfi
from .settings import FDASettings
from .types import (
    ForceType,
    InteractionType,
    OnePair,
    ResiduesRenumber,
    ResultType,
    Vector2Scalar,
)

__all__ = [
    "FDASettings",
    "ForceType",
    "InteractionType",
    "OnePair",
    "ResiduesRenumber",
    "ResultType",
    "Vector2Scalar",
    "read_pfi",
]
