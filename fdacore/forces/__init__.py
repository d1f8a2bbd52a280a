"""Accumulation of distributed pairwise forces and derived stress."""

from .accumulator import DetailedForce, PairAccumulator, SummedForce
from .frame import Frame, PairForce, PairwiseForces, average_frames, force_magnitude
from .projection import vector_to_scalar
from .store import DistributedForces
from .stress import normalize_by_size, punctual_stress, virial_stress, von_mises

__all__ = [
    "DetailedForce",
    "DistributedForces",
    "Frame",
    "PairAccumulator",
    "PairForce",
    "PairwiseForces",
    "SummedForce",
    "average_frames",
    "force_magnitude",
    "normalize_by_size",
    "punctual_stress",
    "vector_to_scalar",
    "virial_stress",
    "von_mises",
]
