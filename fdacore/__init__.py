"""
fdacore - Force distribution analysis of molecular dynamics simulations.

Pairwise forces reported by a force field are accumulated per atom or
residue pair, optionally time averaged, written to result files and
analysed afterwards as force networks or stress fields.

Quick Start:
    >>> from fdacore import FDASettings, ForceDistribution, Topology
    >>> settings = FDASettings.build(topology, {"Protein": atoms}, group1="Protein", group2="Protein")
    >>> with ForceDistribution(settings, atom_path="fda.pfa") as fda:
    ...     fda.add_interaction(0, 1, "bond", 5.0)
    ...     fda.finalize_step()
"""

__version__ = "0.1.0"

from .analysis import FrameSelection, ShortestPathAnalyzer, StressFieldRenderer
from .engine import ForceDistribution
from .exceptions import (
    ConfigurationError,
    FDAError,
    FileFormatError,
    GraphQueryError,
    UnsupportedInteractionError,
)
from .forces import DistributedForces, Frame, PairForce, PairwiseForces
from .io import LogicallyEqualComparer, read_pairwise_forces, read_stress
from .log import init_logging
from .settings import FDASettings, ForceType, InteractionType, OnePair, ResultType
from .topology import Topology, read_ndx

__all__ = [
    "ConfigurationError",
    "DistributedForces",
    "FDAError",
    "FDASettings",
    "FileFormatError",
    "ForceDistribution",
    "ForceType",
    "Frame",
    "FrameSelection",
    "GraphQueryError",
    "InteractionType",
    "LogicallyEqualComparer",
    "OnePair",
    "PairForce",
    "PairwiseForces",
    "ResultType",
    "ShortestPathAnalyzer",
    "StressFieldRenderer",
    "Topology",
    "UnsupportedInteractionError",
    "init_logging",
    "read_ndx",
    "read_pairwise_forces",
    "read_stress",
]
