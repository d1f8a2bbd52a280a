"""Post-hoc analyses of pairwise force and stress files."""

from .base import Analyzer
from .frames import FrameGroup, FrameSelection, SelectionMode
from .shortest_path import (
    EdgeWeight,
    ForceNetwork,
    FramePaths,
    InverseForce,
    LinearForce,
    Path,
    ShortestPathAnalyzer,
    write_paths,
    write_paths_pdb,
)
from .stress_field import StressField, StressFieldRenderer

__all__ = [
    # Base classes
    "Analyzer",
    # Frame selection
    "FrameGroup",
    "FrameSelection",
    "SelectionMode",
    # Shortest paths
    "EdgeWeight",
    "ForceNetwork",
    "FramePaths",
    "InverseForce",
    "LinearForce",
    "Path",
    "ShortestPathAnalyzer",
    "write_paths",
    "write_paths_pdb",
    # Stress fields
    "StressField",
    "StressFieldRenderer",
]
