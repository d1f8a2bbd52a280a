"""Result file format implementations."""

from .compat import COMPAT_NEW_ENTRY, COMPAT_VERSION, CompatAsciiCodec, CompatBinaryCodec
from .pairwise import (
    AsciiCodec,
    BinaryCodec,
    PairwiseForceCodec,
    PairwiseForceWriter,
    read_pairwise_forces,
    write_pairwise_forces,
)
from .pdb import PDBReader, PDBWriter
from .stress import StressData, StressWriter, read_stress
from .xpm import write_xpm

__all__ = [
    # Pairwise forces
    "PairwiseForceCodec",
    "AsciiCodec",
    "BinaryCodec",
    "PairwiseForceWriter",
    "read_pairwise_forces",
    "write_pairwise_forces",
    # Compatibility force matrix
    "COMPAT_NEW_ENTRY",
    "COMPAT_VERSION",
    "CompatAsciiCodec",
    "CompatBinaryCodec",
    # Stress
    "StressData",
    "StressWriter",
    "read_stress",
    # Structures and matrices
    "PDBReader",
    "PDBWriter",
    "write_xpm",
]
