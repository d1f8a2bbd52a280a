"""I/O layer for force distribution results."""

from .base import ResultWriter
from .compare import LogicallyEqualComparer, equal_text
from .formats.compat import CompatAsciiCodec, CompatBinaryCodec
from .formats.pairwise import (
    AsciiCodec,
    BinaryCodec,
    PairwiseForceWriter,
    read_pairwise_forces,
    write_pairwise_forces,
)
from .formats.pdb import PDBReader, PDBWriter
from .formats.stress import StressData, StressWriter, read_stress
from .formats.xpm import write_xpm

__all__ = [
    # Base classes
    "ResultWriter",
    # Comparison
    "LogicallyEqualComparer",
    "equal_text",
    # Formats
    "AsciiCodec",
    "BinaryCodec",
    "CompatAsciiCodec",
    "CompatBinaryCodec",
    "PairwiseForceWriter",
    "read_pairwise_forces",
    "write_pairwise_forces",
    "StressData",
    "StressWriter",
    "read_stress",
    "PDBReader",
    "PDBWriter",
    "write_xpm",
]
