"""Topology and index groups consumed by force distribution analysis."""

from .index import read_ndx, write_ndx
from .topology import Topology

__all__ = [
    "Topology",
    "read_ndx",
    "write_ndx",
]
