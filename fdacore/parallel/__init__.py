"""Reduction of partial force stores across parallel workers."""

from .backends.base import ParallelBackend
from .backends.serial import SerialBackend
from .dispatcher import get_backend

__all__ = [
    "ParallelBackend",
    "SerialBackend",
    "get_backend",
]
