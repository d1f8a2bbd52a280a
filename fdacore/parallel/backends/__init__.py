"""Parallel backend implementations."""

from .base import ParallelBackend
from .serial import SerialBackend

__all__ = [
    "ParallelBackend",
    "SerialBackend",
]
