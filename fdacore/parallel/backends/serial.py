"""Single process backend."""

from __future__ import annotations

from collections import Counter

from numpy.typing import NDArray

from .base import ParallelBackend


class SerialBackend(ParallelBackend):
    """The default: one worker, whose store is already the whole frame."""

    @property
    def name(self) -> str:
        return "serial"

    @property
    def n_workers(self) -> int:
        return 1

    @property
    def rank(self) -> int:
        return 0

    def gather_records(self, *columns: NDArray) -> tuple[NDArray, ...]:
        return columns

    def gather_counts(self, counts: Counter[str]) -> Counter[str]:
        return Counter(counts)
