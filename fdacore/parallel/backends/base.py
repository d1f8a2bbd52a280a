"""Interface every worker pool must offer to the force stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter

from numpy.typing import NDArray


class ParallelBackend(ABC):
    """
    Exchange of partial force stores between workers.

    Each worker accumulates the interactions of its own domain. When a
    frame is finalised, every worker flattens its store into record arrays
    and gathers the records of all workers, so each one ends up with the
    complete frame. Serial and MPI runs therefore share one code path in
    ``DistributedForces.reduce``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def n_workers(self) -> int:
        ...

    @property
    @abstractmethod
    def rank(self) -> int:
        """Index of this worker, 0 for serial runs."""
        ...

    @property
    def is_root(self) -> bool:
        """Only the root worker writes result files."""
        return self.rank == 0

    @abstractmethod
    def gather_records(self, *columns: NDArray) -> tuple[NDArray, ...]:
        """
        Join record columns of all workers.

        Args:
            *columns: Local record columns, all with the same number of
                rows. Workers may hold different numbers of rows.

        Returns:
            One array per column holding the rows of every worker, in rank
            order.
        """
        ...

    @abstractmethod
    def gather_counts(self, counts: Counter[str]) -> Counter[str]:
        """Sum name tallies over all workers; every worker gets the total."""
        ...
