"""MPI exchange of partial force stores through mpi4py."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .base import ParallelBackend

if TYPE_CHECKING:
    from mpi4py import MPI as MPI_TYPE


class MPI4PyBackend(ParallelBackend):
    """
    One worker per MPI rank.

    Every rank feeds the interactions of its domain into its own
    ForceDistribution. At each frame the records are gathered on all ranks
    and only rank 0 writes.

    Example:
        mpirun -n 4 python run_fda.py
    """

    def __init__(self, comm: MPI_TYPE.Comm | None = None) -> None:
        """
        Args:
            comm: Communicator, ``MPI.COMM_WORLD`` by default.
        """
        try:
            from mpi4py import MPI
        except ImportError as e:
            raise ImportError(
                "mpi4py is needed to distribute forces over MPI ranks. "
                "Install it with: pip install fdacore[mpi]"
            ) from e

        self._comm = comm if comm is not None else MPI.COMM_WORLD
        self._rank = self._comm.Get_rank()
        self._size = self._comm.Get_size()

    @property
    def name(self) -> str:
        return "mpi4py"

    @property
    def n_workers(self) -> int:
        return self._size

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def comm(self) -> MPI_TYPE.Comm:
        return self._comm

    def gather_records(self, *columns: NDArray) -> tuple[NDArray, ...]:
        # Row counts differ between ranks, so the pickling collective is used
        # and all columns travel in one message.
        per_rank = self._comm.allgather(columns)
        return tuple(
            np.concatenate([chunk[n] for chunk in per_rank]) for n in range(len(columns))
        )

    def gather_counts(self, counts: Counter[str]) -> Counter[str]:
        total: Counter[str] = Counter()
        for chunk in self._comm.allgather(dict(counts)):
            total.update(chunk)
        return total
