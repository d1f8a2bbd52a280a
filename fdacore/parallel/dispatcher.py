"""Selection of the backend that combines partial force stores."""

from __future__ import annotations

from typing import Literal

from .backends.base import ParallelBackend
from .backends.serial import SerialBackend

BackendType = Literal["serial", "mpi4py"]


def get_backend(
    backend: BackendType | ParallelBackend | None = None,
) -> ParallelBackend:
    """
    Resolve a backend argument of ``ForceDistribution``.

    ``None`` and ``"serial"`` give a single worker, ``"mpi4py"`` one worker
    per rank of ``MPI.COMM_WORLD``. Instances are passed through, which is
    how a custom communicator is used.

    Raises:
        ValueError: If the name is unknown.
        ImportError: If mpi4py is requested but not installed.
    """
    if isinstance(backend, ParallelBackend):
        return backend
    if backend is None or backend == "serial":
        return SerialBackend()
    if backend == "mpi4py":
        from .backends.mpi4py_backend import MPI4PyBackend

        return MPI4PyBackend()
    raise ValueError(f"Unknown backend: {backend}. Available: serial, mpi4py")
