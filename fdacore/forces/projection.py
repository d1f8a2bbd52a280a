"""Conversion of pairwise force vectors into signed scalars."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from ..settings.types import Vector2Scalar


def vector_to_scalar(
    force: NDArray[np.floating],
    xi: NDArray[np.floating],
    xj: NDArray[np.floating],
    method: Vector2Scalar = Vector2Scalar.NORM,
) -> float:
    """
    Convert the force on i due to j into a signed scalar.

    Positive values are repulsive (the force pushes i away from j), negative
    values attractive.

    Args:
        force: Force vector on i due to j, shape (3,).
        xi: Position of i, shape (3,).
        xj: Position of j, shape (3,).
        method: ``NORM`` returns |f| with the sign of the interaction,
            ``PROJECTION`` the component of f along the i-j axis.

    Returns:
        Signed scalar force.
    """
    rij = np.asarray(xj, dtype=np.float64) - np.asarray(xi, dtype=np.float64)
    along = float(np.dot(force, rij))

    if method is Vector2Scalar.NORM:
        norm = float(np.linalg.norm(force))
        return norm if along <= 0.0 else -norm

    r = float(np.linalg.norm(rij))
    if r == 0.0:
        return 0.0
    return -along / r
