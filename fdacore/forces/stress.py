"""Per-entity stress derived from pairwise forces."""

from __future__ import annotations

from collections.abc import Mapping

import numpy as np
from numpy.typing import NDArray

from .frame import Frame

# Column order of the per-atom virial stress tensor.
VIRIAL_COMPONENTS = ("xx", "yy", "zz", "xy", "xz", "yz")


def punctual_stress(
    frame: Frame,
    syslen: int,
    sys2pf: Mapping[int, int] | None = None,
) -> NDArray[np.floating]:
    """
    Punctual stress: the sum of |F_ij| over all pairs an entity takes part in.

    Args:
        frame: Frame of scalar or vector pairwise forces.
        syslen: Number of atoms or residues in the system.
        sys2pf: If given, only entities in this table receive stress.

    Returns:
        Stress per system number, shape (syslen,).
    """
    stress = np.zeros(syslen, dtype=np.float64)
    for (i, j), force in frame.forces().items():
        magnitude = np.linalg.norm(force) if isinstance(force, np.ndarray) else abs(force)
        stress[i] += magnitude
        stress[j] += magnitude
    if sys2pf is not None:
        mask = np.zeros(syslen, dtype=bool)
        mask[list(sys2pf)] = True
        stress[~mask] = 0.0
    return stress


def normalize_by_size(
    stress: NDArray[np.floating], residue_size: NDArray[np.integer]
) -> NDArray[np.floating]:
    """Divide residue stress by the number of atoms per residue."""
    size = np.asarray(residue_size, dtype=np.float64)
    result = np.zeros_like(stress)
    n = min(len(stress), len(size))
    nonempty = size[:n] > 0
    result[:n][nonempty] = stress[:n][nonempty] / size[:n][nonempty]
    return result


def virial_stress(
    frame: Frame,
    positions: NDArray[np.floating],
) -> NDArray[np.floating]:
    """
    Per-atom virial stress from pairwise force vectors.

    sigma_i = -1/2 * sum_j r_ij (x) f_ij, symmetrised, with r_ij = x_j - x_i
    and f_ij the force on i due to j. Both atoms of a pair receive the same
    contribution.

    Args:
        frame: Frame of vector pairwise forces.
        positions: Atom positions, shape (N, 3).

    Returns:
        Stress per atom, shape (N, 6) in ``VIRIAL_COMPONENTS`` order.
    """
    positions = np.asarray(positions, dtype=np.float64)
    stress = np.zeros((len(positions), 6), dtype=np.float64)
    for (i, j), force in frame.forces().items():
        if not isinstance(force, np.ndarray):
            raise ValueError("Virial stress requires pairwise force vectors")
        rij = positions[j] - positions[i]
        tensor = -0.5 * np.outer(rij, force)
        tensor = 0.5 * (tensor + tensor.T)
        components = _pack(tensor)
        stress[i] += components
        stress[j] += components
    return stress


def von_mises(virial: NDArray[np.floating]) -> NDArray[np.floating]:
    """
    Von Mises equivalent stress of per-atom virial tensors.

    Args:
        virial: Stress per atom, shape (N, 6).

    Returns:
        Scalar stress per atom, shape (N,).
    """
    xx, yy, zz, xy, xz, yz = np.asarray(virial, dtype=np.float64).T
    return np.sqrt(
        0.5 * ((xx - yy) ** 2 + (yy - zz) ** 2 + (zz - xx) ** 2)
        + 3.0 * (xy**2 + xz**2 + yz**2)
    )


def _pack(tensor: NDArray[np.floating]) -> NDArray[np.floating]:
    return np.array(
        [
            tensor[0, 0],
            tensor[1, 1],
            tensor[2, 2],
            tensor[0, 1],
            tensor[0, 2],
            tensor[1, 2],
        ]
    )
