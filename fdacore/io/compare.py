"""Tolerance-based comparison of result values and files."""

from __future__ import annotations

from pathlib import Path

import numpy as np
from numpy.typing import ArrayLike

# Results are written and compared in single precision terms
REAL_EPSILON = float(np.finfo(np.float32).eps)


class LogicallyEqualComparer:
    """
    Compare floating point values up to a multiple of machine epsilon.

    Two values a, b are equal if ``|a - b| <= error_factor * eps * scale``
    where ``scale`` is ``max(|a|, |b|)`` when weighting by magnitude and 1
    otherwise. Ignoring the sign compares |a| and |b|, which accepts runs
    that only differ in the force sign convention.

    Example:
        comparer = LogicallyEqualComparer(1e4, weight_by_magnitude=True)
        assert comparer(1.0, 1.0 + 1e-6)
    """

    def __init__(
        self,
        error_factor: float = 1e4,
        weight_by_magnitude: bool = False,
        ignore_sign: bool = False,
    ) -> None:
        """
        Initialize comparer.

        Args:
            error_factor: Tolerance in units of single precision epsilon.
            weight_by_magnitude: Scale the tolerance by the value magnitude.
            ignore_sign: Compare absolute values.
        """
        self.error_factor = error_factor
        self.weight_by_magnitude = weight_by_magnitude
        self.ignore_sign = ignore_sign

    @property
    def tolerance(self) -> float:
        return self.error_factor * REAL_EPSILON

    def __call__(self, a: float, b: float) -> bool:
        return self.equal_arrays(a, b)

    def equal_arrays(self, a: ArrayLike, b: ArrayLike) -> bool:
        """Element-wise comparison of scalars or arrays of equal shape."""
        a = np.asarray(a, dtype=np.float64)
        b = np.asarray(b, dtype=np.float64)
        if a.shape != b.shape:
            return False
        if self.ignore_sign:
            a, b = np.abs(a), np.abs(b)
        diff = np.abs(a - b)
        if self.weight_by_magnitude:
            scale = np.maximum(np.abs(a), np.abs(b))
        else:
            scale = 1.0
        return bool(np.all((a == b) | (diff <= self.tolerance * scale)))


def equal_text(
    a: str | Path,
    b: str | Path,
    comparer: LogicallyEqualComparer,
) -> bool:
    """
    Compare two text files token by token.

    Numeric tokens are compared with ``comparer``, all others literally.

    Args:
        a: First file.
        b: Second file.
        comparer: Tolerance policy.

    Returns:
        True if both files have the same tokens up to the tolerance.
    """
    tokens_a = Path(a).read_text().split()
    tokens_b = Path(b).read_text().split()
    if len(tokens_a) != len(tokens_b):
        return False
    for ta, tb in zip(tokens_a, tokens_b):
        if ta == tb:
            continue
        try:
            va, vb = float(ta), float(tb)
        except ValueError:
            return False
        if not comparer(va, vb):
            return False
    return True
