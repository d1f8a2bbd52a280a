"""Storage container for distributed pairwise forces."""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from ..exceptions import UnsupportedInteractionError
from ..settings.types import ForceType, InteractionType, Vector2Scalar
from .accumulator import PairAccumulator, accumulator_factory
from .frame import Force, Frame, PairForce
from .projection import vector_to_scalar

if TYPE_CHECKING:
    from ..parallel import ParallelBackend
    from ..settings import FDASettings

logger = logging.getLogger(__name__)


class DistributedForces:
    """
    Storage container for distributed forces of one frame.

    Same structure for atom and residue based distribution. Contributions
    are fed per interaction with ``add_interaction``; ``finalize_frame``
    seals them into an immutable Frame and resets the accumulators.

    Pairs are kept with i < j. A vector given for (j, i) is negated, since
    the force on i due to j is minus the force on j due to i.

    Example:
        store = DistributedForces(ForceType.ATOMS, settings)
        store.add_interaction(0, 1, InteractionType.BOND, 5.0)
        frame = store.finalize_frame()
    """

    def __init__(self, force_type: ForceType, settings: FDASettings) -> None:
        """
        Initialize store.

        Args:
            force_type: Atom or residue based distribution.
            settings: FDA settings.
        """
        self.force_type = force_type
        self.settings = settings
        self._accumulator = accumulator_factory(settings.one_pair)
        self._pairs: dict[tuple[int, int], PairAccumulator] = {}
        self._frame_index = 0
        self._is_vector: bool | None = None
        self.missing_potentials: Counter[str] = Counter()

    @property
    def sys2pf(self):
        """Mapping from system number to pf index."""
        return self.settings.sys2pf(self.force_type)

    @property
    def syslen(self) -> int:
        """Number of atoms or residues in the system."""
        return self.settings.syslen(self.force_type)

    @property
    def frame_index(self) -> int:
        """Index the next finalized frame will get."""
        return self._frame_index

    @property
    def is_vector(self) -> bool:
        """True if the current accumulators hold force vectors."""
        return bool(self._is_vector)

    def __len__(self) -> int:
        """Number of pairs with contributions in the current frame."""
        return len(self._pairs)

    def add_interaction(
        self,
        i: int,
        j: int,
        itype: InteractionType | str | int,
        value: Force,
    ) -> bool:
        """
        Add a contribution between atoms i and j to the current frame.

        Args:
            i: First atom index.
            j: Second atom index.
            itype: Interaction type, as member, name or bit mask.
            value: Scalar force or force vector on i due to j.

        Returns:
            True if the contribution was stored.

        Raises:
            UnsupportedInteractionError: For an unknown interaction type when
                missing potentials are not ignored.
        """
        requested = itype
        try:
            itype = InteractionType.parse(itype)
        except (KeyError, ValueError):
            itype = InteractionType.NONE
        if itype is InteractionType.NONE:
            if isinstance(requested, InteractionType):
                return self._missing_potential(requested.label)
            return self._missing_potential(str(requested).lower())

        settings = self.settings
        if itype not in settings.type:
            return False
        if not settings.atoms_in_groups(i, j):
            return False
        if settings.is_excluded(i, j, itype):
            return False

        value = _as_force(value)
        magnitude = float(np.linalg.norm(value)) if isinstance(value, np.ndarray) else abs(value)
        if magnitude < settings.threshold:
            return False

        if self.force_type is ForceType.RESIDUES:
            i = int(settings.atom_to_residue[i])
            j = int(settings.atom_to_residue[j])
        if i == j:
            return False
        self._accumulate(i, j, itype, value)
        return True

    def add_unsupported(self, name: str) -> bool:
        """Report a contribution of a potential that cannot be distributed."""
        return self._missing_potential(name)

    def _missing_potential(self, name: str) -> bool:
        if not self.settings.ignore_missing_potentials:
            raise UnsupportedInteractionError(name)
        self.missing_potentials[name] += 1
        return False

    def _accumulate(self, i: int, j: int, itype: InteractionType, value: Force) -> None:
        vector = isinstance(value, np.ndarray)
        if self._is_vector is None:
            self._is_vector = vector
        elif self._is_vector != vector:
            raise ValueError(
                "Cannot mix scalar and vector contributions in one frame"
            )
        if i > j:
            i, j = j, i
            if vector:
                value = -value
        acc = self._pairs.get((i, j))
        if acc is None:
            acc = self._pairs[(i, j)] = self._accumulator()
        acc.add(itype, value)

    def add_frame(self, frame: Frame) -> None:
        """Add the records of a finalized frame, bypassing all filters."""
        for record in frame:
            self._accumulate(record.i, record.j, record.type, record.force)

    def merge(self, other: DistributedForces) -> None:
        """
        Add the partial sums of another store into this one.

        The result does not depend on the order in which stores are merged.
        """
        for (i, j), acc in other._pairs.items():
            for itype, value in acc.records():
                self._accumulate(i, j, itype, value)
        self.missing_potentials.update(other.missing_potentials)

    def reduce(self, backend: ParallelBackend) -> None:
        """Combine the partial stores of all workers of a backend."""
        if backend.n_workers == 1:
            return
        all_pairs, all_types, all_values, all_vectors = backend.gather_records(
            *self.to_arrays()
        )
        self._pairs.clear()
        self._is_vector = None
        for (i, j), t, v, is_vec in zip(
            all_pairs.tolist(), all_types.tolist(), all_values, all_vectors.tolist()
        ):
            value = v.copy() if is_vec else float(v[0])
            self._accumulate(i, j, InteractionType(t), value)

    def to_arrays(
        self,
    ) -> tuple[
        NDArray[np.integer], NDArray[np.integer], NDArray[np.floating], NDArray[np.bool_]
    ]:
        """
        Flatten the accumulators into arrays a backend can exchange.

        Returns:
            Pairs shape (n, 2), types shape (n,), values shape (n, 3) with
            scalars in the first column, and a vector flag per row.
        """
        pairs, types, values, vectors = [], [], [], []
        for (i, j), acc in self._pairs.items():
            for itype, value in acc.records():
                pairs.append((i, j))
                types.append(itype.value)
                row = np.zeros(3)
                row[: np.size(value)] = np.ravel(value)
                values.append(row)
                vectors.append(isinstance(value, np.ndarray))
        return (
            np.array(pairs, dtype=np.int64).reshape(-1, 2),
            np.array(types, dtype=np.int64),
            np.array(values, dtype=np.float64).reshape(-1, 3),
            np.array(vectors, dtype=bool),
        )

    def merge_vectors_to_scalar(
        self,
        positions: NDArray[np.floating],
        method: Vector2Scalar | None = None,
    ) -> None:
        """
        Convert all vector accumulators to scalars.

        Must be called before writing scalar output from vector data. A
        second call is a no-op.

        Args:
            positions: Atom positions, shape (N, 3).
            method: Conversion method, defaults to the configured one.
        """
        if not self._is_vector:
            return
        method = method or self.settings.v2s
        x = self._entity_positions(positions)
        for (i, j), acc in self._pairs.items():
            xi, xj = x[i], x[j]
            acc.map(lambda f, xi=xi, xj=xj: vector_to_scalar(f, xi, xj, method))
        self._is_vector = False

    def _entity_positions(self, positions: NDArray[np.floating]) -> NDArray[np.floating]:
        positions = np.asarray(positions, dtype=np.float64)
        if self.force_type is ForceType.ATOMS:
            return positions
        # Residues sit at the centre of geometry of their atoms
        a2r = self.settings.atom_to_residue
        centers = np.zeros((self.syslen, 3))
        np.add.at(centers, a2r, positions)
        counts = np.maximum(self.settings.residue_size, 1)[:, None]
        return centers / counts

    def divide_by(self, divisor: float) -> None:
        """Divide every accumulator by ``divisor``."""
        if divisor == 0:
            raise ValueError("Cannot divide forces by zero")
        factor = 1.0 / divisor
        for acc in self._pairs.values():
            acc.scale(factor)

    def finalize_frame(self) -> Frame:
        """
        Seal the current frame and reset the accumulators.

        Returns:
            The finalized frame, records sorted by (i, j, type).
        """
        records = []
        for i, j in sorted(self._pairs):
            for itype, value in self._pairs[(i, j)].records():
                records.append(PairForce(i, j, value, itype))
        frame = Frame(self._frame_index, tuple(records))

        self._pairs.clear()
        self._is_vector = None
        self._frame_index += 1
        return frame

    def clear(self) -> None:
        """Drop the current accumulators without advancing the frame counter."""
        self._pairs.clear()
        self._is_vector = None

    def gather_missing_potentials(self, backend: ParallelBackend) -> None:
        """
        Replace the local tally of skipped potentials by the tally of all
        workers. Collective: every worker must call it, once per run.
        """
        if backend.n_workers > 1:
            self.missing_potentials = backend.gather_counts(self.missing_potentials)

    def report_missing_potentials(self) -> None:
        """Log skipped unsupported contributions, if any."""
        if not self.missing_potentials:
            return
        summary = ", ".join(f"{name} ({n}x)" for name, n in sorted(self.missing_potentials.items()))
        logger.warning(
            "%s based FDA skipped unsupported potentials: %s. "
            "Distributed forces do not sum up to the total forces.",
            self.force_type.value,
            summary,
        )


def _as_force(value: Force) -> Force:
    if isinstance(value, np.ndarray) or isinstance(value, (list, tuple)):
        vector = np.asarray(value, dtype=np.float64)
        if vector.shape == (3,):
            return vector
        if vector.size == 1:
            return float(vector.reshape(-1)[0])
        raise ValueError(f"Force must be scalar or of shape (3,), got {vector.shape}")
    return float(value)
