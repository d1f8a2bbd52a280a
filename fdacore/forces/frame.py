"""Frames of pairwise forces: the unit that is written, read and analysed."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

import numpy as np
from numpy.typing import NDArray

from ..settings.types import InteractionType, ResultType

if TYPE_CHECKING:
    from ..io.compare import LogicallyEqualComparer

Force = Union[float, NDArray[np.floating]]


def force_magnitude(force: Force) -> float:
    """Return |f| for a scalar or the norm of a vector."""
    if isinstance(force, np.ndarray):
        return float(np.linalg.norm(force))
    return abs(float(force))


@dataclass(frozen=True)
class PairForce:
    """
    One interaction record between entities i and j (i < j).

    Attributes:
        i: First atom or residue number.
        j: Second atom or residue number.
        force: Scalar force or force vector, shape (3,).
        type: Interaction types that contributed.
    """

    i: int
    j: int
    force: Force
    type: InteractionType = InteractionType.ALL

    @property
    def is_vector(self) -> bool:
        return isinstance(self.force, np.ndarray)

    @property
    def magnitude(self) -> float:
        return force_magnitude(self.force)


@dataclass(frozen=True)
class Frame:
    """
    Immutable snapshot of aggregated pairwise forces.

    In summed mode every pair appears once; in detailed mode once per
    interaction type.
    """

    index: int
    pairs: tuple[PairForce, ...] = ()

    def __len__(self) -> int:
        return len(self.pairs)

    def __iter__(self) -> Iterator[PairForce]:
        return iter(self.pairs)

    @property
    def is_vector(self) -> bool:
        return bool(self.pairs) and self.pairs[0].is_vector

    def forces(self) -> dict[tuple[int, int], Force]:
        """Return the total force per pair, summed over interaction types."""
        totals: dict[tuple[int, int], Force] = {}
        for record in self.pairs:
            key = (record.i, record.j)
            if key in totals:
                totals[key] = totals[key] + record.force
            else:
                totals[key] = record.force
        return totals

    def summed(self) -> Frame:
        """Return the summed view: one record per pair, types united."""
        types: dict[tuple[int, int], InteractionType] = {}
        for record in self.pairs:
            key = (record.i, record.j)
            types[key] = types.get(key, InteractionType.NONE) | record.type
        totals = self.forces()
        return Frame(
            self.index,
            tuple(PairForce(i, j, totals[(i, j)], types[(i, j)]) for i, j in sorted(totals)),
        )

    def entities(self) -> list[int]:
        """Sorted atom or residue numbers taking part in any pair."""
        ids = set()
        for record in self.pairs:
            ids.add(record.i)
            ids.add(record.j)
        return sorted(ids)


def average_frames(frames: Sequence[Frame], index: int = 0) -> Frame:
    """
    Average frames record by record.

    Records are matched on (i, j, type); a record missing from a frame counts
    as zero there.

    Args:
        frames: Frames to average.
        index: Index of the resulting frame.

    Returns:
        Frame holding the sums divided by ``len(frames)``.
    """
    if not frames:
        raise ValueError("Cannot average an empty list of frames")
    sums: dict[tuple[int, int, int], Force] = {}
    for frame in frames:
        for record in frame:
            key = (record.i, record.j, record.type.value)
            if key in sums:
                sums[key] = sums[key] + record.force
            else:
                sums[key] = record.force
    n = len(frames)
    return Frame(
        index,
        tuple(
            PairForce(i, j, _divide(sums[(i, j, t)], n), InteractionType(t))
            for i, j, t in sorted(sums)
        ),
    )


def _divide(force: Force, n: int) -> Force:
    if isinstance(force, np.ndarray):
        return force / n
    return float(force) / n


@dataclass
class PairwiseForces:
    """
    Content of a pairwise force file.

    Attributes:
        result_type: Result type the frames were written as.
        frames: Frames in file order.
        is_vector: True if the records hold force vectors.
        entities: System numbers of the in-scope entities in pf order, as
            stored by compatibility files.
        groupname: Group label of compatibility files.
    """

    result_type: ResultType
    frames: list[Frame] = field(default_factory=list)
    is_vector: bool = False
    entities: tuple[int, ...] = ()
    groupname: str = ""

    def __len__(self) -> int:
        return len(self.frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(self.frames)

    def __getitem__(self, index: int) -> Frame:
        return self.frames[index]

    def equal(self, other: PairwiseForces, comparer: LogicallyEqualComparer) -> bool:
        """
        Compare two files element-wise under a tolerance policy.

        Frame indices, pairs and interaction types must match exactly; forces
        are compared with ``comparer``.
        """
        if len(self.frames) != len(other.frames) or self.is_vector != other.is_vector:
            return False
        for mine, theirs in zip(self.frames, other.frames):
            if mine.index != theirs.index or len(mine) != len(theirs):
                return False
            for a, b in zip(_sorted_records(mine), _sorted_records(theirs)):
                if (a.i, a.j, a.type) != (b.i, b.j, b.type):
                    return False
                if not comparer.equal_arrays(a.force, b.force):
                    return False
        return True


def _sorted_records(records: Iterable[PairForce]) -> list[PairForce]:
    return sorted(records, key=lambda r: (r.i, r.j, r.type.value))
