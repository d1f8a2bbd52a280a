"""Per-pair accumulators: one value, or one value per interaction type."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator

import numpy as np

from ..settings.types import InteractionType, OnePair
from .frame import Force


def _copy(value: Force) -> Force:
    if isinstance(value, np.ndarray):
        return value.copy()
    return float(value)


class PairAccumulator(ABC):
    """
    Accumulator of the contributions of one pair within one frame.

    The variant is chosen once per store from the one-pair mode, so call
    sites never branch on it.
    """

    __slots__ = ()

    @abstractmethod
    def add(self, itype: InteractionType, value: Force) -> None:
        """Add a contribution of the given interaction type."""
        ...

    @abstractmethod
    def records(self) -> Iterator[tuple[InteractionType, Force]]:
        """Yield (type, value) records as they are written out."""
        ...

    @abstractmethod
    def map(self, func: Callable[[Force], Force]) -> None:
        """Replace every stored value by ``func(value)``."""
        ...

    def scale(self, factor: float) -> None:
        """Multiply every stored value by ``factor``."""
        self.map(lambda value: value * factor)

    def total(self) -> Force:
        """Return the value summed over interaction types."""
        result: Force | None = None
        for _, value in self.records():
            result = _copy(value) if result is None else result + value
        return 0.0 if result is None else result

    @property
    def is_vector(self) -> bool:
        return any(isinstance(value, np.ndarray) for _, value in self.records())


class SummedForce(PairAccumulator):
    """Single accumulator; contributions add on arrival, types are united."""

    __slots__ = ("value", "type")

    def __init__(self) -> None:
        self.value: Force | None = None
        self.type = InteractionType.NONE

    def add(self, itype: InteractionType, value: Force) -> None:
        self.value = _copy(value) if self.value is None else self.value + value
        self.type |= itype

    def records(self) -> Iterator[tuple[InteractionType, Force]]:
        if self.value is not None:
            yield self.type, self.value

    def map(self, func: Callable[[Force], Force]) -> None:
        if self.value is not None:
            self.value = func(self.value)


class DetailedForce(PairAccumulator):
    """One accumulator slot per interaction type."""

    __slots__ = ("slots",)

    def __init__(self) -> None:
        self.slots: dict[InteractionType, Force] = {}

    def add(self, itype: InteractionType, value: Force) -> None:
        if itype in self.slots:
            self.slots[itype] = self.slots[itype] + value
        else:
            self.slots[itype] = _copy(value)

    def records(self) -> Iterator[tuple[InteractionType, Force]]:
        for itype in sorted(self.slots, key=lambda t: t.value):
            yield itype, self.slots[itype]

    def map(self, func: Callable[[Force], Force]) -> None:
        for itype, value in self.slots.items():
            self.slots[itype] = func(value)


def accumulator_factory(one_pair: OnePair) -> type[PairAccumulator]:
    """Return the accumulator class for a one-pair mode."""
    if one_pair is OnePair.SUMMED:
        return SummedForce
    return DetailedForce
