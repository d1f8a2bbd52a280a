"""Enumerations describing what is distributed and how it is stored."""

from __future__ import annotations

import re
from enum import Enum, Flag

from ..exceptions import ConfigurationError


class _NamedEnum(Enum):
    """Enum parsed from its lower-case option value."""

    @classmethod
    def parse(cls, text: str):
        key = str(text).strip().lower()
        for member in cls:
            if member.value == key:
                return member
        choices = ", ".join(m.value for m in cls)
        raise ConfigurationError(
            f"Unknown {cls.__name__} '{text}' (choose from: {choices})"
        )

    def __str__(self) -> str:
        return self.value


class ResultType(_NamedEnum):
    """Kind of result written for atoms or residues."""

    NO = "no"
    PAIRWISE_FORCES_VECTOR = "pairwise_forces_vector"
    PAIRWISE_FORCES_SCALAR = "pairwise_forces_scalar"
    PUNCTUAL_STRESS = "punctual_stress"
    VIRIAL_STRESS = "virial_stress"
    VIRIAL_STRESS_VON_MISES = "virial_stress_von_mises"
    COMPAT_BIN = "compat_bin"
    COMPAT_ASCII = "compat_ascii"

    @property
    def is_compat(self) -> bool:
        return self in (ResultType.COMPAT_BIN, ResultType.COMPAT_ASCII)

    @property
    def is_stress(self) -> bool:
        return self in (
            ResultType.PUNCTUAL_STRESS,
            ResultType.VIRIAL_STRESS,
            ResultType.VIRIAL_STRESS_VON_MISES,
        )

    @property
    def is_pairwise_or_punctual(self) -> bool:
        return self in (
            ResultType.PAIRWISE_FORCES_VECTOR,
            ResultType.PAIRWISE_FORCES_SCALAR,
            ResultType.PUNCTUAL_STRESS,
        )

    @property
    def is_virial(self) -> bool:
        return self in (ResultType.VIRIAL_STRESS, ResultType.VIRIAL_STRESS_VON_MISES)

    @property
    def is_vector(self) -> bool:
        """Virial stress needs the force vectors, as do vector results."""
        return self is ResultType.PAIRWISE_FORCES_VECTOR or self.is_virial

    @property
    def is_pairwise(self) -> bool:
        return self in (
            ResultType.PAIRWISE_FORCES_VECTOR,
            ResultType.PAIRWISE_FORCES_SCALAR,
        ) or self.is_compat


class OnePair(_NamedEnum):
    """How several interactions between the same pair are kept."""

    DETAILED = "detailed"
    SUMMED = "summed"


class Vector2Scalar(_NamedEnum):
    """Conversion of a pairwise force vector into a signed scalar."""

    NORM = "norm"
    PROJECTION = "projection"


class ResiduesRenumber(_NamedEnum):
    """Residue renumbering policy."""

    AUTO = "auto"
    DO = "do"
    DONT = "dont"


class ForceType(_NamedEnum):
    """Granularity of the distributed forces."""

    ATOMS = "atoms"
    RESIDUES = "residues"


class InteractionType(Flag):
    """
    Interaction mechanisms a pairwise force can originate from.

    Composite members group the bonded and nonbonded mechanisms, so that a
    filter is a plain set-membership test: ``itype in settings.type``.
    """

    NONE = 0
    BOND = 1
    ANGLE = 2
    DIHEDRAL = 4
    POLAR = 8
    COULOMB = 16
    LJ = 32
    NB14 = 64
    BONDED = BOND | ANGLE | DIHEDRAL
    NONBONDED = COULOMB | LJ | NB14
    ALL = BOND | ANGLE | DIHEDRAL | POLAR | COULOMB | LJ | NB14

    @classmethod
    def parse(cls, text: str | int | InteractionType) -> InteractionType:
        """
        Parse ``"bonded"``, ``"coulomb+lj"``, ``"bond angle"`` or a bit mask.

        Raises:
            KeyError: If a name is not a known interaction type.
        """
        if isinstance(text, InteractionType):
            return text
        if isinstance(text, int):
            return cls(text)
        result = cls.NONE
        for name in re.split(r"[\s,+|]+", str(text).strip()):
            if not name:
                continue
            if name.isdigit():
                result |= cls(int(name))
            else:
                result |= cls[name.upper()]
        return result

    @property
    def is_bonded(self) -> bool:
        return bool(self & InteractionType.BONDED)

    @property
    def is_nonbonded(self) -> bool:
        return bool(self & InteractionType.NONBONDED)

    @property
    def label(self) -> str:
        if self.name is not None and "|" not in self.name:
            return self.name.lower()
        return "+".join(m.name.lower() for m in _ELEMENTARY if m & self)


_ELEMENTARY = (
    InteractionType.BOND,
    InteractionType.ANGLE,
    InteractionType.DIHEDRAL,
    InteractionType.POLAR,
    InteractionType.COULOMB,
    InteractionType.LJ,
    InteractionType.NB14,
)
